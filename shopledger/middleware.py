"""Middleware for shop and staff context."""
from functools import wraps
from flask import session, g, jsonify, current_app
from shopledger.context import ShopContext
from shopledger.exceptions import UnauthorizedError
from shopledger.database import get_session
from shopledger.models import StaffProfile, Tenant


def load_shop_context():
    """
    Load the acting shop and staff member into g.

    Called before each request. Sign-in happens outside this application and
    leaves `tenant_id` and `staff_id` in the Flask session; this sets
    g.staff, g.tenant_id and g.context when both point at an active profile
    of an active shop.
    """
    g.staff = None
    g.tenant_id = None
    g.context = None

    try:
        staff_id = session.get('staff_id')
        tenant_id = session.get('tenant_id')
        if not staff_id or not tenant_id:
            return

        db_session = get_session()
        if not db_session:
            return

        staff = db_session.query(StaffProfile).filter_by(
            id=staff_id, tenant_id=tenant_id, active=True
        ).first()
        if not staff:
            # Profile removed or moved to another shop
            session.pop('staff_id', None)
            return

        tenant = db_session.query(Tenant).filter_by(id=tenant_id).first()
        if not tenant or not tenant.active:
            session.clear()
            return

        g.staff = staff
        g.tenant_id = tenant.id
        g.context = ShopContext.for_staff(staff)
    except Exception as e:
        current_app.logger.error(f"Error in load_shop_context: {e}")


def require_context(f):
    """
    Decorator: Require a signed-in staff member of a shop.

    Returns 401 JSON when there is no context.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('context') is None:
            return jsonify({'status': 'error', 'message': 'Sign in to a shop first'}), 401
        return f(*args, **kwargs)
    return decorated_function


def require_owner(f):
    """
    Decorator: Require the shop owner role.

    Must be used AFTER require_context. Raises UnauthorizedError (403).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        context = g.get('context')
        if context is None or not context.is_owner:
            raise UnauthorizedError('Only the shop owner can do this')
        return f(*args, **kwargs)
    return decorated_function
