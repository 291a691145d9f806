"""Staff blueprint - profiles of people selling in the shop."""
from typing import Dict, Any

from flask import Blueprint, request, jsonify, current_app, g, Response
from flask_wtf.csrf import generate_csrf

from shopledger.database import get_session
from shopledger.exceptions import ValidationError, BusinessLogicError
from shopledger.middleware import require_context, require_owner
from shopledger.models import StaffProfile, StaffRole
from shopledger.services.record_store import RecordStore

staff_bp = Blueprint('staff', __name__, url_prefix='/staff')


def staff_to_dict(staff: StaffProfile) -> Dict[str, Any]:
    return {
        'id': staff.id,
        'name': staff.name,
        'role': staff.role,
        'active': staff.active,
    }


@staff_bp.route('/me')
@require_context
def me() -> Response:
    """Acting profile plus a CSRF token for the client's write requests."""
    return jsonify({
        'staff': staff_to_dict(g.staff),
        'tenant_id': g.tenant_id,
        'csrf_token': generate_csrf(),
    })


@staff_bp.route('/')
@require_context
@require_owner
def list_staff() -> Response:
    store = RecordStore(get_session(), g.tenant_id)
    return jsonify({'staff': [staff_to_dict(s) for s in store.select('profiles', order='name')]})


@staff_bp.route('/', methods=['POST'])
@require_context
@require_owner
def create_staff():
    """Add a profile. Body: {name, role?}; role defaults to staff."""
    session = get_session()
    data = request.get_json(silent=True) or {}

    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('Staff name is required')
    role = (data.get('role') or StaffRole.STAFF.value).strip().lower()
    try:
        role = StaffRole(role).value
    except ValueError:
        raise ValidationError(f'Unknown role: {role!r}')

    store = RecordStore(session, g.tenant_id)
    try:
        staff = store.insert('profiles', {'name': name, 'role': role})
        session.commit()
    except Exception:
        session.rollback()
        raise

    current_app.logger.info(f"Staff profile {staff.id} ({role}) created by {g.staff.id}")
    return jsonify({'status': 'success', 'staff': staff_to_dict(staff)}), 201


@staff_bp.route('/<int:staff_id>', methods=['DELETE'])
@require_context
@require_owner
def remove_staff(staff_id: int) -> Response:
    """
    Remove a staff member from the shop.

    The profile is deactivated, not deleted: past sales and payments still
    name the person who made them.
    """
    session = get_session()
    if staff_id == g.staff.id:
        raise BusinessLogicError("You can't remove yourself")

    store = RecordStore(session, g.tenant_id)
    try:
        staff = store.update('profiles', staff_id, {'active': False})
        session.commit()
    except Exception:
        session.rollback()
        raise

    current_app.logger.info(f"Staff profile {staff.id} removed by {g.staff.id}")
    return jsonify({'status': 'success', 'staff': staff_to_dict(staff)})
