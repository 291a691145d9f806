"""Customers blueprint (shop-scoped)."""
from typing import Dict, Any

from flask import Blueprint, request, jsonify, current_app, g, Response
from sqlalchemy import or_, func

from shopledger.database import get_session
from shopledger.exceptions import ValidationError
from shopledger.middleware import require_context
from shopledger.models import Customer
from shopledger.services.record_store import RecordStore
from shopledger.services.loan_service import loan_to_dict
from shopledger.services.debt_service import compute_customer_debt

customers_bp = Blueprint('customers', __name__, url_prefix='/customers')


def _get_customer_data_from_json() -> Dict[str, Any]:
    """Extract and sanitize customer fields from the request body."""
    data = request.get_json(silent=True) or {}
    return {
        'name': (data.get('name') or '').strip(),
        'phone': (data.get('phone') or '').strip() or None,
        'address': (data.get('address') or '').strip() or None,
    }


def customer_to_dict(customer: Customer) -> Dict[str, Any]:
    return {
        'id': customer.id,
        'name': customer.name,
        'phone': customer.phone,
        'address': customer.address,
        'total_debt': float(customer.total_debt or 0),
        'created_at': customer.created_at.isoformat() if customer.created_at else None,
    }


@customers_bp.route('/')
@require_context
def list_customers() -> Response:
    """Customers by name; `?q=` matches name or phone."""
    session = get_session()
    query_str = request.args.get('q', '').strip()

    query = session.query(Customer).filter(Customer.tenant_id == g.tenant_id)
    if query_str:
        pattern = f'%{query_str.lower()}%'
        query = query.filter(or_(
            func.lower(Customer.name).like(pattern),
            func.lower(Customer.phone).like(pattern)
        ))
    customers = query.order_by(Customer.name.asc()).all()
    return jsonify({'customers': [customer_to_dict(c) for c in customers]})


@customers_bp.route('/', methods=['POST'])
@require_context
def create_customer():
    session = get_session()
    data = _get_customer_data_from_json()
    if not data['name']:
        raise ValidationError('Customer name is required')

    store = RecordStore(session, g.tenant_id)
    try:
        customer = store.insert('customers', data)
        session.commit()
    except Exception:
        session.rollback()
        raise

    current_app.logger.info(f"Customer {customer.id} created (tenant {g.tenant_id})")
    return jsonify({'status': 'success', 'customer': customer_to_dict(customer)}), 201


@customers_bp.route('/<int:customer_id>')
@require_context
def detail_customer(customer_id: int) -> Response:
    """Customer with loans and the debt recomputed from open loan balances."""
    session = get_session()
    store = RecordStore(session, g.tenant_id)
    customer = store.get('customers', customer_id)
    loans = store.select('loans', {'customer_id': customer.id}, order='-created_at')

    data = customer_to_dict(customer)
    data['computed_debt'] = float(compute_customer_debt(session, g.tenant_id, customer.id))
    data['loans'] = [loan_to_dict(loan) for loan in loans]
    data['sale_count'] = store.count('sales', {'customer_id': customer.id})
    return jsonify({'customer': data})
