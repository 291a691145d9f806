"""Loans blueprint - credit balances and repayments (shop-scoped)."""
from flask import Blueprint, request, jsonify, current_app, g, Response

from shopledger.database import get_session
from shopledger.exceptions import ValidationError
from shopledger.middleware import require_context
from shopledger.services import loan_service
from shopledger.blueprints.metrics import loan_payments_total

loans_bp = Blueprint('loans', __name__, url_prefix='/loans')


@loans_bp.route('/')
@require_context
def list_loans() -> Response:
    """Loans, newest first. Optional `?status=unpaid|part-paid|paid`."""
    db_session = get_session()
    status = request.args.get('status', '').strip() or None
    customer_id = request.args.get('customer_id', type=int)

    loans = loan_service.list_loans(db_session, g.tenant_id, status=status, customer_id=customer_id)
    return jsonify({'loans': [loan_service.loan_to_dict(loan) for loan in loans]})


@loans_bp.route('/<int:loan_id>')
@require_context
def detail_loan(loan_id: int) -> Response:
    db_session = get_session()
    return jsonify({'loan': loan_service.get_loan_detail(db_session, g.tenant_id, loan_id)})


@loans_bp.route('/<int:loan_id>/payments', methods=['POST'])
@require_context
def record_payment(loan_id: int):
    """
    Record a repayment. Body: {amount}.

    Amounts above the balance are capped; the response carries both the
    requested and the applied amount.
    """
    db_session = get_session()
    data = request.get_json(silent=True) or {}
    if data.get('amount') in (None, ''):
        raise ValidationError('amount is required')

    result = loan_service.record_loan_payment(db_session, g.context, loan_id, data['amount'])

    loan_payments_total.inc()
    current_app.logger.info(
        f"Loan {loan_id} payment {result['applied_amount']} by staff {g.context.staff_id}"
    )
    return jsonify({
        'status': 'success',
        'requested_amount': float(result['requested_amount']),
        'applied_amount': float(result['applied_amount']),
        'loan': result['loan'],
        'payment': result['payment'],
    }), 201
