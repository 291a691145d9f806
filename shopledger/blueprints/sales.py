"""Sales blueprint - checkout, history and receipts (shop-scoped)."""
from datetime import datetime
from typing import Any, Dict, Tuple

from flask import Blueprint, request, jsonify, send_file, current_app, g, Response

from shopledger.database import get_session
from shopledger.exceptions import ShopError, ValidationError
from shopledger.middleware import require_context
from shopledger.services import sales_service
from shopledger.services.receipt_render import receipt_to_json, render_receipt_pdf, render_receipt_text
from shopledger.blueprints.metrics import checkouts_total, checkout_failures_total

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')


def _optional_id(value: Any, field: str):
    if value in (None, ''):
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer')


def _sale_row(sale) -> Dict[str, Any]:
    return {
        'id': sale.id,
        'receipt_code': sale.receipt_code,
        'customer_id': sale.customer_id,
        'customer_name': sale.customer_name,
        'total': float(sale.total),
        'paid': float(sale.paid),
        'balance': float(sale.balance),
        'payment_method': sale.payment_method,
        'sold_by': sale.sold_by,
        'sold_by_name': sale.sold_by_name,
        'created_at': sale.created_at.isoformat(),
    }


@sales_bp.route('/checkout', methods=['POST'])
@require_context
def checkout() -> Tuple[Response, int]:
    """
    Commit a cart as a sale.

    Body: {items: [{product_id, quantity}], customer_id?, payment_method, amount_paid?}
    Returns the receipt (201). On any error nothing is written and the client
    keeps its cart.
    """
    db_session = get_session()
    data = request.get_json(silent=True) or {}

    try:
        lines = sales_service.parse_cart_lines(data.get('items'))
        receipt = sales_service.checkout(
            db_session,
            g.context,
            lines,
            customer_id=_optional_id(data.get('customer_id'), 'customer_id'),
            payment_method=data.get('payment_method', 'cash'),
            amount_paid=data.get('amount_paid'),
            walk_in_label=current_app.config.get('WALK_IN_LABEL', sales_service.WALK_IN_LABEL)
        )
    except ShopError as e:
        checkout_failures_total.labels(reason=type(e).__name__).inc()
        raise

    checkouts_total.labels(payment_method=receipt['payment_method']).inc()
    current_app.logger.info(
        f"Checkout {receipt['receipt_code']} by staff {g.context.staff_id} (tenant {g.tenant_id})"
    )
    return jsonify({'status': 'success', 'receipt': receipt_to_json(receipt)}), 201


@sales_bp.route('/')
@require_context
def list_sales() -> Response:
    """Sales history (newest first). `?q=` matches receipt, customer or seller."""
    db_session = get_session()
    q = request.args.get('q', '').strip()
    sold_by = None if g.context.is_owner else g.context.staff_id

    sales = sales_service.list_sales(db_session, g.tenant_id, query=q or None, sold_by=sold_by)
    return jsonify({'sales': [_sale_row(s) for s in sales], 'search_query': q})


@sales_bp.route('/<int:sale_id>/receipt')
@require_context
def receipt(sale_id: int) -> Response:
    """Receipt for a past sale; `?format=text` returns the print layout."""
    db_session = get_session()
    data = sales_service.get_sale_receipt(db_session, g.tenant_id, sale_id)

    if request.args.get('format') == 'text':
        return Response(render_receipt_text(data), mimetype='text/plain')
    return jsonify({'receipt': receipt_to_json(data)})


@sales_bp.route('/<int:sale_id>/receipt.pdf')
@require_context
def receipt_pdf(sale_id: int) -> Response:
    """Download the receipt as PDF."""
    db_session = get_session()
    data = sales_service.get_sale_receipt(db_session, g.tenant_id, sale_id)

    pdf_buffer = render_receipt_pdf(data)
    filename = f"receipt_{data['receipt_code']}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.pdf"
    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=filename
    )
