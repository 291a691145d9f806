"""Products blueprint - catalog, stock intake and cart checks (shop-scoped)."""
from typing import Dict, Any

from flask import Blueprint, request, jsonify, current_app, g, Response

from shopledger.database import get_session
from shopledger.exceptions import ValidationError
from shopledger.middleware import require_context
from shopledger.models import Product
from shopledger.services.record_store import RecordStore
from shopledger.services import stock_service
from shopledger.services.sales_service import validate_cart_line
from shopledger.utils.money import to_money

products_bp = Blueprint('products', __name__, url_prefix='/products')


def product_to_dict(product: Product) -> Dict[str, Any]:
    return {
        'id': product.id,
        'name': product.name,
        'category': product.category,
        'buying_price': float(product.buying_price or 0),
        'selling_price': float(product.selling_price),
        'quantity': product.quantity,
        'low_stock_level': product.low_stock_level,
        'is_low_stock': product.is_low_stock,
    }


def _money_field(data: Dict[str, Any], field: str, required: bool = False):
    value = data.get(field)
    if value in (None, ''):
        if required:
            raise ValidationError(f'{field} is required')
        return None
    try:
        amount = to_money(value)
    except ValueError as e:
        raise ValidationError(f'{field}: {e}')
    if amount < 0:
        raise ValidationError(f'{field} cannot be negative')
    return amount


def _int_field(data: Dict[str, Any], field: str, default=None):
    value = data.get(field, default)
    if value in (None, ''):
        return default
    if isinstance(value, bool) or not str(value).strip().isdigit():
        raise ValidationError(f'{field} must be a whole number of 0 or more')
    return int(value)


@products_bp.route('/')
@require_context
def list_products() -> Response:
    """Products by name; `?category=` filters."""
    store = RecordStore(get_session(), g.tenant_id)
    filters = {}
    if request.args.get('category'):
        filters['category'] = request.args['category']
    products = store.select('products', filters, order='name')
    return jsonify({'products': [product_to_dict(p) for p in products]})


@products_bp.route('/', methods=['POST'])
@require_context
def create_product():
    session = get_session()
    data = request.get_json(silent=True) or {}

    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('Product name is required')

    fields = {
        'name': name,
        'category': (data.get('category') or '').strip() or None,
        'buying_price': _money_field(data, 'buying_price') or 0,
        'selling_price': _money_field(data, 'selling_price', required=True),
        'quantity': _int_field(data, 'quantity', 0),
        'low_stock_level': _int_field(
            data, 'low_stock_level', current_app.config.get('DEFAULT_LOW_STOCK_LEVEL', 5)
        ),
    }

    store = RecordStore(session, g.tenant_id)
    try:
        product = store.insert('products', fields)
        session.commit()
    except Exception:
        session.rollback()
        raise

    current_app.logger.info(f"Product {product.id} '{product.name}' created (tenant {g.tenant_id})")
    return jsonify({'status': 'success', 'product': product_to_dict(product)}), 201


@products_bp.route('/<int:product_id>', methods=['PATCH'])
@require_context
def update_product(product_id: int):
    """
    Edit a product. Only the fields present in the body change.

    Past sales keep the name and price they were sold with.
    """
    session = get_session()
    data = request.get_json(silent=True) or {}

    fields = {}
    if 'name' in data:
        fields['name'] = (data.get('name') or '').strip()
        if not fields['name']:
            raise ValidationError('Product name is required')
    if 'category' in data:
        fields['category'] = (data.get('category') or '').strip() or None
    if 'buying_price' in data:
        fields['buying_price'] = _money_field(data, 'buying_price') or 0
    if 'selling_price' in data:
        fields['selling_price'] = _money_field(data, 'selling_price', required=True)
    for field in ('quantity', 'low_stock_level'):
        if field in data:
            fields[field] = _int_field(data, field)
            if fields[field] is None:
                raise ValidationError(f'{field} is required')
    if not fields:
        raise ValidationError('Nothing to update')

    store = RecordStore(session, g.tenant_id)
    try:
        product = store.update('products', product_id, fields)
        session.commit()
    except Exception:
        session.rollback()
        raise

    current_app.logger.info(
        f"Product {product.id} updated ({', '.join(sorted(fields))}) by staff {g.context.staff_id}"
    )
    return jsonify({'status': 'success', 'product': product_to_dict(product)})


@products_bp.route('/<int:product_id>/stock', methods=['POST'])
@require_context
def add_stock(product_id: int):
    """Receive stock. Body: {quantity, buying_price?, supplier?}."""
    session = get_session()
    data = request.get_json(silent=True) or {}

    quantity = _int_field(data, 'quantity')
    if not quantity:
        raise ValidationError('quantity must be greater than 0')

    entry = stock_service.add_stock(
        session,
        g.context,
        product_id,
        quantity,
        buying_price=_money_field(data, 'buying_price'),
        supplier=data.get('supplier')
    )
    product = RecordStore(session, g.tenant_id).get('products', product_id)
    return jsonify({
        'status': 'success',
        'stock_entry_id': entry.id,
        'product': product_to_dict(product),
    }), 201


@products_bp.route('/low-stock')
@require_context
def low_stock() -> Response:
    products = stock_service.get_low_stock_products(get_session(), g.tenant_id)
    return jsonify({'products': [product_to_dict(p) for p in products]})


@products_bp.route('/<int:product_id>/cart-check', methods=['POST'])
@require_context
def cart_check(product_id: int) -> Response:
    """
    Add-to-cart stock check. Body: {quantity}.

    Answers 409 when the product does not have that many on hand. Advisory
    only; checkout checks again.
    """
    data = request.get_json(silent=True) or {}
    quantity = _int_field(data, 'quantity')
    if quantity is None:
        raise ValidationError('quantity is required')

    product = RecordStore(get_session(), g.tenant_id).get('products', product_id)
    validate_cart_line(product, quantity)
    return jsonify({'status': 'ok', 'product': product_to_dict(product), 'quantity': quantity})
