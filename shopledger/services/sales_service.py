"""
Sales service - checkout transaction (shop-scoped).
Handles sale creation, stock decrements, credit loans and customer debt.
"""
import logging
from dataclasses import dataclass
from collections import OrderedDict
from decimal import Decimal
from datetime import datetime
from typing import List, Dict, Optional, Any, Tuple, Iterable

from sqlalchemy import update, or_

from shopledger.context import ShopContext
from shopledger.database import expire_cached
from shopledger.models import (
    Tenant, Product, Customer, Sale, SaleItem, Loan,
    PaymentMethod, LoanStatus
)
from shopledger.exceptions import (
    ShopError, BusinessLogicError, ValidationError, NotFoundError, InsufficientStockError
)
from shopledger.services.receipt_service import next_receipt_code
from shopledger.services.receipt_render import build_receipt
from shopledger.services.debt_service import adjust_customer_debt
from shopledger.services.cache_service import invalidate_reports
from shopledger.utils.money import to_money, ZERO

logger = logging.getLogger(__name__)

WALK_IN_LABEL = 'Walk-in Customer'


@dataclass(frozen=True)
class CartLine:
    """One cart line. `unit_price`/`product_name` are optional UI snapshots."""
    product_id: int
    quantity: int
    unit_price: Optional[Decimal] = None
    product_name: Optional[str] = None


def _whole_number(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a whole number')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a whole number')
    if number != value and str(number) != str(value).strip():
        raise ValidationError(f'{field} must be a whole number')
    return number


def parse_cart_lines(items: Any, accept_prices: bool = False) -> List[CartLine]:
    """
    Build cart lines from request JSON (`[{product_id, quantity, price?}]`).

    Prices sent by the client are ignored unless `accept_prices` is set, in
    which case they become the unit price snapshot.
    """
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError('items must be a list')

    lines = []
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError('Each cart item must be an object')
        product_id = _whole_number(raw.get('product_id'), 'product_id')
        quantity = _whole_number(raw.get('quantity'), 'quantity')

        unit_price = None
        if accept_prices and raw.get('price') is not None:
            try:
                unit_price = to_money(raw['price'])
            except ValueError as e:
                raise ValidationError(str(e))
        lines.append(CartLine(product_id=product_id, quantity=quantity, unit_price=unit_price))
    return lines


def normalize_payment_method(method: Optional[str]) -> str:
    """Return 'cash' or 'loan'; anything else is rejected."""
    value = (method or '').strip().lower()
    try:
        return PaymentMethod(value).value
    except ValueError:
        raise ValidationError(f'Unknown payment method: {method!r}')


def settle_amounts(payment_method: str, total: Decimal, amount_paid=None) -> Tuple[Decimal, Decimal]:
    """
    Work out what is paid now and what is left owing.

    Cash settles the full total. A loan takes the caller's amount, capped at
    the total (overpayment is clamped, not an error).

    Returns:
        (paid, balance) with balance = max(0, total - paid)
    """
    total = to_money(total)
    if payment_method == PaymentMethod.CASH.value:
        return total, ZERO

    if amount_paid is None or amount_paid == '':
        paid = ZERO
    else:
        try:
            paid = to_money(amount_paid)
        except ValueError as e:
            raise ValidationError(str(e))
    if paid < 0:
        raise ValidationError('Amount paid cannot be negative')

    paid = min(paid, total)
    return paid, max(ZERO, total - paid)


def validate_cart_line(product: Product, requested_qty: int) -> None:
    """
    Add-to-cart stock check for the POS screen.

    Advisory only: the checkout re-checks with a conditional update.

    Raises:
        ValidationError: if the quantity is not positive
        InsufficientStockError: if the product does not have that many on hand
    """
    if requested_qty is None or requested_qty <= 0:
        raise ValidationError('Quantity must be greater than 0')
    available = product.quantity or 0
    if requested_qty > available:
        logger.warning(f"Cart check refused: {product.name} {requested_qty} requested, {available} on hand")
        raise InsufficientStockError(product.name, requested_qty, available)


def _decrement_stock(session, tenant_id: int, product: Product, quantity: int) -> None:
    """
    Take `quantity` units off the product in one conditional UPDATE.

    Zero matched rows means another checkout got there first.
    """
    stmt = (
        update(Product)
        .where(
            Product.id == product.id,
            Product.tenant_id == tenant_id,
            Product.quantity >= quantity
        )
        .values(quantity=Product.quantity - quantity, updated_at=datetime.now())
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if not result.rowcount:
        available = session.query(Product.quantity).filter(Product.id == product.id).scalar()
        raise InsufficientStockError(product.name, quantity, available)
    expire_cached(session, Product, product.id, 'quantity', 'updated_at')


def _requested_by_product(lines: Iterable[CartLine]) -> Dict[int, int]:
    requested: Dict[int, int] = OrderedDict()
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
    return requested


def checkout(
    session,
    context: ShopContext,
    lines: List[CartLine],
    customer_id: Optional[int] = None,
    payment_method: str = PaymentMethod.CASH.value,
    amount_paid=None,
    now: Optional[datetime] = None,
    walk_in_label: str = WALK_IN_LABEL
) -> Dict[str, Any]:
    """
    Turn a cart into a committed sale (shop-scoped).

    Writes run in a fixed order (sale, items, stock, loan, customer debt) in
    one database transaction; any failure rolls all of them back.

    Args:
        session: SQLAlchemy session
        context: Acting shop and staff member
        lines: Cart lines
        customer_id: Customer ID, None for a walk-in sale
        payment_method: 'cash' or 'loan'
        amount_paid: Amount paid now (loan sales only)
        now: Sale timestamp (defaults to the current time)
        walk_in_label: Customer name recorded for walk-in sales

    Returns:
        dict: Receipt view of the committed sale

    Raises:
        ValidationError: Empty cart, bad quantity, unknown method, product or
            customer, or a loan without a customer. Nothing is written.
        InsufficientStockError: A product ran out before its stock was taken
    """
    try:
        # 1. Validate input
        if not lines:
            raise ValidationError('Cart is empty')
        method = normalize_payment_method(payment_method)
        for line in lines:
            if line.quantity is None or line.quantity <= 0:
                raise ValidationError('Quantity must be greater than 0')
        if method == PaymentMethod.LOAN.value and customer_id is None:
            raise ValidationError('Loan sales need a registered customer')

        tenant = session.query(Tenant).filter(Tenant.id == context.tenant_id).first()
        if not tenant:
            raise NotFoundError(f'Shop {context.tenant_id} not found')

        customer = None
        if customer_id is not None:
            customer = session.query(Customer).filter(
                Customer.id == customer_id,
                Customer.tenant_id == context.tenant_id
            ).first()
            if not customer:
                raise ValidationError(f'Customer {customer_id} not found')

        # 2. Load products in one query, locked in id order where the backend supports it
        requested = _requested_by_product(lines)
        products = session.query(Product).filter(
            Product.id.in_(list(requested.keys())),
            Product.tenant_id == context.tenant_id
        ).order_by(Product.id).with_for_update().all()
        products_dict = {p.id: p for p in products}

        missing = [pid for pid in requested if pid not in products_dict]
        if missing:
            raise ValidationError(f'Product {missing[0]} not found')

        for pid, qty in requested.items():
            validate_cart_line(products_dict[pid], qty)

        # 3. Totals
        items_data = []
        total = ZERO
        for line in lines:
            product = products_dict[line.product_id]
            price = to_money(line.unit_price if line.unit_price is not None else product.selling_price)
            line_total = to_money(price * line.quantity)
            items_data.append({
                'product': product,
                'product_name': line.product_name or product.name,
                'quantity': line.quantity,
                'price': price,
                'total': line_total,
            })
            total += line_total

        paid, balance = settle_amounts(method, total, amount_paid)

        # 4. Sale with its receipt code
        when = now or datetime.now()
        sale = Sale(
            tenant_id=context.tenant_id,
            receipt_code=next_receipt_code(session, tenant, when),
            customer_id=customer.id if customer else None,
            customer_name=customer.name if customer else walk_in_label,
            total=total,
            paid=paid,
            balance=balance,
            payment_method=method,
            sold_by=context.staff_id,
            sold_by_name=context.staff_name,
            created_at=when
        )
        session.add(sale)
        session.flush()

        # 5. Sale items (name and price snapshots)
        for item in items_data:
            sale.items.append(SaleItem(
                product_id=item['product'].id,
                product_name=item['product_name'],
                quantity=item['quantity'],
                price=item['price'],
                total=item['total']
            ))
        session.flush()

        # 6. Stock
        for item in items_data:
            _decrement_stock(session, context.tenant_id, item['product'], item['quantity'])

        # 7. Credit: loan + customer debt
        if method == PaymentMethod.LOAN.value and balance > 0:
            session.add(Loan(
                tenant_id=context.tenant_id,
                sale_id=sale.id,
                customer_id=customer.id,
                customer_name=customer.name,
                total_amount=balance,
                paid_amount=ZERO,
                balance=balance,
                status=LoanStatus.UNPAID.value,
                created_at=when
            ))
            session.flush()
            adjust_customer_debt(session, context.tenant_id, customer.id, balance)

        session.commit()

    except (BusinessLogicError, NotFoundError) as e:
        session.rollback()
        logger.warning(f"Checkout rejected for tenant {context.tenant_id}: {e.message}")
        raise e
    except Exception as e:
        session.rollback()
        logger.error(f"Checkout failed for tenant {context.tenant_id}: {e}", exc_info=True)
        raise ShopError(f'Checkout failed: {str(e)}')

    logger.info(
        f"Sale {sale.receipt_code} committed: total={sale.total} paid={sale.paid} "
        f"method={sale.payment_method} tenant={context.tenant_id}"
    )
    invalidate_reports(context.tenant_id)
    return build_receipt(sale, tenant)


def get_sale(session, tenant_id: int, sale_id: int) -> Sale:
    """Get one sale of the shop or raise NotFoundError."""
    sale = session.query(Sale).filter(
        Sale.id == sale_id,
        Sale.tenant_id == tenant_id
    ).first()
    if not sale:
        raise NotFoundError(f'Sale {sale_id} not found')
    return sale


def get_sale_receipt(session, tenant_id: int, sale_id: int) -> Dict[str, Any]:
    """Receipt view for reprinting a past sale."""
    sale = get_sale(session, tenant_id, sale_id)
    return build_receipt(sale, sale.tenant)


def list_sales(
    session,
    tenant_id: int,
    query: Optional[str] = None,
    sold_by: Optional[int] = None,
    limit: int = 200
) -> List[Sale]:
    """
    Sales history, newest first.

    Args:
        query: Case-insensitive match on receipt code, customer or seller name
        sold_by: Only sales made by this staff member
    """
    q = session.query(Sale).filter(Sale.tenant_id == tenant_id)
    if sold_by is not None:
        q = q.filter(Sale.sold_by == sold_by)
    if query:
        pattern = f"%{query.strip()}%"
        q = q.filter(or_(
            Sale.receipt_code.ilike(pattern),
            Sale.customer_name.ilike(pattern),
            Sale.sold_by_name.ilike(pattern)
        ))
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
