"""Stock intake and low-stock alerts (shop-scoped)."""
import logging
from datetime import datetime
from typing import Optional, List

from sqlalchemy import update

from shopledger.context import ShopContext
from shopledger.database import expire_cached
from shopledger.models import Product, StockEntry
from shopledger.exceptions import ShopError, BusinessLogicError, ValidationError, NotFoundError
from shopledger.utils.money import to_money

logger = logging.getLogger(__name__)


def add_stock(
    session,
    context: ShopContext,
    product_id: int,
    quantity: int,
    buying_price=None,
    supplier: Optional[str] = None
) -> StockEntry:
    """
    Receive stock for a product.

    Records a StockEntry, adds `quantity` to the product in one UPDATE and,
    when given, stores the new buying price on the product.

    Raises:
        ValidationError: quantity not positive or price invalid
        NotFoundError: product does not belong to the shop
    """
    try:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError('Quantity must be a whole number greater than 0')

        price = None
        if buying_price is not None and buying_price != '':
            try:
                price = to_money(buying_price)
            except ValueError as e:
                raise ValidationError(str(e))
            if price < 0:
                raise ValidationError('Buying price cannot be negative')

        product = session.query(Product).filter(
            Product.id == product_id,
            Product.tenant_id == context.tenant_id
        ).first()
        if not product:
            raise NotFoundError(f'Product {product_id} not found')

        values = {'quantity': Product.quantity + quantity, 'updated_at': datetime.now()}
        if price is not None:
            values['buying_price'] = price
        session.execute(
            update(Product)
            .where(Product.id == product.id, Product.tenant_id == context.tenant_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        expire_cached(session, Product, product.id)

        entry = StockEntry(
            tenant_id=context.tenant_id,
            product_id=product.id,
            quantity=quantity,
            buying_price=price,
            supplier=(supplier or '').strip() or None,
            added_by=context.staff_id
        )
        session.add(entry)
        session.commit()

    except (BusinessLogicError, NotFoundError) as e:
        session.rollback()
        raise e
    except Exception as e:
        session.rollback()
        raise ShopError(f'Error adding stock: {str(e)}')

    logger.info(f"Stock added: product {product_id} +{quantity} (tenant {context.tenant_id})")
    return entry


def get_low_stock_products(session, tenant_id: int) -> List[Product]:
    """Products at or below their restock threshold, lowest quantity first."""
    return session.query(Product).filter(
        Product.tenant_id == tenant_id,
        Product.quantity <= Product.low_stock_level
    ).order_by(Product.quantity.asc(), Product.name.asc()).all()
