"""
Reporting service - read-only rollups over committed sales.
"""
import logging
from datetime import datetime, date, time, timedelta
from decimal import Decimal
from typing import Iterable, Dict, Any, Optional

from sqlalchemy import func

from shopledger.context import ShopContext
from shopledger.models import Sale, Product, Customer, Loan, LoanStatus, PaymentMethod, StaffProfile
from shopledger.exceptions import ValidationError
from shopledger.services.cache_service import cached_report
from shopledger.services.stock_service import get_low_stock_products
from shopledger.utils.money import to_money, ZERO

logger = logging.getLogger(__name__)


def hour_label(hour: int) -> str:
    """Bucket label, e.g. 9 -> '09:00-10:00'."""
    return f"{hour:02d}:00-{hour + 1:02d}:00"


def summarize_sales(sales: Iterable, staff_names: Optional[Dict[int, str]] = None) -> Dict[str, Any]:
    """
    Aggregate a closed set of sales. Pure, no database access.

    Args:
        sales: Objects with total, payment_method, sold_by, sold_by_name, created_at
        staff_names: Optional staff id -> display name, preferred over the
            name stored on the sale

    Returns:
        dict with total_sales, cash_sales, credit_sales, transaction_count,
        by_staff (non-zero subtotals, by name) and hourly (by hour).
    """
    staff_names = staff_names or {}
    total = cash = credit = ZERO
    count = 0
    by_staff: Dict[Any, Dict[str, Any]] = {}
    hourly: Dict[int, Decimal] = {}

    for sale in sales:
        amount = to_money(sale.total)
        count += 1
        total += amount
        if sale.payment_method == PaymentMethod.CASH.value:
            cash += amount
        elif sale.payment_method == PaymentMethod.LOAN.value:
            credit += amount

        row = by_staff.setdefault(sale.sold_by, {
            'staff_id': sale.sold_by,
            'name': staff_names.get(sale.sold_by) or sale.sold_by_name or 'Unknown',
            'total': ZERO,
        })
        row['total'] += amount

        hour = sale.created_at.hour
        hourly[hour] = hourly.get(hour, ZERO) + amount

    return {
        'total_sales': total,
        'cash_sales': cash,
        'credit_sales': credit,
        'transaction_count': count,
        'by_staff': sorted(
            (row for row in by_staff.values() if row['total'] != 0),
            key=lambda row: row['name']
        ),
        'hourly': [
            {'hour': hour, 'label': hour_label(hour), 'total': hourly[hour]}
            for hour in sorted(hourly)
        ],
    }


def _day_bounds(start: date, end: Optional[date]) -> tuple:
    end = end or start
    if end < start:
        raise ValidationError('End date cannot be before start date')
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


def get_daily_report(
    session,
    tenant_id: int,
    start: date,
    end: Optional[date] = None,
    staff_id: Optional[int] = None
) -> Dict[str, Any]:
    """
    Sales report for a day, or an inclusive range of days (shop-scoped).

    Cached per shop; checkouts and loan payments invalidate it.
    """
    start_dt, end_dt = _day_bounds(start, end)
    key = f"daily:{start.isoformat()}:{(end or start).isoformat()}:{staff_id or 'all'}"

    def load():
        query = session.query(Sale).filter(
            Sale.tenant_id == tenant_id,
            Sale.created_at >= start_dt,
            Sale.created_at < end_dt
        )
        if staff_id is not None:
            query = query.filter(Sale.sold_by == staff_id)
        sales = query.order_by(Sale.created_at.asc()).all()

        staff_names = dict(
            session.query(StaffProfile.id, StaffProfile.name)
            .filter(StaffProfile.tenant_id == tenant_id)
            .all()
        )
        report = summarize_sales(sales, staff_names)
        report['start'] = start.isoformat()
        report['end'] = (end or start).isoformat()
        logger.debug(f"Daily report built for tenant {tenant_id}: {report['transaction_count']} sales")
        return report

    return cached_report(tenant_id, key, load)


def get_dashboard_summary(session, context: ShopContext, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Dashboard figures for the acting staff member.

    Owners see the whole shop's sales for the day, staff only their own.
    """
    today = today or date.today()
    start_dt, end_dt = _day_bounds(today, None)
    tenant_id = context.tenant_id

    sales_query = session.query(Sale).filter(
        Sale.tenant_id == tenant_id,
        Sale.created_at >= start_dt,
        Sale.created_at < end_dt
    )
    if not context.is_owner:
        sales_query = sales_query.filter(Sale.sold_by == context.staff_id)
    todays_sales = sales_query.order_by(Sale.created_at.desc()).all()
    summary = summarize_sales(todays_sales)

    product_count = session.query(func.count(Product.id)).filter(
        Product.tenant_id == tenant_id
    ).scalar() or 0
    customer_count = session.query(func.count(Customer.id)).filter(
        Customer.tenant_id == tenant_id
    ).scalar() or 0

    outstanding = session.query(
        func.count(Loan.id),
        func.coalesce(func.sum(Loan.balance), 0)
    ).filter(
        Loan.tenant_id == tenant_id,
        Loan.status != LoanStatus.PAID.value
    ).first()

    low_stock = get_low_stock_products(session, tenant_id)

    return {
        'date': today.isoformat(),
        'today_total': summary['total_sales'],
        'today_cash': summary['cash_sales'],
        'today_credit': summary['credit_sales'],
        'today_transactions': summary['transaction_count'],
        'product_count': product_count,
        'customer_count': customer_count,
        'open_loan_count': outstanding[0] or 0,
        'outstanding_loans': to_money(outstanding[1] or 0),
        'low_stock': [
            {
                'id': p.id,
                'name': p.name,
                'quantity': p.quantity,
                'low_stock_level': p.low_stock_level,
            }
            for p in low_stock
        ],
        'recent_sales': [
            {
                'id': s.id,
                'receipt_code': s.receipt_code,
                'customer_name': s.customer_name,
                'total': to_money(s.total),
                'payment_method': s.payment_method,
                'created_at': s.created_at.isoformat(),
            }
            for s in todays_sales[:5]
        ],
    }
