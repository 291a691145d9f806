"""
Customer debt service.

`Customer.total_debt` is a denormalized copy of the sum of the customer's open
loan balances. This module is the only writer of that column: checkout and
loan payments call `adjust_customer_debt`, and `reconcile_customer_debts`
rewrites it from the loans when the two have drifted apart.
"""
import logging
from decimal import Decimal
from typing import Dict, List

from sqlalchemy import update, func, case

from shopledger.database import expire_cached
from shopledger.models import Customer, Loan, LoanStatus
from shopledger.exceptions import NotFoundError
from shopledger.utils.money import to_money, ZERO

logger = logging.getLogger(__name__)


def adjust_customer_debt(session, tenant_id: int, customer_id: int, delta: Decimal) -> None:
    """
    Add `delta` to a customer's debt in one UPDATE, flooring the result at 0.

    Args:
        session: SQLAlchemy session (caller commits)
        tenant_id: Shop ID
        customer_id: Customer ID
        delta: Positive when a credit sale is made, negative for a repayment

    Raises:
        NotFoundError: if the customer does not belong to the shop
    """
    delta = to_money(delta)
    new_debt = Customer.total_debt + delta
    stmt = (
        update(Customer)
        .where(Customer.id == customer_id, Customer.tenant_id == tenant_id)
        .values(total_debt=case((new_debt < 0, 0), else_=new_debt))
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if not result.rowcount:
        raise NotFoundError(f'Customer {customer_id} not found')
    expire_cached(session, Customer, customer_id, 'total_debt')
    logger.debug(f"Customer {customer_id} debt adjusted by {delta}")


def compute_customer_debt(session, tenant_id: int, customer_id: int) -> Decimal:
    """Sum of balances of the customer's loans that are not fully paid."""
    total = session.query(func.coalesce(func.sum(Loan.balance), 0)).filter(
        Loan.tenant_id == tenant_id,
        Loan.customer_id == customer_id,
        Loan.status != LoanStatus.PAID.value
    ).scalar()
    return to_money(total or 0)


def _computed_debts(session, tenant_id: int) -> Dict[int, Decimal]:
    rows = session.query(
        Loan.customer_id,
        func.coalesce(func.sum(Loan.balance), 0)
    ).filter(
        Loan.tenant_id == tenant_id,
        Loan.customer_id.isnot(None),
        Loan.status != LoanStatus.PAID.value
    ).group_by(Loan.customer_id).all()
    return {customer_id: to_money(amount) for customer_id, amount in rows}


def find_debt_drift(session, tenant_id: int) -> List[dict]:
    """
    Reconciliation report: customers whose stored debt differs from their loans.

    Returns:
        List of dicts with customer_id, name, stored, computed and difference
        (stored - computed), ordered by customer name.
    """
    computed = _computed_debts(session, tenant_id)
    customers = session.query(Customer).filter(
        Customer.tenant_id == tenant_id
    ).order_by(Customer.name).all()

    drift = []
    for customer in customers:
        stored = to_money(customer.total_debt or 0)
        expected = computed.get(customer.id, ZERO)
        if stored != expected:
            drift.append({
                'customer_id': customer.id,
                'name': customer.name,
                'stored': stored,
                'computed': expected,
                'difference': stored - expected,
            })
    return drift


def reconcile_customer_debts(session, tenant_id: int) -> List[dict]:
    """
    Rewrite drifted customer debts from the open loan balances and commit.

    Returns:
        The drift rows that were corrected (empty when everything matched).
    """
    drift = find_debt_drift(session, tenant_id)
    if not drift:
        return drift

    try:
        for row in drift:
            session.execute(
                update(Customer)
                .where(Customer.id == row['customer_id'], Customer.tenant_id == tenant_id)
                .values(total_debt=row['computed'])
                .execution_options(synchronize_session=False)
            )
            expire_cached(session, Customer, row['customer_id'], 'total_debt')
            logger.warning(
                f"Customer {row['customer_id']} debt reconciled: "
                f"stored {row['stored']} -> computed {row['computed']}"
            )
        session.commit()
    except Exception:
        session.rollback()
        raise
    return drift
