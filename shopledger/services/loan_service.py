"""
Loan ledger service - payments against credit sales (shop-scoped).
"""
import logging
from decimal import Decimal
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple

from shopledger.context import ShopContext
from shopledger.models import Loan, LoanPayment, LoanStatus
from shopledger.exceptions import ShopError, BusinessLogicError, ValidationError, NotFoundError
from shopledger.services.debt_service import adjust_customer_debt
from shopledger.services.cache_service import invalidate_reports
from shopledger.utils.money import to_money, ZERO

logger = logging.getLogger(__name__)


def loan_status_for(paid_amount: Decimal, balance: Decimal) -> str:
    """paid when nothing is owed, part-paid once something was paid, else unpaid."""
    if balance <= 0:
        return LoanStatus.PAID.value
    if paid_amount > 0:
        return LoanStatus.PART_PAID.value
    return LoanStatus.UNPAID.value


def compute_payment_effect(total_amount: Decimal, paid_amount: Decimal, balance: Decimal,
                           amount: Decimal) -> Tuple[Decimal, Decimal, Decimal, str]:
    """
    Apply a payment to a loan's figures without touching the database.

    Overpayment is capped at the current balance, so the balance never goes
    below zero and no credit is created.

    Returns:
        (effective, new_paid_amount, new_balance, new_status)
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError('Payment amount must be greater than 0')

    effective = min(amount, to_money(balance))
    new_paid = to_money(paid_amount) + effective
    new_balance = max(ZERO, to_money(total_amount) - new_paid)
    return effective, new_paid, new_balance, loan_status_for(new_paid, new_balance)


def record_loan_payment(
    session,
    context: ShopContext,
    loan_id: int,
    amount,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Record a payment against a loan and lower the customer's debt (shop-scoped).

    Args:
        session: SQLAlchemy session
        context: Acting shop and staff member (the receiver)
        loan_id: Loan ID
        amount: Amount handed over; anything above the balance is ignored
        now: Payment timestamp (defaults to the current time)

    Returns:
        dict with requested and applied amounts, the updated loan and the payment

    Raises:
        ValidationError: amount is not a positive number
        NotFoundError: loan does not belong to the shop
        BusinessLogicError: loan is already paid
    """
    try:
        try:
            requested = to_money(amount)
        except ValueError as e:
            raise ValidationError(str(e))
        if requested <= 0:
            raise ValidationError('Payment amount must be greater than 0')

        loan = session.query(Loan).filter(
            Loan.id == loan_id,
            Loan.tenant_id == context.tenant_id
        ).with_for_update().first()
        if not loan:
            raise NotFoundError(f'Loan {loan_id} not found')
        if loan.status == LoanStatus.PAID.value or loan.balance <= 0:
            raise BusinessLogicError(f'Loan {loan_id} is already paid')

        effective, new_paid, new_balance, new_status = compute_payment_effect(
            loan.total_amount, loan.paid_amount, loan.balance, requested
        )

        payment = LoanPayment(
            loan_id=loan.id,
            amount=effective,
            received_by=context.staff_id,
            received_by_name=context.staff_name,
            created_at=now or datetime.now()
        )
        session.add(payment)

        loan.paid_amount = new_paid
        loan.balance = new_balance
        loan.status = new_status
        session.flush()

        # Loans without a linked customer have no debt to adjust
        if loan.customer_id is not None:
            adjust_customer_debt(session, context.tenant_id, loan.customer_id, -effective)

        session.commit()

    except (BusinessLogicError, NotFoundError) as e:
        session.rollback()
        raise e
    except Exception as e:
        session.rollback()
        logger.error(f"Loan payment failed for loan {loan_id}: {e}", exc_info=True)
        raise ShopError(f'Loan payment failed: {str(e)}')

    if effective < requested:
        logger.info(f"Loan {loan.id} payment capped: {requested} requested, {effective} applied")
    logger.info(f"Loan {loan.id} payment of {effective} recorded, balance {loan.balance} ({loan.status})")
    invalidate_reports(context.tenant_id)

    return {
        'requested_amount': requested,
        'applied_amount': effective,
        'loan': loan_to_dict(loan),
        'payment': payment_to_dict(payment),
    }


def list_loans(session, tenant_id: int, status: Optional[str] = None,
               customer_id: Optional[int] = None) -> List[Loan]:
    """Loans of the shop, newest first, optionally by status or customer."""
    query = session.query(Loan).filter(Loan.tenant_id == tenant_id)
    if status:
        try:
            query = query.filter(Loan.status == LoanStatus(status).value)
        except ValueError:
            raise ValidationError(f'Unknown loan status: {status!r}')
    if customer_id is not None:
        query = query.filter(Loan.customer_id == customer_id)
    return query.order_by(Loan.created_at.desc(), Loan.id.desc()).all()


def get_loan_detail(session, tenant_id: int, loan_id: int) -> Dict[str, Any]:
    """Loan with its payment history."""
    loan = session.query(Loan).filter(
        Loan.id == loan_id,
        Loan.tenant_id == tenant_id
    ).first()
    if not loan:
        raise NotFoundError(f'Loan {loan_id} not found')

    data = loan_to_dict(loan)
    data['receipt_code'] = loan.sale.receipt_code if loan.sale else None
    data['payments'] = [payment_to_dict(p) for p in loan.payments]
    return data


def loan_to_dict(loan: Loan) -> Dict[str, Any]:
    return {
        'id': loan.id,
        'sale_id': loan.sale_id,
        'customer_id': loan.customer_id,
        'customer_name': loan.customer_name,
        'total_amount': float(loan.total_amount),
        'paid_amount': float(loan.paid_amount),
        'balance': float(loan.balance),
        'status': loan.status,
        'created_at': loan.created_at.isoformat() if loan.created_at else None,
    }


def payment_to_dict(payment: LoanPayment) -> Dict[str, Any]:
    return {
        'id': payment.id,
        'loan_id': payment.loan_id,
        'amount': float(payment.amount),
        'received_by': payment.received_by,
        'received_by_name': payment.received_by_name,
        'created_at': payment.created_at.isoformat() if payment.created_at else None,
    }
