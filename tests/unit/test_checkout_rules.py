"""
Unit tests for checkout and loan rules that need no database.
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from shopledger.exceptions import ValidationError, InsufficientStockError
from shopledger.services.sales_service import (
    CartLine, parse_cart_lines, normalize_payment_method, settle_amounts, validate_cart_line
)
from shopledger.services.loan_service import loan_status_for, compute_payment_effect


class TestSettleAmounts:

    def test_cash_is_fully_paid(self):
        paid, balance = settle_amounts('cash', Decimal('1200'), amount_paid=50)
        assert paid == Decimal('1200.00')
        assert balance == Decimal('0.00')

    def test_loan_without_amount_owes_everything(self):
        paid, balance = settle_amounts('loan', Decimal('5000'))
        assert paid == Decimal('0.00')
        assert balance == Decimal('5000.00')

    def test_loan_partial_payment(self):
        paid, balance = settle_amounts('loan', Decimal('5000'), '1500')
        assert paid == Decimal('1500.00')
        assert balance == Decimal('3500.00')

    def test_loan_overpayment_clamped_to_total(self):
        paid, balance = settle_amounts('loan', Decimal('5000'), 9000)
        assert paid == Decimal('5000.00')
        assert balance == Decimal('0.00')

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            settle_amounts('loan', Decimal('5000'), -1)

    def test_garbage_amount_rejected(self):
        with pytest.raises(ValidationError):
            settle_amounts('loan', Decimal('5000'), 'lots')


class TestPaymentMethod:

    @pytest.mark.parametrize('value,expected', [('cash', 'cash'), ('LOAN', 'loan'), (' Cash ', 'cash')])
    def test_known_methods(self, value, expected):
        assert normalize_payment_method(value) == expected

    @pytest.mark.parametrize('value', ['card', '', None])
    def test_unknown_methods_rejected(self, value):
        with pytest.raises(ValidationError):
            normalize_payment_method(value)


class TestParseCartLines:

    def test_parses_lines_and_ignores_client_prices(self):
        lines = parse_cart_lines([{'product_id': 3, 'quantity': '2', 'price': 1}])
        assert lines == [CartLine(product_id=3, quantity=2)]

    def test_accepts_prices_when_asked(self):
        lines = parse_cart_lines([{'product_id': 3, 'quantity': 2, 'price': '400'}], accept_prices=True)
        assert lines[0].unit_price == Decimal('400.00')

    def test_missing_items_is_empty_cart(self):
        assert parse_cart_lines(None) == []

    @pytest.mark.parametrize('items', [
        'nope',
        [{'product_id': 1, 'quantity': 1.5}],
        [{'product_id': 'x', 'quantity': 1}],
        [{'product_id': 1, 'quantity': True}],
        ['not-an-object'],
    ])
    def test_bad_items_rejected(self, items):
        with pytest.raises(ValidationError):
            parse_cart_lines(items)


class TestValidateCartLine:

    def test_enough_stock_passes(self):
        validate_cart_line(SimpleNamespace(name='Sugar', quantity=5), 5)

    def test_more_than_on_hand_refused(self):
        with pytest.raises(InsufficientStockError) as exc:
            validate_cart_line(SimpleNamespace(name='Sugar', quantity=2), 3)
        assert exc.value.available == 2
        assert exc.value.status_code == 409

    def test_zero_quantity_refused(self):
        with pytest.raises(ValidationError):
            validate_cart_line(SimpleNamespace(name='Sugar', quantity=2), 0)


class TestLoanStatus:

    def test_nothing_paid_is_unpaid(self):
        assert loan_status_for(Decimal('0'), Decimal('100')) == 'unpaid'

    def test_something_paid_is_part_paid(self):
        assert loan_status_for(Decimal('10'), Decimal('90')) == 'part-paid'

    def test_no_balance_is_paid(self):
        assert loan_status_for(Decimal('100'), Decimal('0')) == 'paid'


class TestComputePaymentEffect:

    def test_partial_payment(self):
        effective, paid, balance, status = compute_payment_effect(
            Decimal('5000'), Decimal('0'), Decimal('5000'), Decimal('2000')
        )
        assert effective == Decimal('2000.00')
        assert paid == Decimal('2000.00')
        assert balance == Decimal('3000.00')
        assert status == 'part-paid'

    def test_overpayment_is_capped_at_balance(self):
        effective, paid, balance, status = compute_payment_effect(
            Decimal('5000'), Decimal('0'), Decimal('5000'), Decimal('7000')
        )
        assert effective == Decimal('5000.00')
        assert paid == Decimal('5000.00')
        assert balance == Decimal('0.00')
        assert status == 'paid'

    def test_effect_never_exceeds_balance(self):
        for amount in ('1', '999.99', '1000', '1000.01', '250000'):
            effective, _, balance, _ = compute_payment_effect(
                Decimal('3000'), Decimal('2000'), Decimal('1000'), Decimal(amount)
            )
            assert effective <= Decimal('1000')
            assert balance >= 0

    def test_non_positive_amount_rejected(self):
        with pytest.raises(ValidationError):
            compute_payment_effect(Decimal('100'), Decimal('0'), Decimal('100'), Decimal('0'))
