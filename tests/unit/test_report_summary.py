"""
Unit tests for the sales aggregation behind the daily report.
"""

from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

from shopledger.services.report_service import summarize_sales, hour_label


def _sale(total, method, staff_id, staff_name, hour, minute=0):
    return SimpleNamespace(
        total=Decimal(str(total)),
        payment_method=method,
        sold_by=staff_id,
        sold_by_name=staff_name,
        created_at=datetime(2026, 3, 14, hour, minute),
    )


class TestSummarizeSales:

    def test_empty_day_is_all_zero(self):
        report = summarize_sales([])
        assert report['total_sales'] == Decimal('0')
        assert report['cash_sales'] == Decimal('0')
        assert report['credit_sales'] == Decimal('0')
        assert report['transaction_count'] == 0
        assert report['by_staff'] == []
        assert report['hourly'] == []

    def test_totals_split_by_payment_method(self):
        sales = [
            _sale(1200, 'cash', 1, 'Grace', 9),
            _sale(5000, 'loan', 2, 'Sam', 9, 30),
            _sale(300, 'cash', 2, 'Sam', 14),
        ]
        report = summarize_sales(sales)
        assert report['total_sales'] == Decimal('6500.00')
        assert report['cash_sales'] == Decimal('1500.00')
        assert report['credit_sales'] == Decimal('5000.00')
        assert report['transaction_count'] == 3

    def test_per_staff_subtotals_sorted_by_name(self):
        sales = [
            _sale(300, 'cash', 2, 'Sam', 10),
            _sale(1200, 'cash', 1, 'Grace', 11),
            _sale(200, 'cash', 2, 'Sam', 12),
        ]
        report = summarize_sales(sales)
        assert [(row['name'], row['total']) for row in report['by_staff']] == [
            ('Grace', Decimal('1200.00')),
            ('Sam', Decimal('500.00')),
        ]

    def test_staff_names_override_stored_names(self):
        report = summarize_sales([_sale(100, 'cash', 1, 'Old Name', 8)], staff_names={1: 'New Name'})
        assert report['by_staff'][0]['name'] == 'New Name'

    def test_zero_total_staff_left_out(self):
        report = summarize_sales([_sale(0, 'cash', 1, 'Grace', 8), _sale(50, 'cash', 2, 'Sam', 8)])
        assert [row['name'] for row in report['by_staff']] == ['Sam']

    def test_hourly_buckets_in_order(self):
        sales = [
            _sale(100, 'cash', 1, 'Grace', 15, 59),
            _sale(200, 'cash', 1, 'Grace', 9, 5),
            _sale(300, 'loan', 1, 'Grace', 9, 55),
        ]
        report = summarize_sales(sales)
        assert report['hourly'] == [
            {'hour': 9, 'label': '09:00-10:00', 'total': Decimal('500.00')},
            {'hour': 15, 'label': '15:00-16:00', 'total': Decimal('100.00')},
        ]


def test_hour_label_last_hour():
    assert hour_label(23) == '23:00-24:00'
