"""
Integration tests for the JSON endpoints.
"""

import pytest
from decimal import Decimal

from shopledger.models import Customer, Product, Sale


def _checkout(client, items, **extra):
    body = {'items': items}
    body.update(extra)
    return client.post('/sales/checkout', json=body)


class TestAccess:

    @pytest.mark.parametrize('path', ['/sales/', '/loans/', '/customers/', '/products/',
                                      '/reports/daily', '/staff/me'])
    def test_requires_signed_in_staff(self, client, path):
        response = client.get(path)
        assert response.status_code == 401
        assert response.get_json()['status'] == 'error'

    def test_inactive_profile_is_rejected(self, client, session, staff1, tenant1):
        staff1.active = False
        session.commit()
        with client.session_transaction() as sess:
            sess['tenant_id'] = tenant1.id
            sess['staff_id'] = staff1.id

        assert client.get('/sales/').status_code == 401

    def test_owner_only_endpoints(self, staff_client):
        assert staff_client.get('/staff/').status_code == 403
        assert staff_client.post('/staff/', json={'name': 'New'}).status_code == 403
        assert staff_client.get('/reports/debt-drift').status_code == 403

    def test_me_returns_profile_and_token(self, staff_client, staff1):
        data = staff_client.get('/staff/me').get_json()
        assert data['staff']['name'] == 'Sam Seller'
        assert data['staff']['role'] == 'staff'
        assert data['csrf_token']

    def test_unknown_route_is_json(self, authenticated_client):
        response = authenticated_client.get('/nowhere')
        assert response.status_code == 404
        assert response.get_json()['message'] == 'Not Found'


class TestCheckoutEndpoint:

    def test_cash_sale(self, authenticated_client, session, product_a):
        response = _checkout(authenticated_client, [{'product_id': product_a.id, 'quantity': 2}])

        assert response.status_code == 201
        receipt = response.get_json()['receipt']
        assert receipt['receipt_code'].startswith('DESI-')
        assert receipt['total'] == 800.0
        assert receipt['paid'] == 800.0
        assert receipt['customer_name'] == 'Walk-in Customer'
        assert receipt['items'][0]['product_name'] == 'Sugar 1kg'

        session.expire_all()
        assert session.get(Product, product_a.id).quantity == 8

    def test_client_prices_are_ignored(self, authenticated_client, product_a):
        response = _checkout(authenticated_client,
                             [{'product_id': product_a.id, 'quantity': 1, 'price': 1}])
        assert response.status_code == 201
        assert response.get_json()['receipt']['total'] == 400.0

    def test_loan_sale_raises_debt(self, authenticated_client, session, product_b, customer1):
        response = _checkout(authenticated_client, [{'product_id': product_b.id, 'quantity': 1}],
                             customer_id=customer1.id, payment_method='loan', amount_paid=1000)

        assert response.status_code == 201
        receipt = response.get_json()['receipt']
        assert receipt['balance'] == 4000.0
        assert receipt['show_balance'] is True
        session.expire_all()
        assert session.get(Customer, customer1.id).total_debt == Decimal('4000')

    def test_insufficient_stock_is_409(self, authenticated_client, session, product_b):
        response = _checkout(authenticated_client, [{'product_id': product_b.id, 'quantity': 4}])

        assert response.status_code == 409
        assert response.get_json()['product'] == 'Radio'
        assert session.query(Sale).count() == 0

    @pytest.mark.parametrize('body', [
        {'items': []},
        {'items': 'sugar'},
        {'items': [{'product_id': 1, 'quantity': 0}]},
        {'items': [{'product_id': 1, 'quantity': 1}], 'payment_method': 'barter'},
        {'items': [{'product_id': 1, 'quantity': 1}], 'payment_method': 'loan'},
    ])
    def test_rejected_carts_are_400(self, authenticated_client, session, product_a, body):
        response = authenticated_client.post('/sales/checkout', json=body)
        assert response.status_code == 400
        assert session.query(Sale).count() == 0


class TestSalesHistoryAndReceipts:

    def test_staff_see_only_own_sales(self, app, session, owner1, staff1, tenant1, product_a):
        owner_client = app.test_client()
        seller_client = app.test_client()
        for c, profile in ((owner_client, owner1), (seller_client, staff1)):
            with c.session_transaction() as sess:
                sess['tenant_id'] = tenant1.id
                sess['staff_id'] = profile.id
            _checkout(c, [{'product_id': product_a.id, 'quantity': 1}])

        assert len(owner_client.get('/sales/').get_json()['sales']) == 2
        own = seller_client.get('/sales/').get_json()['sales']
        assert [s['sold_by_name'] for s in own] == ['Sam Seller']

    def test_receipt_json_text_and_pdf(self, authenticated_client, product_a):
        receipt = _checkout(authenticated_client,
                            [{'product_id': product_a.id, 'quantity': 1}]).get_json()['receipt']
        sale_id = receipt['sale_id']

        data = authenticated_client.get(f'/sales/{sale_id}/receipt').get_json()['receipt']
        assert data['receipt_code'] == receipt['receipt_code']

        text = authenticated_client.get(f'/sales/{sale_id}/receipt?format=text')
        assert text.mimetype == 'text/plain'
        assert f"Receipt ID: {receipt['receipt_code']}" in text.get_data(as_text=True)

        pdf = authenticated_client.get(f'/sales/{sale_id}/receipt.pdf')
        assert pdf.status_code == 200
        assert pdf.mimetype == 'application/pdf'
        assert pdf.data.startswith(b'%PDF')

    def test_receipt_of_unknown_sale(self, authenticated_client):
        assert authenticated_client.get('/sales/999/receipt').status_code == 404


class TestLoanEndpoints:

    def test_payment_capped_at_balance(self, authenticated_client, session, product_b, customer1):
        _checkout(authenticated_client, [{'product_id': product_b.id, 'quantity': 1}],
                  customer_id=customer1.id, payment_method='loan')
        loan = authenticated_client.get('/loans/?status=unpaid').get_json()['loans'][0]

        response = authenticated_client.post(f"/loans/{loan['id']}/payments", json={'amount': 7000})

        assert response.status_code == 201
        data = response.get_json()
        assert data['requested_amount'] == 7000.0
        assert data['applied_amount'] == 5000.0
        assert data['loan']['status'] == 'paid'

        detail = authenticated_client.get(f"/loans/{loan['id']}").get_json()['loan']
        assert [p['amount'] for p in detail['payments']] == [5000.0]

        again = authenticated_client.post(f"/loans/{loan['id']}/payments", json={'amount': 10})
        assert again.status_code == 400

    def test_missing_amount(self, authenticated_client):
        assert authenticated_client.post('/loans/1/payments', json={}).status_code == 400

    def test_unknown_status_filter(self, authenticated_client):
        assert authenticated_client.get('/loans/?status=forgiven').status_code == 400


class TestCatalogEndpoints:

    def test_create_product_and_receive_stock(self, authenticated_client):
        created = authenticated_client.post('/products/', json={
            'name': 'Rice 5kg', 'category': 'Groceries', 'selling_price': '21000', 'quantity': 2,
        })
        assert created.status_code == 201
        product = created.get_json()['product']
        assert product['low_stock_level'] == 5
        assert product['is_low_stock'] is True

        stocked = authenticated_client.post(f"/products/{product['id']}/stock",
                                            json={'quantity': 10, 'buying_price': '18000'})
        assert stocked.status_code == 201
        assert stocked.get_json()['product']['quantity'] == 12
        assert stocked.get_json()['product']['buying_price'] == 18000.0

        low = authenticated_client.get('/products/low-stock').get_json()['products']
        assert low == []

    def test_product_requires_price(self, authenticated_client):
        assert authenticated_client.post('/products/', json={'name': 'Free'}).status_code == 400

    def test_cart_check(self, authenticated_client, product_b):
        ok = authenticated_client.post(f'/products/{product_b.id}/cart-check', json={'quantity': 3})
        assert ok.status_code == 200
        too_many = authenticated_client.post(f'/products/{product_b.id}/cart-check', json={'quantity': 4})
        assert too_many.status_code == 409

    def test_other_shop_product_is_404(self, authenticated_client, product_tenant2):
        response = authenticated_client.post(f'/products/{product_tenant2.id}/stock', json={'quantity': 1})
        assert response.status_code == 404

    def test_customers(self, authenticated_client, customer1, customer_tenant2):
        created = authenticated_client.post('/customers/', json={'name': 'Peter Okello', 'phone': '0755'})
        assert created.status_code == 201

        names = [c['name'] for c in authenticated_client.get('/customers/').get_json()['customers']]
        assert names == ['John Debtor', 'Peter Okello']

        found = authenticated_client.get('/customers/?q=okello').get_json()['customers']
        assert [c['name'] for c in found] == ['Peter Okello']

        detail = authenticated_client.get(f'/customers/{customer1.id}').get_json()['customer']
        assert detail['computed_debt'] == 0.0
        assert detail['sale_count'] == 0

        assert authenticated_client.get(f'/customers/{customer_tenant2.id}').status_code == 404

    def test_create_staff(self, authenticated_client):
        response = authenticated_client.post('/staff/', json={'name': 'Night Cashier'})
        assert response.status_code == 201
        assert response.get_json()['staff']['role'] == 'staff'

        bad = authenticated_client.post('/staff/', json={'name': 'X', 'role': 'manager'})
        assert bad.status_code == 400


class TestReportEndpoints:

    def test_daily_report_and_dashboard(self, authenticated_client, product_a):
        _checkout(authenticated_client, [{'product_id': product_a.id, 'quantity': 2}])

        report = authenticated_client.get('/reports/daily').get_json()['report']
        assert report['total_sales'] == 800.0
        assert report['transaction_count'] == 1

        dashboard = authenticated_client.get('/reports/dashboard').get_json()['dashboard']
        assert dashboard['today_total'] == 800.0

    def test_bad_date(self, authenticated_client):
        assert authenticated_client.get('/reports/daily?date=14/03/2026').status_code == 400

    def test_debt_drift(self, authenticated_client, session, customer1):
        customer = session.get(Customer, customer1.id)
        customer.total_debt = Decimal('90')
        session.commit()

        data = authenticated_client.get('/reports/debt-drift').get_json()
        assert data['count'] == 1
        assert data['drift'][0]['difference'] == 90.0


class TestMetricsEndpoint:

    def test_exposes_shop_counters(self, authenticated_client, client, product_a):
        _checkout(authenticated_client, [{'product_id': product_a.id, 'quantity': 1}])

        response = client.get('/metrics')
        assert response.status_code == 200
        body = response.get_data(as_text=True)
        assert 'shopledger_checkouts_total' in body
        assert 'http_requests_total' in body


class TestEditEndpoints:

    def test_edit_product_keeps_past_sale_snapshots(self, authenticated_client, product_a):
        receipt = _checkout(authenticated_client,
                            [{'product_id': product_a.id, 'quantity': 1}]).get_json()['receipt']

        response = authenticated_client.patch(f'/products/{product_a.id}', json={
            'name': 'Sugar 1kg (Kakira)', 'selling_price': '450', 'quantity': 20,
        })
        assert response.status_code == 200
        product = response.get_json()['product']
        assert product['name'] == 'Sugar 1kg (Kakira)'
        assert product['selling_price'] == 450.0
        assert product['quantity'] == 20
        assert product['category'] == 'Groceries'

        old = authenticated_client.get(f"/sales/{receipt['sale_id']}/receipt").get_json()['receipt']
        assert old['items'][0]['product_name'] == 'Sugar 1kg'
        assert old['items'][0]['price'] == 400.0

        new = _checkout(authenticated_client, [{'product_id': product_a.id, 'quantity': 1}])
        assert new.get_json()['receipt']['total'] == 450.0

    @pytest.mark.parametrize('body', [
        {},
        {'name': '  '},
        {'selling_price': 'free'},
        {'selling_price': -1},
        {'quantity': -2},
        {'low_stock_level': None},
    ])
    def test_bad_product_edit(self, authenticated_client, session, product_a, body):
        response = authenticated_client.patch(f'/products/{product_a.id}', json=body)
        assert response.status_code == 400
        session.expire_all()
        assert session.get(Product, product_a.id).name == 'Sugar 1kg'

    def test_edit_other_shop_product(self, authenticated_client, product_tenant2):
        response = authenticated_client.patch(f'/products/{product_tenant2.id}', json={'name': 'Mine'})
        assert response.status_code == 404

    def test_owner_removes_staff(self, app, authenticated_client, staff1, tenant1):
        response = authenticated_client.delete(f'/staff/{staff1.id}')
        assert response.status_code == 200
        assert response.get_json()['staff']['active'] is False

        removed = app.test_client()
        with removed.session_transaction() as sess:
            sess['tenant_id'] = tenant1.id
            sess['staff_id'] = staff1.id
        assert removed.get('/sales/').status_code == 401

    def test_owner_cannot_remove_self(self, authenticated_client, owner1):
        assert authenticated_client.delete(f'/staff/{owner1.id}').status_code == 400

    def test_staff_cannot_remove_staff(self, staff_client, owner1):
        assert staff_client.delete(f'/staff/{owner1.id}').status_code == 403

    def test_remove_other_shop_staff(self, authenticated_client, owner2):
        assert authenticated_client.delete(f'/staff/{owner2.id}').status_code == 404
