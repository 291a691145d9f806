import pytest
from datetime import datetime
from decimal import Decimal

from shopledger import create_app, database
from shopledger.context import ShopContext
from shopledger.models import (
    Tenant, StaffProfile, StaffRole, Product, Customer
)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite)."""
    app = create_app('config.TestingConfig')
    return app


@pytest.fixture(scope='function', autouse=True)
def app_context(app):
    """
    One app context and a fresh schema per test.

    Requests made through the test client reuse this context, so the scoped
    session is only removed when the test ends.
    """
    with app.app_context():
        database.create_schema()
        yield
        database.get_session().remove()
        database.drop_schema()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Database session for testing."""
    session = database.get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def tenant1(session):
    """First test shop."""
    tenant = Tenant(
        slug='desire-wholesale',
        name='Desire Wholesale Shop',
        address='Plot 12, Main Street',
        phone='0700 000001',
        footer_message='Thank you for shopping with us!',
        active=True
    )
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant2(session):
    """Second test shop for isolation tests."""
    tenant = Tenant(slug='kampala-traders', name='Kampala Traders', active=True)
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture(scope='function')
def owner1(session, tenant1):
    staff = StaffProfile(tenant_id=tenant1.id, name='Grace Owner', role=StaffRole.OWNER.value)
    session.add(staff)
    session.commit()
    return staff


@pytest.fixture(scope='function')
def staff1(session, tenant1):
    staff = StaffProfile(tenant_id=tenant1.id, name='Sam Seller', role=StaffRole.STAFF.value)
    session.add(staff)
    session.commit()
    return staff


@pytest.fixture(scope='function')
def owner2(session, tenant2):
    staff = StaffProfile(tenant_id=tenant2.id, name='Other Owner', role=StaffRole.OWNER.value)
    session.add(staff)
    session.commit()
    return staff


@pytest.fixture(scope='function')
def owner_context(owner1):
    return ShopContext.for_staff(owner1)


@pytest.fixture(scope='function')
def staff_context(staff1):
    return ShopContext.for_staff(staff1)


@pytest.fixture(scope='function')
def product_a(session, tenant1):
    """Sugar 1kg: price 400, 10 on hand."""
    product = Product(
        tenant_id=tenant1.id,
        name='Sugar 1kg',
        category='Groceries',
        buying_price=Decimal('350'),
        selling_price=Decimal('400'),
        quantity=10,
        low_stock_level=2
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(session, tenant1):
    """Radio: price 5000, 3 on hand."""
    product = Product(
        tenant_id=tenant1.id,
        name='Radio',
        category='Electronics',
        buying_price=Decimal('4000'),
        selling_price=Decimal('5000'),
        quantity=3,
        low_stock_level=1
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_tenant2(session, tenant2):
    product = Product(
        tenant_id=tenant2.id,
        name='Soap',
        selling_price=Decimal('150'),
        quantity=40,
        low_stock_level=5
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def customer1(session, tenant1):
    customer = Customer(tenant_id=tenant1.id, name='John Debtor', phone='0772 123456')
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_tenant2(session, tenant2):
    customer = Customer(tenant_id=tenant2.id, name='Mary Elsewhere')
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def sale_time():
    return datetime(2026, 3, 14, 10, 30)


@pytest.fixture(scope='function')
def authenticated_client(client, owner1, tenant1):
    """Client signed in as the owner of tenant1."""
    with client.session_transaction() as sess:
        sess['tenant_id'] = tenant1.id
        sess['staff_id'] = owner1.id
    return client


@pytest.fixture(scope='function')
def staff_client(client, staff1, tenant1):
    """Client signed in as a non-owner staff member of tenant1."""
    with client.session_transaction() as sess:
        sess['tenant_id'] = tenant1.id
        sess['staff_id'] = staff1.id
    return client
