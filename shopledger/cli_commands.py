"""
Flask CLI commands.

Commands:
- flask init-db: Create the database tables
- flask create-shop: Create a shop and its owner profile
- flask create-staff: Add a staff profile to a shop
- flask reconcile-debts: Rewrite drifted customer debts from open loans
"""

import re
import click
from shopledger import database
from shopledger.models import Tenant, StaffProfile, StaffRole
from shopledger.services.debt_service import find_debt_drift, reconcile_customer_debts


def _slugify(name):
    return re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-')


def _get_tenant(session, slug):
    tenant = session.query(Tenant).filter_by(slug=slug).first()
    if not tenant:
        raise click.ClickException(f'No shop with slug {slug!r}')
    return tenant


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        database.create_schema()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-shop')
    @click.option('--name', prompt=True, help='Shop display name (first word becomes the receipt prefix)')
    @click.option('--owner', prompt='Owner name', help='Name of the owner profile')
    @click.option('--slug', default=None, help='URL-safe identifier (derived from the name by default)')
    @click.option('--address', default=None)
    @click.option('--phone', default=None)
    @click.option('--footer', default=None, help='Message printed at the bottom of receipts')
    def create_shop(name, owner, slug, address, phone, footer):
        """Create a shop and its owner profile."""
        session = database.get_session()
        slug = slug or _slugify(name)
        if not slug:
            raise click.ClickException('Shop name must contain letters or digits')
        if session.query(Tenant).filter_by(slug=slug).first():
            raise click.ClickException(f'A shop with slug {slug!r} already exists')

        try:
            tenant = Tenant(slug=slug, name=name, address=address, phone=phone, footer_message=footer)
            session.add(tenant)
            session.flush()
            owner_profile = StaffProfile(tenant_id=tenant.id, name=owner, role=StaffRole.OWNER.value)
            session.add(owner_profile)
            session.commit()
        except Exception as e:
            session.rollback()
            raise click.ClickException(f'Could not create shop: {e}')

        click.echo(click.style(f'Shop created: {tenant.name} ({tenant.slug})', fg='green', bold=True))
        click.echo(f'   Shop ID: {tenant.id}')
        click.echo(f'   Owner profile ID: {owner_profile.id}')

    @app.cli.command('create-staff')
    @click.option('--shop', 'shop_slug', prompt='Shop slug')
    @click.option('--name', prompt=True)
    @click.option('--role', type=click.Choice([r.value for r in StaffRole]), default=StaffRole.STAFF.value)
    def create_staff(shop_slug, name, role):
        """Add a staff profile to a shop."""
        session = database.get_session()
        tenant = _get_tenant(session, shop_slug)
        try:
            staff = StaffProfile(tenant_id=tenant.id, name=name, role=role)
            session.add(staff)
            session.commit()
        except Exception as e:
            session.rollback()
            raise click.ClickException(f'Could not create staff profile: {e}')

        click.echo(click.style(f'Staff profile created: {staff.name} ({staff.role})', fg='green'))
        click.echo(f'   ID: {staff.id}')

    @app.cli.command('reconcile-debts')
    @click.option('--shop', 'shop_slug', required=True, help='Shop slug')
    @click.option('--dry-run', is_flag=True, help='Only report drift, change nothing')
    def reconcile_debts(shop_slug, dry_run):
        """Compare customer debts with open loan balances and fix drift."""
        session = database.get_session()
        tenant = _get_tenant(session, shop_slug)

        if dry_run:
            drift = find_debt_drift(session, tenant.id)
        else:
            drift = reconcile_customer_debts(session, tenant.id)

        if not drift:
            click.echo(click.style('No drift: every customer debt matches the open loans.', fg='green'))
            return

        for row in drift:
            click.echo(
                f"{row['name']} (#{row['customer_id']}): stored {row['stored']}, "
                f"loans {row['computed']}, difference {row['difference']}"
            )
        verb = 'found' if dry_run else 'fixed'
        click.echo(click.style(f'{len(drift)} customer(s) {verb}.', fg='yellow' if dry_run else 'green'))
