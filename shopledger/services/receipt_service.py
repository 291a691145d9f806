"""
Receipt code generation.

Codes look like ``DESW-20260314-00007``: shop prefix, calendar day, and the
same-day sequence number for that shop.
"""
import logging
import unicodedata
from datetime import date, datetime
from typing import Union

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from shopledger.models import ReceiptSequence

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = 'SHOP'
PREFIX_LENGTH = 4
SEQUENCE_DIGITS = 5

# Dialects with INSERT ... ON CONFLICT DO UPDATE ... RETURNING
_UPSERT_INSERTS = {
    'postgresql': pg_insert,
    'sqlite': sqlite_insert,
}


def shop_prefix(shop_name: str) -> str:
    """
    Uppercased first word of the shop name, cut to 4 characters.

    Accents are folded ('Épicerie' -> 'EPIC') and characters other than A-Z
    are dropped ('7Eleven' -> 'ELEV'), so receipt codes always start with
    letters. A first word with no letters left gives the default prefix.
    """
    words = (shop_name or '').split()
    if not words:
        return DEFAULT_PREFIX
    folded = unicodedata.normalize('NFKD', words[0].upper())
    letters = ''.join(ch for ch in folded if 'A' <= ch <= 'Z')
    return letters[:PREFIX_LENGTH] or DEFAULT_PREFIX


def format_receipt_code(shop_name: str, on_date: Union[date, datetime], existing_count: int) -> str:
    """
    Build a receipt code from its inputs. Pure and deterministic.

    Args:
        shop_name: Shop display name
        on_date: Day of the sale
        existing_count: Sales already recorded for the shop on that day

    Returns:
        str: ``{PREFIX}-{YYYYMMDD}-{existing_count + 1:05d}``
    """
    if existing_count < 0:
        raise ValueError('existing_count cannot be negative')
    return f"{shop_prefix(shop_name)}-{on_date.strftime('%Y%m%d')}-{existing_count + 1:0{SEQUENCE_DIGITS}d}"


def allocate_receipt_number(session, tenant_id: int, day: date) -> int:
    """
    Atomically take the next same-day number for a shop.

    Runs inside the caller's transaction, so a rolled-back checkout also
    returns its number. Two concurrent checkouts serialize on the counter row
    and always get different numbers.
    """
    dialect = session.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)

    if insert is not None:
        stmt = (
            insert(ReceiptSequence)
            .values(tenant_id=tenant_id, day=day, last_number=1)
            .on_conflict_do_update(
                index_elements=[ReceiptSequence.tenant_id, ReceiptSequence.day],
                set_={'last_number': ReceiptSequence.last_number + 1},
            )
            .returning(ReceiptSequence.last_number)
        )
        return session.execute(stmt).scalar_one()

    return _allocate_with_update(session, tenant_id, day)


def _allocate_with_update(session, tenant_id: int, day: date) -> int:
    """Portable fallback: increment the row, creating it on first use."""
    stmt = (
        update(ReceiptSequence)
        .where(ReceiptSequence.tenant_id == tenant_id, ReceiptSequence.day == day)
        .values(last_number=ReceiptSequence.last_number + 1)
        .execution_options(synchronize_session=False)
    )

    if not session.execute(stmt).rowcount:
        try:
            with session.begin_nested():
                session.add(ReceiptSequence(tenant_id=tenant_id, day=day, last_number=1))
            return 1
        except IntegrityError:
            # Another checkout created the row first
            logger.info(f"Receipt sequence for tenant {tenant_id} on {day} created concurrently, retrying")
            if not session.execute(stmt).rowcount:
                raise

    return (
        session.query(ReceiptSequence.last_number)
        .filter(ReceiptSequence.tenant_id == tenant_id, ReceiptSequence.day == day)
        .scalar()
    )


def next_receipt_code(session, tenant, when: datetime) -> str:
    """Allocate a number for the shop's day and format the receipt code."""
    number = allocate_receipt_number(session, tenant.id, when.date())
    return format_receipt_code(tenant.name, when, number - 1)
