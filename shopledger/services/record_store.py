"""
Record store - generic shop-scoped insert/update/select/count.

Collections are addressed by name (``products``, ``sales``...). Every call is
filtered by the tenant id the store was built with; collections that carry no
tenant column of their own (sale items, loan payments) are scoped through
their parent row.
"""
import logging
from typing import Dict, Any, List, Optional, Sequence, Union

from sqlalchemy import func, inspect

from shopledger.models import (
    Product, Customer, Sale, SaleItem, Loan, LoanPayment, StaffProfile, StockEntry
)
from shopledger.exceptions import ValidationError, NotFoundError

logger = logging.getLogger(__name__)

# name -> (model, parent model, foreign key column name on the child)
ENTITIES = {
    'products': (Product, None, None),
    'customers': (Customer, None, None),
    'sales': (Sale, None, None),
    'sale_items': (SaleItem, Sale, 'sale_id'),
    'loans': (Loan, None, None),
    'loan_payments': (LoanPayment, Loan, 'loan_id'),
    'profiles': (StaffProfile, None, None),
    'stock_entries': (StockEntry, None, None),
}

# Columns the caller may never set
PROTECTED_FIELDS = {'id', 'tenant_id'}

# Columns owned by a service: customer debt by the debt writer, loan figures
# by the loan ledger. Never written through the store.
DERIVED_FIELDS = {
    'customers': {'total_debt'},
    'loans': {'total_amount', 'paid_amount', 'balance', 'status'},
}

# Rows that never change once written
IMMUTABLE_ENTITIES = {'sales', 'sale_items', 'loan_payments'}


class RecordStore:
    """
    Shop-scoped record operations over the entity collections.

    The tenant id is supplied by the caller; the store never works it out.
    """

    def __init__(self, session, tenant_id: int):
        if tenant_id is None:
            raise ValidationError('tenant_id is required')
        self.session = session
        self.tenant_id = tenant_id

    def _entity(self, entity: str):
        try:
            return ENTITIES[entity]
        except KeyError:
            raise ValidationError(f'Unknown entity: {entity!r}')

    def _column(self, model, field: str):
        columns = inspect(model).columns
        if field not in columns:
            raise ValidationError(f'Unknown field for {model.__tablename__}: {field!r}')
        return getattr(model, field)

    def _scoped(self, entity: str):
        model, parent, fk = self._entity(entity)
        query = self.session.query(model)
        if parent is None:
            return query.filter(model.tenant_id == self.tenant_id)
        return query.join(parent, getattr(model, fk) == parent.id).filter(
            parent.tenant_id == self.tenant_id
        )

    def _apply_filters(self, query, model, filters: Optional[Dict[str, Any]]):
        for field, value in (filters or {}).items():
            column = self._column(model, field)
            if isinstance(value, (list, tuple, set)):
                query = query.filter(column.in_(list(value)))
            elif value is None:
                query = query.filter(column.is_(None))
            else:
                query = query.filter(column == value)
        return query

    def _check_fields(self, entity: str, model, fields: Dict[str, Any]) -> None:
        derived = DERIVED_FIELDS.get(entity, set())
        for field in fields:
            if field in PROTECTED_FIELDS or field in derived:
                raise ValidationError(f'Field {field!r} cannot be set')
            self._column(model, field)

    def _check_parent(self, entity: str, fields: Dict[str, Any]) -> None:
        _, parent, fk = self._entity(entity)
        if parent is None:
            return
        parent_id = fields.get(fk)
        exists = self.session.query(parent.id).filter(
            parent.id == parent_id,
            parent.tenant_id == self.tenant_id
        ).first()
        if not exists:
            raise NotFoundError(f'{parent.__tablename__} {parent_id} not found')

    def insert(self, entity: str, fields: Dict[str, Any]):
        """Insert a row and flush so its id is available (caller commits)."""
        model, parent, _ = self._entity(entity)
        self._check_fields(entity, model, fields)
        self._check_parent(entity, fields)

        values = dict(fields)
        if parent is None:
            values['tenant_id'] = self.tenant_id
        row = model(**values)
        self.session.add(row)
        self.session.flush()
        logger.debug(f"Inserted {entity} {row.id} (tenant {self.tenant_id})")
        return row

    def get(self, entity: str, row_id: int):
        model, _, _ = self._entity(entity)
        row = self._scoped(entity).filter(model.id == row_id).first()
        if not row:
            raise NotFoundError(f'{entity} {row_id} not found')
        return row

    def update(self, entity: str, row_id: int, fields: Dict[str, Any]):
        """
        Set the given fields on one row (caller commits).

        Sales, sale items and loan payments are never updated.
        """
        model, parent, fk = self._entity(entity)
        if entity in IMMUTABLE_ENTITIES:
            raise ValidationError(f'{entity} cannot be changed once recorded')
        self._check_fields(entity, model, fields)
        if parent is not None and fk in fields:
            self._check_parent(entity, fields)

        row = self.get(entity, row_id)
        for field, value in fields.items():
            setattr(row, field, value)
        self.session.flush()
        return row

    def select(
        self,
        entity: str,
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[Union[str, Sequence[str]]] = None,
        limit: Optional[int] = None
    ) -> List[Any]:
        """
        Rows matching `filters` (field -> value, or list of values).

        `order` is a field name or list of them; prefix with '-' for descending.
        """
        model, _, _ = self._entity(entity)
        query = self._apply_filters(self._scoped(entity), model, filters)

        if isinstance(order, str):
            order = [order]
        for field in order or ['id']:
            descending = field.startswith('-')
            column = self._column(model, field.lstrip('-'))
            query = query.order_by(column.desc() if descending else column.asc())

        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count(self, entity: str, filters: Optional[Dict[str, Any]] = None) -> int:
        model, _, _ = self._entity(entity)
        query = self._apply_filters(self._scoped(entity), model, filters)
        return query.with_entities(func.count(model.id)).scalar() or 0
