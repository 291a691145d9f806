"""Reports blueprint - daily report, dashboard and debt drift (shop-scoped)."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from flask import Blueprint, request, jsonify, g, Response

from shopledger.database import get_session
from shopledger.exceptions import ValidationError
from shopledger.middleware import require_context, require_owner
from shopledger.services import report_service
from shopledger.services.debt_service import find_debt_drift

reports_bp = Blueprint('reports', __name__, url_prefix='/reports')


def _parse_date(value: Optional[str], field: str) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f'{field} must be YYYY-MM-DD')


def _jsonable(value: Any) -> Any:
    """Decimals to float, recursively, for jsonify."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


@reports_bp.route('/daily')
@require_context
def daily() -> Response:
    """
    Daily sales report. `?date=YYYY-MM-DD` (default today), optional `&end=`.

    Staff members only see their own sales.
    """
    start = _parse_date(request.args.get('date'), 'date') or date.today()
    end = _parse_date(request.args.get('end'), 'end')
    staff_id = None if g.context.is_owner else g.context.staff_id

    report = report_service.get_daily_report(get_session(), g.tenant_id, start, end, staff_id=staff_id)
    return jsonify({'report': _jsonable(report)})


@reports_bp.route('/dashboard')
@require_context
def dashboard() -> Response:
    summary = report_service.get_dashboard_summary(get_session(), g.context)
    return jsonify({'dashboard': _jsonable(summary)})


@reports_bp.route('/debt-drift')
@require_context
@require_owner
def debt_drift() -> Response:
    """Customers whose stored debt no longer matches their open loans."""
    drift = find_debt_drift(get_session(), g.tenant_id)
    return jsonify({'drift': _jsonable(drift), 'count': len(drift)})
