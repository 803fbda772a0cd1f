# Overview: Fiscal year management and the fiscal period guard consulted before every posting.

"""
Fiscal Period Invariants (authoritative)

- Fiscal years of one organization never overlap; start_date < end_date.
- A business date is postable only if an OPEN fiscal year covers it and no
  CLOSED fiscal year covers it.
- Closed years are frozen: their dates cannot be edited and documents dated
  inside them cannot be created, updated or deleted.
- Years cannot be created or reopened for a calendar year after the
  current one.
"""

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import FiscalYear
from app.time_utils import parse_business_date, today, utcnow
from .concurrency import run_in_transaction
from .errors import FiscalPeriodClosed, NoOpenPeriod, NotFound, ValidationFailed

STATUS_OPEN = "OPEN"
STATUS_CLOSED = "CLOSED"


def _require_date(value, field: str) -> date:
    try:
        parsed = parse_business_date(value)
    except ValueError:
        raise ValidationFailed(f"{field} must be an ISO date (YYYY-MM-DD)", details={"field": field})
    if parsed is None:
        raise ValidationFailed(f"{field} is required", details={"field": field})
    return parsed


def _validate_not_future_year(start_date: date) -> None:
    current_year = today().year
    if start_date.year > current_year:
        raise ValidationFailed(
            "Cannot open a fiscal year for a future calendar year",
            details={"current_year": current_year, "requested_year": start_date.year},
        )


def _validate_no_overlap(org_id: int, start_date: date, end_date: date, exclude_id: int | None = None) -> None:
    query = db.session.query(FiscalYear).filter(
        FiscalYear.org_id == org_id,
        FiscalYear.start_date <= end_date,
        FiscalYear.end_date >= start_date,
    )
    if exclude_id is not None:
        query = query.filter(FiscalYear.id != exclude_id)
    clash = query.first()
    if clash is not None:
        raise ValidationFailed(
            "Fiscal year overlaps an existing fiscal year",
            details={"fiscal_year_id": clash.id, "name": clash.name},
        )


def get_fiscal_year(org_id: int, fiscal_year_id: int) -> FiscalYear:
    fiscal_year = db.session.query(FiscalYear).filter_by(id=fiscal_year_id, org_id=org_id).first()
    if fiscal_year is None:
        raise NotFound("Fiscal year not found", details={"fiscal_year_id": fiscal_year_id})
    return fiscal_year


def list_fiscal_years(org_id: int) -> list[FiscalYear]:
    return (
        db.session.query(FiscalYear)
        .filter_by(org_id=org_id)
        .order_by(FiscalYear.start_date.desc())
        .all()
    )


def create_fiscal_year(org_id: int, name: str, start_date, end_date) -> FiscalYear:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("name is required")
    start = _require_date(start_date, "start_date")
    end = _require_date(end_date, "end_date")
    if start >= end:
        raise ValidationFailed("start_date must be before end_date")
    _validate_not_future_year(start)

    def _op():
        _validate_no_overlap(org_id, start, end)
        fiscal_year = FiscalYear(
            org_id=org_id,
            name=name,
            start_date=start,
            end_date=end,
            status=STATUS_OPEN,
        )
        db.session.add(fiscal_year)
        db.session.flush()
        return fiscal_year

    return run_in_transaction(_op)


def update_fiscal_year(org_id: int, fiscal_year_id: int, *, name=None, start_date=None, end_date=None) -> FiscalYear:
    """Rename or re-date an OPEN fiscal year."""
    def _op():
        fiscal_year = get_fiscal_year(org_id, fiscal_year_id)
        if fiscal_year.status == STATUS_CLOSED:
            raise FiscalPeriodClosed(
                "A closed fiscal year cannot be edited",
                details={"fiscal_year_id": fiscal_year.id},
            )

        if name is not None:
            if not name.strip():
                raise ValidationFailed("name cannot be empty")
            fiscal_year.name = name.strip()

        if start_date is not None or end_date is not None:
            start = _require_date(start_date, "start_date") if start_date is not None else fiscal_year.start_date
            end = _require_date(end_date, "end_date") if end_date is not None else fiscal_year.end_date
            if start >= end:
                raise ValidationFailed("start_date must be before end_date")
            _validate_no_overlap(org_id, start, end, exclude_id=fiscal_year.id)
            fiscal_year.start_date = start
            fiscal_year.end_date = end

        return fiscal_year

    return run_in_transaction(_op)


def close_fiscal_year(org_id: int, fiscal_year_id: int, *, actor_user_id: int | None = None) -> FiscalYear:
    def _op():
        fiscal_year = get_fiscal_year(org_id, fiscal_year_id)
        if fiscal_year.status == STATUS_CLOSED:
            raise ValidationFailed("Fiscal year is already closed", details={"fiscal_year_id": fiscal_year.id})
        fiscal_year.status = STATUS_CLOSED
        fiscal_year.closed_at = utcnow()
        fiscal_year.closed_by_user_id = actor_user_id
        return fiscal_year

    return run_in_transaction(_op)


def reopen_fiscal_year(org_id: int, fiscal_year_id: int) -> FiscalYear:
    def _op():
        fiscal_year = get_fiscal_year(org_id, fiscal_year_id)
        if fiscal_year.status == STATUS_OPEN:
            raise ValidationFailed("Fiscal year is already open", details={"fiscal_year_id": fiscal_year.id})
        _validate_not_future_year(fiscal_year.start_date)
        fiscal_year.status = STATUS_OPEN
        fiscal_year.closed_at = None
        fiscal_year.closed_by_user_id = None
        return fiscal_year

    return run_in_transaction(_op)


# =============================================================================
# PERIOD GUARD
# =============================================================================

def _covering(org_id: int, on_date: date, status: str):
    return db.session.query(FiscalYear.id).filter(
        FiscalYear.org_id == org_id,
        FiscalYear.status == status,
        FiscalYear.start_date <= on_date,
        FiscalYear.end_date >= on_date,
    )


def has_open_period(org_id: int, on_date: date) -> bool:
    return _covering(org_id, on_date, STATUS_OPEN).first() is not None


def is_in_closed_period(org_id: int, on_date: date) -> bool:
    return _covering(org_id, on_date, STATUS_CLOSED).first() is not None


def get_period_for_date(org_id: int, on_date: date) -> FiscalYear | None:
    return (
        db.session.query(FiscalYear)
        .filter(
            FiscalYear.org_id == org_id,
            FiscalYear.start_date <= on_date,
            FiscalYear.end_date >= on_date,
        )
        .order_by(FiscalYear.start_date.desc())
        .first()
    )


def ensure_period_open(org_id: int, on_date: date) -> None:
    """
    Fail closed: raise unless `on_date` is inside an open, non-closed period.

    Closed is checked first so a date inside a closed year always reports
    FiscalPeriodClosed, never NoOpenPeriod.
    """
    if is_in_closed_period(org_id, on_date):
        raise FiscalPeriodClosed(
            "The document date falls inside a closed fiscal period",
            details={"date": on_date.isoformat()},
        )
    if not has_open_period(org_id, on_date):
        raise NoOpenPeriod(
            "No open fiscal period covers the document date",
            details={"date": on_date.isoformat()},
        )
