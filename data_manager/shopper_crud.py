"""
Shopper and shift CRUD operations.

This module handles:
- Public onboarding submissions (shopper + shifts in one unit of work)
- Admin edits of shopper details, group ordering and deletion
- Row-level shift updates (add, update, delete)
- Frozen list flags and compliance overrides

Details are always written as a fresh dict so the audit hook sees the change.
"""
import copy
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from config import dashboard_logger
from data_manager.models import (
    SHIFT_TIME_VALUES,
    SHIFT_TYPE_VALUES,
    Shift,
    ShiftType,
    Shopper,
    shift_short_name,
)
from data_manager.settings_store import ADMIN_AVAILABILITY, get_setting
from lib.errors import NotFoundError, ValidationError
from lib.utils import isoformat_utc, parse_date_key
from lib.validation import allowed_end_date, calculate_glove_size, validate_submission_shifts

FWD_SHIFT_CAPACITY = 5


def to_record(shopper: Shopper) -> Dict[str, Any]:
    """Plain dict form of a shopper, used by routes and exports."""
    return {
        'id': shopper.id,
        'created_at': isoformat_utc(shopper.created_at),
        'name': shopper.name,
        'details': copy.deepcopy(shopper.details or {}),
        'rank': shopper.rank,
        'shifts': [
            {'id': s.id, 'date': s.date, 'time': s.time, 'type': s.type}
            for s in sorted(shopper.shifts, key=lambda s: (s.date, SHIFT_TIME_VALUES.index(s.time)
                                                             if s.time in SHIFT_TIME_VALUES else 99))
        ],
    }


def replace_details(shopper: Shopper, updates: Dict[str, Any]) -> Dict[str, Any]:
    details = copy.deepcopy(shopper.details or {})
    details.update(updates)
    shopper.details = details
    return details


def _load(session: Session, shopper_id: str) -> Shopper:
    shopper = session.get(Shopper, shopper_id)
    if shopper is None:
        raise NotFoundError(f"Shopper {shopper_id} not found")
    return shopper


def _validate_shift(date_str: Any, shift_time: Any, shift_type: Any) -> None:
    try:
        parse_date_key(str(date_str))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid shift date: {date_str!r}")
    if shift_time not in SHIFT_TIME_VALUES:
        raise ValidationError(f"Unknown shift time: {shift_time!r}")
    if shift_type not in SHIFT_TYPE_VALUES:
        raise ValidationError(f"Unknown shift type: {shift_type!r}")


# -----------------------------------------------------------
# Queries
# -----------------------------------------------------------
def list_shoppers(session: Session, search: Optional[str] = None) -> List[Shopper]:
    stmt = (
        select(Shopper)
        .options(selectinload(Shopper.shifts))
        .order_by(Shopper.rank.asc().nulls_last(), Shopper.created_at.desc())
    )
    if search and search.strip():
        stmt = stmt.where(func.lower(Shopper.name).contains(search.strip().lower()))
    return list(session.scalars(stmt))


def get_shopper(session: Session, shopper_id: str) -> Shopper:
    return _load(session, shopper_id)


def count_first_working_day_workers(session: Session, date_str: str, shift_time: str,
                                    exclude_id: Optional[str] = None) -> int:
    """Shoppers starting on ``date_str`` who already hold that shift."""
    stmt = select(Shopper).join(Shift).where(Shift.date == date_str, Shift.time == shift_time)
    count = 0
    for shopper in session.scalars(stmt).unique():
        if exclude_id and shopper.id == exclude_id:
            continue
        if (shopper.details or {}).get('firstWorkingDay') == date_str:
            count += 1
    return count


def first_working_day_counts(session: Session) -> Dict[str, int]:
    """Map of ``<date>_<shift time>`` to number of starters, for the calendar."""
    counts: Dict[str, int] = {}
    for shopper in list_shoppers(session):
        fwd = (shopper.details or {}).get('firstWorkingDay')
        if not fwd:
            continue
        for shift in shopper.shifts:
            if shift.date == fwd:
                key = f"{fwd}_{shift.time}"
                counts[key] = counts.get(key, 0) + 1
    return counts


# -----------------------------------------------------------
# Submissions
# -----------------------------------------------------------
def _aa_closed(availability: Dict[str, Any], date_str: str, shift_time: str) -> bool:
    day = availability.get(date_str)
    if not day or shift_time not in day:
        return False
    return ShiftType.AA.value not in (day.get(shift_time) or [])


def create_submission(session: Session, name: str, details: Optional[Dict[str, Any]],
                      shifts: Iterable[Dict[str, Any]]) -> Shopper:
    """
    Store an onboarding submission.

    The schedule must pass the onboarding rules (AA pattern, 11h rest,
    consecutive days and range limit), and AA is refused on days where the
    admin availability closes it. With a first working day set, AA shifts
    outside the allowed range are dropped and the first-day shift must still
    have room for another starter.
    """
    name = (name or '').strip()
    if not name:
        raise ValidationError("Name is required.")
    if details is not None and not isinstance(details, dict):
        raise ValidationError("Details must be an object.")
    if shifts is not None and not isinstance(shifts, (list, tuple)):
        raise ValidationError("Shifts must be a list.")

    details = copy.deepcopy(details or {})
    details['gloveSize'] = calculate_glove_size(details.get('clothingSize'))

    shifts = list(shifts or [])
    for shift in shifts:
        if not isinstance(shift, dict):
            raise ValidationError("Each shift must be an object.")
        _validate_shift(shift.get('date'), shift.get('time'), shift.get('type'))

    fwd = details.get('firstWorkingDay')
    if fwd:
        try:
            start = parse_date_key(fwd)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid first working day: {fwd!r}")

    error = validate_submission_shifts(shifts, fwd)
    if error:
        raise ValidationError(error)

    availability = get_setting(session, ADMIN_AVAILABILITY, {}) or {}
    for shift in shifts:
        if shift['type'] == ShiftType.AA.value and _aa_closed(availability, shift['date'], shift['time']):
            raise ValidationError(
                f"Always Available is not open for {shift_short_name(shift['time'])} on {shift['date']}."
            )

    if fwd:
        end = allowed_end_date(fwd)
        shifts = [s for s in shifts if start <= parse_date_key(s['date']) <= end]

        for shift in shifts:
            if shift['date'] != fwd:
                continue
            if count_first_working_day_workers(session, fwd, shift['time']) >= FWD_SHIFT_CAPACITY:
                raise ValidationError(
                    f"The {shift['time']} shift on {fwd} is full for new starters. Please pick another shift."
                )

    shopper = Shopper(name=name, details=details)
    for shift in shifts:
        shopper.shifts.append(Shift(date=shift['date'], time=shift['time'], type=shift['type']))
    session.add(shopper)
    session.flush()

    dashboard_logger.info(f"New submission from {name} with {len(shifts)} shifts")
    return shopper


# -----------------------------------------------------------
# Admin edits
# -----------------------------------------------------------
def update_shopper(session: Session, shopper_id: str, name: Optional[str] = None,
                   details: Optional[Dict[str, Any]] = None) -> Shopper:
    shopper = _load(session, shopper_id)
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError("Name cannot be empty.")
        shopper.name = name
    if details:
        if 'clothingSize' in details:
            details = dict(details, gloveSize=calculate_glove_size(details.get('clothingSize')))
        replace_details(shopper, details)
    session.flush()
    return shopper


def delete_shopper(session: Session, shopper_id: str) -> None:
    shopper = _load(session, shopper_id)
    name = shopper.name
    # Load shifts before delete so the audit snapshot can carry them
    shift_count = len(shopper.shifts)
    session.delete(shopper)
    session.flush()
    dashboard_logger.info(f"Deleted shopper {name} ({shopper_id}) with {shift_count} shifts")


def save_group_order(session: Session, ordered_ids: List[str]) -> int:
    updated = 0
    for index, shopper_id in enumerate(ordered_ids):
        shopper = session.get(Shopper, shopper_id)
        if shopper is None:
            dashboard_logger.warning("Order update skipped unknown shopper %s", shopper_id)
            continue
        shopper.rank = index
        updated += 1
    session.flush()
    return updated


# -----------------------------------------------------------
# Shifts
# -----------------------------------------------------------
def sync_first_working_day(shopper: Shopper, shifts: Optional[Iterable[Shift]] = None) -> Optional[str]:
    """Move ``firstWorkingDay`` to the earliest shift date when they differ."""
    dates = [s.date for s in (shopper.shifts if shifts is None else shifts)]
    if not dates:
        return (shopper.details or {}).get('firstWorkingDay')
    earliest = min(dates)
    if (shopper.details or {}).get('firstWorkingDay') != earliest:
        replace_details(shopper, {'firstWorkingDay': earliest})
        dashboard_logger.info(f"First working day of {shopper.name} moved to {earliest}")
    return earliest


def add_shift(session: Session, shopper_id: str, date_str: str, shift_time: str, shift_type: str) -> Shift:
    shopper = _load(session, shopper_id)
    _validate_shift(date_str, shift_time, shift_type)
    shift = Shift(date=date_str, time=shift_time, type=shift_type)
    shopper.shifts.append(shift)
    sync_first_working_day(shopper)
    session.flush()
    return shift


def update_shift(session: Session, shift_id: str, date_str: Optional[str] = None,
                 shift_time: Optional[str] = None, shift_type: Optional[str] = None) -> Shift:
    shift = session.get(Shift, shift_id)
    if shift is None:
        raise NotFoundError(f"Shift {shift_id} not found")
    new_date = date_str if date_str is not None else shift.date
    new_time = shift_time if shift_time is not None else shift.time
    new_type = shift_type if shift_type is not None else shift.type
    _validate_shift(new_date, new_time, new_type)
    shift.date, shift.time, shift.type = new_date, new_time, new_type
    sync_first_working_day(shift.shopper)
    session.flush()
    return shift


def delete_shift(session: Session, shift_id: str) -> None:
    shift = session.get(Shift, shift_id)
    if shift is None:
        raise NotFoundError(f"Shift {shift_id} not found")
    shopper = shift.shopper
    sync_first_working_day(shopper, [s for s in shopper.shifts if s is not shift])
    session.delete(shift)
    session.flush()


# -----------------------------------------------------------
# Frozen list / compliance flags
# -----------------------------------------------------------
def list_frozen(session: Session) -> List[Shopper]:
    stmt = select(Shopper).order_by(Shopper.created_at.desc())
    return [s for s in session.scalars(stmt) if (s.details or {}).get('isFrozenEligible') is True]


def toggle_frozen_added(session: Session, shopper_id: str) -> bool:
    shopper = _load(session, shopper_id)
    new_value = not bool((shopper.details or {}).get('frozenAddedToSystem'))
    replace_details(shopper, {'frozenAddedToSystem': new_value})
    session.flush()
    return new_value


def save_frozen_note(session: Session, shopper_id: str, text: str) -> None:
    shopper = _load(session, shopper_id)
    replace_details(shopper, {'frozenNotes': text or ''})
    session.flush()


def set_ignore_compliance(session: Session, shopper_id: str, flag: bool) -> None:
    shopper = _load(session, shopper_id)
    replace_details(shopper, {'ignoreCompliance': bool(flag)})
    session.flush()

