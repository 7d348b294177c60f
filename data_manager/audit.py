"""
Audit trail for shopper records.

Every flush that inserts, updates or deletes a Shopper writes a
``shoppers_audit`` row holding JSON snapshots of the record before and after
the change. Deleted records keep their shifts inside the snapshot so they can
be restored later together with their schedule.
"""
import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import event, inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import LOG_LIMIT, dashboard_logger
from data_manager.models import Shift, Shopper, ShopperAudit, new_uuid, utcnow
from lib.errors import NotFoundError, RestoreError
from lib.utils import isoformat_utc, parse_timestamp

TRACKED_FIELDS = ('name', 'details', 'rank')
ARCHIVED_SHIFTS_KEY = '_archived_shifts'


@dataclass
class RestoreResult:
    shopper_id: str
    name: str
    shift_count: int


# -----------------------------------------------------------
# Snapshots
# -----------------------------------------------------------
def shift_snapshot(shift: Shift) -> Dict[str, Any]:
    return {'id': shift.id, 'date': shift.date, 'time': shift.time, 'type': shift.type}


def shopper_snapshot(shopper: Shopper, include_shifts: bool = False,
                     values: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """JSON-safe copy of a shopper row. ``values`` overrides tracked fields."""
    values = values or {}
    snapshot = {
        'id': shopper.id,
        'created_at': isoformat_utc(shopper.created_at),
        'name': values.get('name', shopper.name),
        'details': copy.deepcopy(values.get('details', shopper.details) or {}),
        'rank': values.get('rank', shopper.rank),
    }
    if include_shifts:
        snapshot['shifts'] = [shift_snapshot(s) for s in shopper.shifts]
    return snapshot


def _committed_values(shopper: Shopper) -> Dict[str, Any]:
    """Values of the tracked fields as they were before the pending change."""
    state = inspect(shopper)
    previous: Dict[str, Any] = {}
    for attr in TRACKED_FIELDS:
        hist = state.attrs[attr].history
        if hist.deleted:
            previous[attr] = hist.deleted[0]
        elif hist.unchanged:
            previous[attr] = hist.unchanged[0]
        else:
            previous[attr] = getattr(shopper, attr)
    return previous


def _has_tracked_changes(shopper: Shopper) -> bool:
    # Re-assigning an equal JSON document still shows up in history
    previous = _committed_values(shopper)
    return any(previous[attr] != getattr(shopper, attr) for attr in TRACKED_FIELDS)


def collect_audit_entries(session: Session) -> List[ShopperAudit]:
    """Build audit rows for all pending Shopper changes in the session."""
    entries: List[ShopperAudit] = []

    for obj in session.new:
        if not isinstance(obj, Shopper):
            continue
        # Defaults are applied at INSERT time; the snapshot needs them now
        if obj.id is None:
            obj.id = new_uuid()
        if obj.created_at is None:
            obj.created_at = utcnow()
        if obj.details is None:
            obj.details = {}
        entries.append(ShopperAudit(
            record_id=obj.id,
            operation_type='INSERT',
            old_data=None,
            new_data=shopper_snapshot(obj),
        ))

    for obj in session.dirty:
        if not isinstance(obj, Shopper) or not _has_tracked_changes(obj):
            continue
        entries.append(ShopperAudit(
            record_id=obj.id,
            operation_type='UPDATE',
            old_data=shopper_snapshot(obj, values=_committed_values(obj)),
            new_data=shopper_snapshot(obj),
        ))

    for obj in session.deleted:
        if not isinstance(obj, Shopper):
            continue
        with session.no_autoflush:
            old_data = shopper_snapshot(obj, include_shifts=True, values=_committed_values(obj))
        entries.append(ShopperAudit(
            record_id=obj.id,
            operation_type='DELETE',
            old_data=old_data,
            new_data=None,
        ))

    if entries:
        session.add_all(entries)
    return entries


@event.listens_for(Session, "before_flush")
def _before_flush_capture_audit(session, flush_context, instances):
    """Automatically create audit entries during flush."""
    collect_audit_entries(session)


# -----------------------------------------------------------
# Listing
# -----------------------------------------------------------
def list_audit_logs(session: Session, limit: int = LOG_LIMIT) -> List[ShopperAudit]:
    stmt = (
        select(ShopperAudit)
        .order_by(ShopperAudit.changed_at.desc(), ShopperAudit.id.desc())
        .limit(limit)
    )
    return list(session.scalars(stmt))


def _archived_shift_count(old_data: Optional[Dict[str, Any]]) -> int:
    if not old_data:
        return 0
    shifts = old_data.get('shifts')
    if shifts:
        return len(shifts)
    archived = (old_data.get('details') or {}).get(ARCHIVED_SHIFTS_KEY)
    return len(archived) if archived else 0


def describe_audit_log(log: ShopperAudit) -> Dict[str, Any]:
    """Summary of an audit entry as shown in the audit list."""
    old_data = log.old_data or {}
    new_data = log.new_data or {}
    name = new_data.get('name') or old_data.get('name') or 'Unknown'
    pn_number = (
        (new_data.get('details') or {}).get('pnNumber')
        or (old_data.get('details') or {}).get('pnNumber')
        or ''
    )

    changes: List[str] = []
    if log.operation_type == 'UPDATE' and log.old_data and log.new_data:
        if old_data.get('name') != new_data.get('name'):
            changes.append('Name changed.')
        if old_data.get('details') != new_data.get('details'):
            changes.append('Details updated.')

    return {
        'id': log.id,
        'record_id': log.record_id,
        'operation_type': log.operation_type,
        'changed_at': isoformat_utc(log.changed_at),
        'name': name,
        'pn_number': pn_number,
        'shift_backup_count': _archived_shift_count(log.old_data) if log.operation_type == 'DELETE' else 0,
        'changes': changes,
        'restorable': log.operation_type == 'DELETE' and bool(log.old_data),
    }


# -----------------------------------------------------------
# Restore
# -----------------------------------------------------------
def restore_from_audit(session: Session, audit_id: int) -> RestoreResult:
    """
    Re-insert a deleted shopper and its shifts from a DELETE snapshot.

    The shopper keeps its original id. Shifts get fresh ids; if they cannot
    be written the shopper restore still stands and the error is logged.
    """
    log = session.get(ShopperAudit, audit_id)
    if log is None:
        raise NotFoundError(f"Audit entry {audit_id} not found")
    if log.operation_type != 'DELETE' or not log.old_data:
        raise RestoreError("Only deleted records with a snapshot can be restored.")

    old_data = copy.deepcopy(log.old_data)
    details = dict(old_data.get('details') or {})
    shifts_to_restore = old_data.get('shifts') or details.get(ARCHIVED_SHIFTS_KEY) or []
    details.pop(ARCHIVED_SHIFTS_KEY, None)

    shopper_id = old_data.get('id')
    name = old_data.get('name') or 'Unknown'
    if not shopper_id:
        raise RestoreError("Snapshot has no record id.")
    if session.get(Shopper, shopper_id) is not None:
        raise RestoreError(f"Restore failed for {name}. The ID might already exist.")

    shopper = Shopper(
        id=shopper_id,
        name=name,
        details=details,
        rank=old_data.get('rank'),
        created_at=parse_timestamp(old_data.get('created_at')) or utcnow(),
    )
    session.add(shopper)
    try:
        session.flush()
    except IntegrityError as exc:
        raise RestoreError(f"Restore failed: {exc.orig}. The ID might already exist.") from exc

    restored_shifts = 0
    if isinstance(shifts_to_restore, list) and shifts_to_restore:
        try:
            with session.begin_nested():
                for entry in shifts_to_restore:
                    session.add(Shift(
                        shopper_id=shopper_id,
                        date=entry['date'],
                        time=entry['time'],
                        type=entry['type'],
                    ))
            restored_shifts = len(shifts_to_restore)
        except (SQLAlchemyError, KeyError, TypeError) as exc:
            dashboard_logger.error("Error restoring shifts for %s: %s", shopper_id, exc)

    dashboard_logger.info(f"Restored {name} ({shopper_id}) with {restored_shifts} shifts from audit #{audit_id}")
    return RestoreResult(shopper_id=shopper_id, name=name, shift_count=restored_shifts)
