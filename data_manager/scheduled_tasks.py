"""
Scheduled jobs.

This module handles:
- Daily reset of the ``checkInToday`` talk flag (04:00 local by default)
- Optional daily spreadsheet sync at ``scheduler.auto_sync_hour``
"""
from datetime import time

from config import SCHEDULER_SETTINGS, LOCAL_TIMEZONE, SHEET_SYNC_SETTINGS, dashboard_logger
from data_manager.database import get_session
from data_manager.talks import reset_daily_check_ins
from data_manager.sheet_sync import run_sheet_sync
from lib.errors import SyncError
from lib.utils import get_local_now, parse_clock
from state_manager import StateManager


def check_and_perform_daily_reset(now=None) -> bool:
    """
    Reset daily check-ins once per day after the configured time.

    Safe to call on every request: the date marker is checked before and
    after taking the state lock. Returns True when a reset ran.
    """
    state = StateManager.get_instance()
    now = now or get_local_now(LOCAL_TIMEZONE)
    today = now.date()
    reset_time = parse_clock(SCHEDULER_SETTINGS.get('check_in_reset_time', '04:00'), time(4, 0))

    if state.last_check_in_reset == today or now.time() < reset_time:
        return False

    with state.lock:
        if state.last_check_in_reset == today:
            return False
        with get_session() as session:
            count = reset_daily_check_ins(session)
        state.last_check_in_reset = today

    dashboard_logger.info(f"Daily check-in reset done for {today}: {count} shoppers cleared")
    return True


def auto_sync_job() -> None:
    """Scheduled sheet sync; errors are logged, never raised into the scheduler."""
    if not (SHEET_SYNC_SETTINGS.get('spreadsheet_id') or SHEET_SYNC_SETTINGS.get('csv_url')):
        dashboard_logger.info("Auto sync skipped: sheet sync not configured")
        return
    try:
        with get_session() as session:
            result = run_sheet_sync(session)
        dashboard_logger.info(f"Auto sync finished: {result.to_dict()}")
    except SyncError as exc:
        dashboard_logger.error(f"Auto sync failed: {exc.message}")
