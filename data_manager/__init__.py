"""
Data Manager Package

This package provides the persistence layer for the shopper onboarding dashboard.
It handles shoppers, shifts, settings, access logs and the audit trail.

The package is organized into the following modules:
- models: SQLAlchemy models (shoppers, shifts, audit, access logs, settings)
- database: engine/session management
- audit: before_flush audit capture, audit listing and restore
- shopper_crud: submissions, shopper edits, shifts, frozen list
- talks: coaching talks, performance metrics, note history
- access_log: PIN login attempt log
- settings_store: app settings and weekly template expansion
- sheet_sync: spreadsheet reconciliation
- scheduled_tasks: daily check-in reset, scheduled sync

Importing the package registers the audit hook, so every session that
touches a Shopper writes its audit rows.
"""

from data_manager.database import (
    check_connection,
    configure_engine,
    get_engine,
    get_session,
    init_db,
)

# Audit hook (registered on import)
from data_manager.audit import (
    RestoreResult,
    describe_audit_log,
    list_audit_logs,
    restore_from_audit,
)

from data_manager.shopper_crud import (
    FWD_SHIFT_CAPACITY,
    add_shift,
    count_first_working_day_workers,
    create_submission,
    delete_shift,
    delete_shopper,
    get_shopper,
    list_frozen,
    list_shoppers,
    save_frozen_note,
    save_group_order,
    set_ignore_compliance,
    sync_first_working_day,
    to_record,
    toggle_frozen_added,
    update_shift,
    update_shopper,
)

from data_manager.talks import (
    TALK_TYPES,
    add_note,
    log_talk,
    reset_daily_check_ins,
    summarize_for_dashboard,
    talk_history,
    toggle_check_in,
    update_metrics,
)

from data_manager.access_log import (
    classify_device,
    list_access_logs,
    record_access,
)

from data_manager.settings_store import (
    apply_weekly_template,
    copy_previous_day,
    empty_weekly_template,
    get_setting,
    put_setting,
)

from data_manager.sheet_sync import (
    SyncResult,
    reconcile_rows,
    run_sheet_sync,
)

from data_manager.scheduled_tasks import (
    auto_sync_job,
    check_and_perform_daily_reset,
)
