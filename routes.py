# Standard library imports
import os
from datetime import datetime
from functools import wraps

# Flask imports
from flask import (
    Blueprint,
    Response,
    jsonify,
    request,
    session,
)
from werkzeug.exceptions import HTTPException

# Third-party imports
import yaml

# Local imports
from config import (
    APP_CONFIG,
    CONFIG_FILE_PATH,
    DEFAULT_ADMIN_PIN,
    LOCAL_TIMEZONE,
    LOG_FOLDER,
    LOG_LIMIT,
    SCHEDULER_SETTINGS,
    SECURITY_SETTINGS,
    SHEET_SYNC_SETTINGS,
    dashboard_logger,
)
from data_manager import (
    access_log,
    audit,
    settings_store,
    sheet_sync,
    shopper_crud,
    talks,
)
from data_manager.database import check_connection, get_session
from lib import reports, validation
from lib.errors import AuthFailedError, AuthLockedError, DashboardError, ValidationError
from lib.utils import coerce_int, get_local_now, isoformat_utc, parse_date_key
from state_manager import StateManager

SERVICE_NAME = 'Shopper Onboarding Dashboard'

# Create Blueprint
routes = Blueprint('routes', __name__)

# -----------------------------------------------------------
# Helpers for Routes
# -----------------------------------------------------------
def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _date_param(value, field: str):
    try:
        return parse_date_key(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")


def _client_id() -> str:
    return request.remote_addr or 'unknown'


def _ok(payload: dict = None, status: int = 200):
    body = {"success": True}
    body.update(payload or {})
    return jsonify(body), status


def admin_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        if not session.get('admin_logged_in'):
            return jsonify({"success": False, "error": "Admin login required"}), 401
        return f(*args, **kwargs)
    return decorated


def shopper_verified(f):
    """Onboarding endpoints need the shopper PIN when the gate is enabled."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if session.get('admin_logged_in') or session.get('shopper_verified'):
            return f(*args, **kwargs)
        with get_session() as db:
            gate = settings_store.get_shopper_auth(db)
        if gate['enabled'] and gate['pin']:
            return jsonify({"success": False, "error": "Shopper PIN required"}), 401
        return f(*args, **kwargs)
    return decorated


@routes.errorhandler(DashboardError)
def handle_dashboard_error(exc: DashboardError):
    payload = {"success": False, "error": exc.message}
    if isinstance(exc, AuthLockedError) and exc.locked_until is not None:
        payload["locked_until"] = isoformat_utc(exc.locked_until)
    return jsonify(payload), exc.status_code


@routes.errorhandler(Exception)
def handle_unexpected_error(exc: Exception):
    if isinstance(exc, HTTPException):
        return exc
    dashboard_logger.error(f"Unhandled error on {request.path}: {exc}", exc_info=True)
    return jsonify({"success": False, "error": "Internal server error"}), 500


@routes.after_request
def invalidate_stats_cache(response):
    if request.method != 'GET' and response.status_code < 400:
        StateManager.get_instance().stats_cache.invalidate()
    return response


# -----------------------------------------------------------
# Authentication
# -----------------------------------------------------------
def _check_pin(role: str, submitted: str, expected_lookup) -> None:
    """
    Verify a PIN with lockout. Every attempt is written to the access log.

    ``expected_lookup`` receives the DB session and returns the valid PIN.
    """
    state = StateManager.get_instance()
    client = _client_id()
    device = request.headers.get('User-Agent', '')
    max_attempts = SECURITY_SETTINGS['max_failed_attempts']
    lockout_minutes = SECURITY_SETTINGS['lockout_minutes']

    locked_until = state.locked_until(role, client)
    outcome = None
    with get_session() as db:
        if locked_until is not None:
            outcome = 'LOCKOUT'
        elif submitted and str(submitted) == str(expected_lookup(db)):
            outcome = 'SUCCESS'
            state.register_success(role, client)
        else:
            locked_until = state.register_failure(role, client, max_attempts, lockout_minutes)
            outcome = 'LOCKOUT' if locked_until is not None else 'FAILURE'
        access_log.record_access(db, outcome, role, device, client)

    if outcome == 'SUCCESS':
        dashboard_logger.info(f"{role} login from {client}")
        return
    if outcome == 'LOCKOUT':
        dashboard_logger.warning(f"{role} PIN locked for {client} until {locked_until}")
        raise AuthLockedError(
            f"Too many failed attempts. Try again in {lockout_minutes} minutes.",
            locked_until=locked_until,
        )
    raise AuthFailedError("Incorrect PIN")


@routes.route('/api/auth/admin/login', methods=['POST'])
def admin_login():
    _check_pin('ADMIN', _json_body().get('pin', ''), settings_store.get_admin_pin)
    session['admin_logged_in'] = True
    return _ok()


@routes.route('/api/auth/admin/logout', methods=['POST'])
def admin_logout():
    session.pop('admin_logged_in', None)
    return _ok()


@routes.route('/api/auth/shopper/verify', methods=['POST'])
def verify_shopper_pin():
    def expected(db):
        return settings_store.get_shopper_auth(db)['pin']

    _check_pin('SHOPPER', _json_body().get('pin', ''), expected)
    session.permanent = True
    session['shopper_verified'] = True
    return _ok()


@routes.route('/api/auth/status')
def auth_status():
    return jsonify({
        "admin": bool(session.get('admin_logged_in')),
        "shopper_verified": bool(session.get('shopper_verified')),
    })


# -----------------------------------------------------------
# Public onboarding
# -----------------------------------------------------------
@routes.route('/api/public/config')
def public_config():
    cache = StateManager.get_instance().stats_cache
    with get_session() as db:
        gate = settings_store.get_shopper_auth(db)
        fwd_counts = cache.get('fwd_counts')
        if fwd_counts is None:
            fwd_counts = shopper_crud.first_working_day_counts(db)
            cache.set('fwd_counts', fwd_counts)
        return jsonify({
            "shopper_auth_enabled": bool(gate['enabled'] and gate['pin']),
            "availability": settings_store.get_setting(db, settings_store.ADMIN_AVAILABILITY, {}),
            "bus_config": settings_store.get_setting(db, settings_store.BUS_CONFIG, []),
            "first_working_day_counts": fwd_counts,
            "fwd_capacity": shopper_crud.FWD_SHIFT_CAPACITY,
        })


@routes.route('/api/public/min-start-date')
def min_start_date():
    today = get_local_now(LOCAL_TIMEZONE).date()
    earliest = validation.calculate_min_start_date(request.args.get('nationality'), today)
    return jsonify({"min_start_date": earliest.isoformat()})


@routes.route('/api/submissions', methods=['POST'])
@shopper_verified
def submit_shopper():
    data = _json_body()
    with get_session() as db:
        shopper = shopper_crud.create_submission(
            db, data.get('name', ''), data.get('details') or {}, data.get('shifts') or []
        )
        record = shopper_crud.to_record(shopper)
    return _ok({"shopper": record}, 201)


# -----------------------------------------------------------
# Shoppers & shifts (admin)
# -----------------------------------------------------------
@routes.route('/api/shoppers')
@admin_required
def list_shoppers():
    group_mode = request.args.get('group')
    with get_session() as db:
        records = [shopper_crud.to_record(s) for s in shopper_crud.list_shoppers(db, request.args.get('search'))]
    if group_mode in ('SESSION', 'START_DATE'):
        return jsonify({"groups": reports.group_records(records, group_mode, LOCAL_TIMEZONE)})
    return jsonify({"shoppers": records})


@routes.route('/api/shoppers/<shopper_id>')
@admin_required
def get_shopper(shopper_id):
    with get_session() as db:
        return jsonify({"shopper": shopper_crud.to_record(shopper_crud.get_shopper(db, shopper_id))})


@routes.route('/api/shoppers/<shopper_id>', methods=['PATCH'])
@admin_required
def update_shopper(shopper_id):
    data = _json_body()
    with get_session() as db:
        shopper = shopper_crud.update_shopper(db, shopper_id, data.get('name'), data.get('details'))
        record = shopper_crud.to_record(shopper)
    return _ok({"shopper": record})


@routes.route('/api/shoppers/<shopper_id>', methods=['DELETE'])
@admin_required
def delete_shopper(shopper_id):
    with get_session() as db:
        shopper_crud.delete_shopper(db, shopper_id)
    return _ok()


@routes.route('/api/shoppers/order', methods=['POST'])
@admin_required
def save_order():
    ordered_ids = _json_body().get('ordered_ids') or []
    if not isinstance(ordered_ids, list):
        raise ValidationError("ordered_ids must be a list")
    with get_session() as db:
        updated = shopper_crud.save_group_order(db, ordered_ids)
    return _ok({"updated": updated})


@routes.route('/api/shoppers/<shopper_id>/shifts', methods=['POST'])
@admin_required
def add_shift(shopper_id):
    data = _json_body()
    with get_session() as db:
        shift = shopper_crud.add_shift(db, shopper_id, data.get('date'), data.get('time'), data.get('type'))
        payload = {"id": shift.id, "date": shift.date, "time": shift.time, "type": shift.type}
    return _ok({"shift": payload}, 201)


@routes.route('/api/shifts/<shift_id>', methods=['PATCH'])
@admin_required
def update_shift(shift_id):
    data = _json_body()
    with get_session() as db:
        shift = shopper_crud.update_shift(db, shift_id, data.get('date'), data.get('time'), data.get('type'))
        payload = {"id": shift.id, "date": shift.date, "time": shift.time, "type": shift.type}
    return _ok({"shift": payload})


@routes.route('/api/shifts/<shift_id>', methods=['DELETE'])
@admin_required
def delete_shift(shift_id):
    with get_session() as db:
        shopper_crud.delete_shift(db, shift_id)
    return _ok()


# -----------------------------------------------------------
# Talks & performance
# -----------------------------------------------------------
@routes.route('/api/talks')
@admin_required
def talks_dashboard():
    search = request.args.get('search')
    with get_session() as db:
        summaries = [talks.summarize_for_dashboard(s) for s in shopper_crud.list_shoppers(db, search)]
    return jsonify({"shoppers": summaries, "talk_types": talks.TALK_TYPES})


@routes.route('/api/shoppers/<shopper_id>/talks')
@admin_required
def talk_history(shopper_id):
    with get_session() as db:
        return jsonify({"talks": talks.talk_history(shopper_crud.get_shopper(db, shopper_id))})


@routes.route('/api/shoppers/<shopper_id>/talks', methods=['POST'])
@admin_required
def log_talk(shopper_id):
    data = _json_body()
    with get_session() as db:
        entry = talks.log_talk(db, shopper_id, data.get('type', ''), data.get('lead_name', ''), data.get('notes', ''))
    return _ok({"talk": entry}, 201)


@routes.route('/api/shoppers/<shopper_id>/metrics', methods=['PUT'])
@admin_required
def update_metrics(shopper_id):
    with get_session() as db:
        performance = talks.update_metrics(db, shopper_id, _json_body())
    return _ok({"performance": performance})


@routes.route('/api/shoppers/<shopper_id>/check-in', methods=['POST'])
@admin_required
def toggle_check_in(shopper_id):
    with get_session() as db:
        value = talks.toggle_check_in(db, shopper_id)
    return _ok({"checkInToday": value})


@routes.route('/api/shoppers/<shopper_id>/notes', methods=['POST'])
@admin_required
def add_note(shopper_id):
    data = _json_body()
    with get_session() as db:
        entry = talks.add_note(db, shopper_id, data.get('content', ''), data.get('author', ''))
    return _ok({"note": entry}, 201)


# -----------------------------------------------------------
# Audit & access logs
# -----------------------------------------------------------
@routes.route('/api/audit')
@admin_required
def audit_logs():
    limit = request.args.get('limit', type=int) or LOG_LIMIT
    with get_session() as db:
        entries = [audit.describe_audit_log(log) for log in audit.list_audit_logs(db, limit)]
    return jsonify({"logs": entries})


@routes.route('/api/audit/<int:audit_id>/restore', methods=['POST'])
@admin_required
def restore_audit(audit_id):
    with get_session() as db:
        result = audit.restore_from_audit(db, audit_id)
    return _ok({
        "shopper_id": result.shopper_id,
        "name": result.name,
        "shift_count": result.shift_count,
        "message": f"Restored {result.name} with {result.shift_count} shifts.",
    })


@routes.route('/api/access-logs')
@admin_required
def access_logs():
    limit = request.args.get('limit', type=int) or LOG_LIMIT
    with get_session() as db:
        entries = [
            {
                "id": entry.id,
                "created_at": isoformat_utc(entry.created_at),
                "status": entry.status,
                "target_role": entry.target_role,
                "device": access_log.classify_device(entry.device_info),
                "device_info": entry.device_info,
                "ip_address": entry.ip_address,
            }
            for entry in access_log.list_access_logs(db, limit)
        ]
    return jsonify({"logs": entries})


# -----------------------------------------------------------
# Spreadsheet sync
# -----------------------------------------------------------
@routes.route('/api/sync', methods=['POST'])
@admin_required
def sync_sheet():
    with get_session() as db:
        result = sheet_sync.run_sheet_sync(db)
    return _ok(result.to_dict())


# -----------------------------------------------------------
# Reports & exports
# -----------------------------------------------------------
@routes.route('/api/reports/ser', methods=['POST'])
@admin_required
def ser_report():
    data = _json_body()
    session_date = _date_param(data.get('session_date'), 'session_date')
    session_type = str(data.get('session_type', 'MORNING')).upper()
    if session_type not in ('MORNING', 'AFTERNOON'):
        raise ValidationError("session_type must be MORNING or AFTERNOON")

    with get_session() as db:
        all_records = [shopper_crud.to_record(s) for s in shopper_crud.list_shoppers(db)]
    group_key = f"{session_date.isoformat()}_{'0_MORNING' if session_type == 'MORNING' else '1_AFTERNOON'}"
    session_records = reports.group_records(all_records, 'SESSION', LOCAL_TIMEZONE).get(group_key, [])

    text = reports.build_shift_report(
        session_records,
        session_date,
        session_type,
        reports.count_hired_in_week(all_records, session_date, LOCAL_TIMEZONE),
        scheduled=coerce_int(data.get('scheduled'), 0),
        showed_up=coerce_int(data.get('showed_up'), 0),
        rejected=data.get('rejected') or [],
        end_time=str(data.get('end_time') or ''),
        tasks_done=data.get('tasks_done') or [],
        tasks_postponed=data.get('tasks_postponed') or [],
        it_issues=str(data.get('it_issues') or ''),
        additional_notes=str(data.get('additional_notes') or ''),
    )
    return _ok({"report": text, "available_tasks": APP_CONFIG['report_tasks']})


def _selected_records(db):
    ids = [i for i in request.args.get('ids', '').split(',') if i]
    if ids:
        return [shopper_crud.to_record(shopper_crud.get_shopper(db, i)) for i in ids]
    return [shopper_crud.to_record(s) for s in shopper_crud.list_shoppers(db)]


@routes.route('/api/reports/weekly')
@admin_required
def weekly_rows():
    week_offset = request.args.get('week', default=0, type=int)
    rows, skipped = [], []
    with get_session() as db:
        for record in _selected_records(db):
            try:
                rows.append(reports.generate_spreadsheet_row(record, week_offset))
            except ValueError as exc:
                skipped.append(str(exc))
    return jsonify({"rows": '\n'.join(rows), "skipped": skipped})


@routes.route('/api/reports/hr')
@admin_required
def hr_rows():
    with get_session() as db:
        records = _selected_records(db)
    if request.args.get('format') == 'html':
        return Response(reports.generate_bulk_hr_html(records), mimetype='text/html')
    return Response(reports.generate_bulk_hr_rows(records), mimetype='text/tab-separated-values')


@routes.route('/api/reports/heatmap')
@admin_required
def shift_heatmap():
    with get_session() as db:
        records = _selected_records(db)
    return jsonify(reports.shift_heatmap(records, tz_name=LOCAL_TIMEZONE))


@routes.route('/api/export.csv')
@admin_required
def export_csv():
    with get_session() as db:
        records = [shopper_crud.to_record(s) for s in shopper_crud.list_shoppers(db, request.args.get('search'))]
    filename = f"shoppers_export_{get_local_now(LOCAL_TIMEZONE).strftime('%Y%m%d')}.csv"
    return Response(
        reports.export_shoppers_csv(records, LOCAL_TIMEZONE),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


@routes.route('/api/compliance')
@admin_required
def compliance_report():
    with get_session() as db:
        records = [shopper_crud.to_record(s) for s in shopper_crud.list_shoppers(db)]
    return jsonify(validation.build_compliance_report(records))


@routes.route('/api/shoppers/<shopper_id>/ignore-compliance', methods=['POST'])
@admin_required
def ignore_compliance(shopper_id):
    flag = bool(_json_body().get('ignore', True))
    with get_session() as db:
        shopper_crud.set_ignore_compliance(db, shopper_id, flag)
    return _ok({"ignoreCompliance": flag})


@routes.route('/api/recruiters/stats')
@admin_required
def recruiter_stats():
    week = request.args.get('week') or 'ALL'
    if week != 'ALL':
        _date_param(week, 'week')
    cache = StateManager.get_instance().stats_cache
    cache_key = f"recruiters:{week}"
    cached = cache.get(cache_key)
    if cached is not None:
        return jsonify(cached)

    with get_session() as db:
        records = [shopper_crud.to_record(s) for s in shopper_crud.list_shoppers(db)]
        staff = settings_store.get_staff_list(db)
    stats = reports.recruiter_stats(records, staff, week, LOCAL_TIMEZONE)
    payload = {
        "stats": stats,
        "total_hires": sum(entry['hires'] for entry in stats),
        "available_weeks": reports.available_weeks(records, LOCAL_TIMEZONE),
    }
    cache.set(cache_key, payload)
    return jsonify(payload)


# -----------------------------------------------------------
# Frozen list
# -----------------------------------------------------------
@routes.route('/api/frozen')
@admin_required
def frozen_list():
    with get_session() as db:
        return jsonify({"shoppers": [shopper_crud.to_record(s) for s in shopper_crud.list_frozen(db)]})


@routes.route('/api/frozen/<shopper_id>/toggle', methods=['POST'])
@admin_required
def toggle_frozen(shopper_id):
    with get_session() as db:
        value = shopper_crud.toggle_frozen_added(db, shopper_id)
    return _ok({"frozenAddedToSystem": value})


@routes.route('/api/frozen/<shopper_id>/note', methods=['PUT'])
@admin_required
def frozen_note(shopper_id):
    with get_session() as db:
        shopper_crud.save_frozen_note(db, shopper_id, str(_json_body().get('text', '')))
    return _ok()


# -----------------------------------------------------------
# Settings
# -----------------------------------------------------------
@routes.route('/api/settings/admin-pin', methods=['PUT'])
@admin_required
def update_admin_pin():
    pin = str(_json_body().get('pin', '')).strip()
    if len(pin) < 4:
        raise ValidationError("PIN must be at least 4 digits.")
    with get_session() as db:
        settings_store.put_setting(db, settings_store.ADMIN_AUTH, {'pin': pin})
    dashboard_logger.info("Admin PIN updated")
    return _ok()


@routes.route('/api/settings/shopper-auth', methods=['GET', 'PUT'])
@admin_required
def shopper_auth_settings():
    with get_session() as db:
        if request.method == 'PUT':
            data = _json_body()
            settings_store.put_setting(db, settings_store.SHOPPER_AUTH, {
                'pin': str(data.get('pin', '')).strip(),
                'enabled': data.get('enabled', True) is not False,
            })
        return jsonify(settings_store.get_shopper_auth(db))


def _json_setting(key: str, default, expected_type):
    with get_session() as db:
        if request.method == 'PUT':
            value = request.get_json(silent=True)
            if not isinstance(value, expected_type):
                raise ValidationError(f"{key} must be a {expected_type.__name__}")
            settings_store.put_setting(db, key, value)
        return jsonify({"value": settings_store.get_setting(db, key, default)})


@routes.route('/api/settings/bus', methods=['GET', 'PUT'])
@admin_required
def bus_settings():
    return _json_setting(settings_store.BUS_CONFIG, [], list)


@routes.route('/api/settings/availability', methods=['GET', 'PUT'])
@admin_required
def availability_settings():
    return _json_setting(settings_store.ADMIN_AVAILABILITY, {}, dict)


@routes.route('/api/settings/staff', methods=['GET', 'PUT'])
@admin_required
def staff_settings():
    with get_session() as db:
        if request.method == 'PUT':
            staff = request.get_json(silent=True)
            if not isinstance(staff, list):
                raise ValidationError("staff_list must be a list")
            cleaned = [
                {'name': str(m.get('name', '')).strip(),
                 'isVisibleInPerformance': m.get('isVisibleInPerformance', True) is not False}
                for m in staff if isinstance(m, dict) and str(m.get('name', '')).strip()
            ]
            settings_store.put_setting(db, settings_store.STAFF_LIST, cleaned)
        return jsonify({"value": settings_store.get_staff_list(db)})


@routes.route('/api/settings/template', methods=['GET', 'PUT'])
@admin_required
def template_settings():
    with get_session() as db:
        if request.method == 'PUT':
            template = request.get_json(silent=True)
            if not isinstance(template, dict):
                raise ValidationError("weekly_template must be an object")
            settings_store.put_setting(db, settings_store.WEEKLY_TEMPLATE, template)
        template = settings_store.get_setting(db, settings_store.WEEKLY_TEMPLATE)
        return jsonify({"value": template or settings_store.open_weekly_template()})


@routes.route('/api/settings/template/reset', methods=['POST'])
@admin_required
def reset_template():
    template = settings_store.empty_weekly_template()
    with get_session() as db:
        settings_store.put_setting(db, settings_store.WEEKLY_TEMPLATE, {str(k): v for k, v in template.items()})
    return _ok({"value": template})


@routes.route('/api/settings/template/copy-previous', methods=['POST'])
@admin_required
def copy_previous_template_day():
    data = _json_body()
    weekday = data.get('weekday')
    if not isinstance(weekday, int) or not 0 <= weekday <= 6:
        raise ValidationError("weekday must be 0 (Sunday) to 6 (Saturday)")
    template = data.get('template')
    if not isinstance(template, dict):
        raise ValidationError("template must be an object")
    updated = settings_store.copy_previous_day(template, weekday)
    # JSON keys must share one type
    return _ok({"value": {str(k): v for k, v in updated.items()}})


@routes.route('/api/settings/template/apply', methods=['POST'])
@admin_required
def apply_template():
    data = _json_body()
    template = data.get('template')
    if not isinstance(template, dict):
        raise ValidationError("template must be an object")
    try:
        weeks = int(data.get('weeks', 4))
    except (TypeError, ValueError):
        raise ValidationError("weeks must be a number")
    if weeks < 1:
        raise ValidationError("weeks must be at least 1")
    start = _date_param(data['start_date'], 'start_date') if data.get('start_date') else None

    with get_session() as db:
        availability = settings_store.apply_weekly_template(
            db, template, weeks, get_local_now(LOCAL_TIMEZONE).date(), start_date=start
        )
    return _ok({"availability": availability})


# -----------------------------------------------------------
# Health & readiness
# -----------------------------------------------------------
def run_operational_checks(context: str = 'unknown') -> dict:
    results = []
    now = get_local_now(LOCAL_TIMEZONE).isoformat()

    try:
        with open(CONFIG_FILE_PATH, "r", encoding='utf-8') as f:
            yaml.safe_load(f)
        results.append({'name': 'Config File', 'status': 'OK', 'detail': f'{CONFIG_FILE_PATH} is readable and valid YAML'})
    except FileNotFoundError:
        results.append({'name': 'Config File', 'status': 'WARNING', 'detail': f'{CONFIG_FILE_PATH} not found - running on defaults'})
    except Exception as e:
        results.append({'name': 'Config File', 'status': 'ERROR', 'detail': f'Failed to load {CONFIG_FILE_PATH}: {str(e)}'})

    try:
        check_connection()
        results.append({'name': 'Database', 'status': 'OK', 'detail': 'Database connection works'})
    except Exception as e:
        results.append({'name': 'Database', 'status': 'ERROR', 'detail': f'Database not reachable: {str(e)}'})

    try:
        with get_session() as db:
            admin_pin = settings_store.get_admin_pin(db)
        if admin_pin == DEFAULT_ADMIN_PIN:
            results.append({'name': 'Admin PIN', 'status': 'WARNING', 'detail': 'Admin PIN is still the default value - change for production!'})
        else:
            results.append({'name': 'Admin PIN', 'status': 'OK', 'detail': 'Admin PIN is configured'})
    except Exception as e:
        results.append({'name': 'Admin PIN', 'status': 'ERROR', 'detail': f'Failed to check admin PIN: {str(e)}'})

    if SHEET_SYNC_SETTINGS.get('csv_url'):
        results.append({'name': 'Sheet Sync', 'status': 'OK', 'detail': 'Published CSV source configured'})
    elif SHEET_SYNC_SETTINGS.get('spreadsheet_id'):
        creds = SHEET_SYNC_SETTINGS.get('credentials_file') or 'credentials.json'
        if os.path.exists(creds):
            results.append({'name': 'Sheet Sync', 'status': 'OK', 'detail': f'Sheets API with service account {creds}'})
        else:
            results.append({'name': 'Sheet Sync', 'status': 'ERROR', 'detail': f'Credentials file "{creds}" not found'})
    else:
        results.append({'name': 'Sheet Sync', 'status': 'WARNING', 'detail': 'No spreadsheet source configured'})

    auto_sync_hour = SCHEDULER_SETTINGS.get('auto_sync_hour')
    if auto_sync_hour is not None and (not isinstance(auto_sync_hour, int) or not 0 <= auto_sync_hour <= 23):
        results.append({'name': 'Scheduler', 'status': 'ERROR', 'detail': f'Invalid auto_sync_hour: {auto_sync_hour} (must be 0-23)'})
    else:
        sync_detail = f', auto sync at {auto_sync_hour}:00' if auto_sync_hour is not None else ''
        reset_time = SCHEDULER_SETTINGS.get('check_in_reset_time', '04:00')
        results.append({'name': 'Scheduler', 'status': 'OK', 'detail': f'Check-ins reset at {reset_time}{sync_detail}'})

    if os.path.isdir(LOG_FOLDER) and os.access(LOG_FOLDER, os.W_OK):
        results.append({'name': 'Log Folder', 'status': 'OK', 'detail': f'Log folder "{LOG_FOLDER}" is writable'})
    else:
        results.append({'name': 'Log Folder', 'status': 'ERROR', 'detail': f'Log folder "{LOG_FOLDER}" is missing or not writable'})

    return {
        'results': results,
        'context': context,
        'timestamp': now
    }


def _summarize(results: list) -> dict:
    summary = {'ok': 0, 'warning': 0, 'error': 0}
    for entry in results:
        key = str(entry.get('status', '')).lower()
        if key in summary:
            summary[key] += 1
    return summary


@routes.route('/healthz')
def healthz():
    return jsonify({
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": datetime.now().astimezone().isoformat(),
    })


@routes.route('/readyz')
def readyz():
    checks = run_operational_checks('readyz')
    summary = _summarize(checks['results'])
    ready = summary['error'] == 0
    return jsonify({
        "status": "ready" if ready else "not_ready",
        "summary": summary,
        "checks": checks['results'],
        "timestamp": checks['timestamp'],
    }), 200 if ready else 503


@routes.route('/status')
@admin_required
def status():
    checks = run_operational_checks('status')
    return jsonify({
        "service": SERVICE_NAME,
        "summary": _summarize(checks['results']),
        "checks": checks['results'],
        "scheduler": SCHEDULER_SETTINGS,
        "timestamp": checks['timestamp'],
    })
