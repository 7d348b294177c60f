"""
Key/value application settings stored in ``app_settings``.

Known keys:
- admin_auth:          {"pin": "..."}
- shopper_auth:        {"pin": "...", "enabled": bool}
- admin_availability:  {"YYYY-MM-DD": {shift time: [shift types]}}
- weekly_template:     {weekday (0=Sunday): {shift time: [shift types]}}
- bus_config:          [bus stop, ...]
- staff_list:          [{"name": ..., "isVisibleInPerformance": bool}, ...]
"""
import copy
import json
from datetime import date, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from config import APP_CONFIG, dashboard_logger
from data_manager.models import SHIFT_TIME_VALUES, SHIFT_TYPE_VALUES, AppSetting
from lib.utils import format_date_key, get_next_monday, sunday_based_weekday

ADMIN_AUTH = 'admin_auth'
SHOPPER_AUTH = 'shopper_auth'
ADMIN_AVAILABILITY = 'admin_availability'
WEEKLY_TEMPLATE = 'weekly_template'
BUS_CONFIG = 'bus_config'
STAFF_LIST = 'staff_list'

SETTING_KEYS = (ADMIN_AUTH, SHOPPER_AUTH, ADMIN_AVAILABILITY, WEEKLY_TEMPLATE, BUS_CONFIG, STAFF_LIST)


def get_setting(session: Session, key: str, default: Any = None) -> Any:
    row = session.get(AppSetting, key)
    if row is None or row.value is None:
        return default
    value = row.value
    # Older rows were written as JSON strings
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            dashboard_logger.warning("Setting %s holds a non-JSON string", key)
    return value


def put_setting(session: Session, key: str, value: Any) -> AppSetting:
    row = session.get(AppSetting, key)
    if row is None:
        row = AppSetting(id=key, value=value)
        session.add(row)
    else:
        row.value = copy.deepcopy(value)
    session.flush()
    return row


# -----------------------------------------------------------
# Convenience accessors
# -----------------------------------------------------------
def get_admin_pin(session: Session) -> str:
    value = get_setting(session, ADMIN_AUTH) or {}
    pin = value.get('pin') if isinstance(value, dict) else None
    return str(pin) if pin else APP_CONFIG['admin_pin']


def get_shopper_auth(session: Session) -> Dict[str, Any]:
    value = get_setting(session, SHOPPER_AUTH) or {}
    if not isinstance(value, dict):
        value = {}
    return {'pin': str(value.get('pin') or ''), 'enabled': value.get('enabled') is not False}


def get_staff_list(session: Session):
    staff = get_setting(session, STAFF_LIST)
    if isinstance(staff, list):
        return staff
    return copy.deepcopy(APP_CONFIG['staff'])


# -----------------------------------------------------------
# Weekly template
# -----------------------------------------------------------
def empty_weekly_template() -> Dict[int, Dict[str, list]]:
    return {day: {shift_time: [] for shift_time in SHIFT_TIME_VALUES} for day in (1, 2, 3, 4, 5, 6, 0)}


def open_weekly_template() -> Dict[int, Dict[str, list]]:
    """Every shift open for both types; the starting point for a new template."""
    return {day: {shift_time: list(SHIFT_TYPE_VALUES) for shift_time in SHIFT_TIME_VALUES} for day in range(7)}


def _template_day(template: Dict[Any, Any], weekday: int) -> Optional[Dict[str, list]]:
    # JSON round trips turn int keys into strings
    if weekday in template:
        return template[weekday]
    return template.get(str(weekday))


def copy_previous_day(template: Dict[Any, Any], weekday: int) -> Dict[Any, Any]:
    """Copy the day before ``weekday`` onto it. Monday has no previous day."""
    if weekday == 1:
        return template
    previous = _template_day(template, 6 if weekday == 0 else weekday - 1)
    if not previous:
        return template
    updated = dict(template)
    updated.pop(str(weekday), None)
    updated[weekday] = copy.deepcopy(previous)
    return updated


def apply_weekly_template(session: Session, template: Dict[Any, Any], weeks: int,
                          today: date, start_date: Optional[date] = None) -> Dict[str, Any]:
    """
    Expand the template into dated availability.

    Starts next Monday unless ``start_date`` is given and covers ``weeks * 7``
    days. Existing availability outside that window is kept.
    """
    if weeks < 1:
        raise ValueError("weeks must be at least 1")

    start = start_date or get_next_monday(today)
    availability = dict(get_setting(session, ADMIN_AVAILABILITY) or {})

    for offset in range(weeks * 7):
        day = start + timedelta(days=offset)
        entry = _template_day(template, sunday_based_weekday(day))
        if entry:
            availability[format_date_key(day)] = copy.deepcopy(entry)

    put_setting(session, ADMIN_AVAILABILITY, availability)
    put_setting(session, WEEKLY_TEMPLATE, {str(k): v for k, v in template.items()})
    dashboard_logger.info(f"Weekly template applied from {start} for {weeks} weeks")
    return availability
