# Standard library imports
import os
import yaml
import copy
import logging
from logging.handlers import RotatingFileHandler
from typing import Dict, Any, List
from lib.utils import (
    DEFAULT_TIMEZONE,
    coerce_int,
    dashboard_logger
)

# -----------------------------------------------------------
# Logging Configuration
# -----------------------------------------------------------
UPLOAD_FOLDER = 'uploads'
if not os.path.exists(UPLOAD_FOLDER):
    os.makedirs(UPLOAD_FOLDER)

CONFIG_FILE_PATH = os.environ.get('DASHBOARD_CONFIG', 'config.yaml')
LOG_FOLDER = 'logs'

os.makedirs(LOG_FOLDER, exist_ok=True)
dashboard_logger.setLevel(logging.INFO)

# Avoid adding multiple handlers if reloaded
if not dashboard_logger.handlers:
    handler = RotatingFileHandler(os.path.join(LOG_FOLDER, 'dashboard.log'), maxBytes=10_000_000, backupCount=3)
    handler.setFormatter(logging.Formatter('%(asctime)s [%(levelname)s] %(message)s'))
    dashboard_logger.addHandler(handler)

# -----------------------------------------------------------
# Default Constants
# -----------------------------------------------------------
DEFAULT_ADMIN_PIN = '7709'
DEFAULT_SECRET_KEY = 'change_secret_for_live'
DEFAULT_DATABASE_URL = f"sqlite:///{os.path.join(UPLOAD_FOLDER, 'shoppers.db')}"

DEFAULT_SECURITY = {
    'max_failed_attempts': 5,
    'lockout_minutes': 5,
}

DEFAULT_SHEET_SYNC = {
    'spreadsheet_id': '',
    'tab_name': 'Shift-Dashboard-proposal',
    'range': 'A2:G',
    'credentials_file': 'credentials.json',
    'csv_url': '',
    'insert_unmatched': True,
    'fuzzy_match_cutoff': 0.0,
}

DEFAULT_SCHEDULER = {
    'check_in_reset_time': '04:00',
    'auto_sync_hour': None,
}

DEFAULT_REPORT_TASKS = ['Bags', 'Tags', 'Scorecards', 'Admin', 'Callshift']

# -----------------------------------------------------------
# Config Loading Logic
# -----------------------------------------------------------
def _load_raw_config() -> Dict[str, Any]:
    try:
        with open(CONFIG_FILE_PATH, 'r', encoding='utf-8') as config_file:
            return yaml.safe_load(config_file) or {}
    except FileNotFoundError:
        return {}
    except Exception as exc:
        dashboard_logger.warning("Failed to load %s: %s", CONFIG_FILE_PATH, exc)
        return {}

def _merge_section(defaults: Dict[str, Any], raw_value: Any) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    if isinstance(raw_value, dict):
        for key, value in raw_value.items():
            merged[key] = value
    return merged

def _normalize_staff(raw_staff: Any) -> List[Dict[str, Any]]:
    """Accept either plain names or {name, isVisibleInPerformance} entries."""
    staff: List[Dict[str, Any]] = []
    if not isinstance(raw_staff, list):
        return staff
    for entry in raw_staff:
        if isinstance(entry, str) and entry.strip():
            staff.append({'name': entry.strip(), 'isVisibleInPerformance': True})
        elif isinstance(entry, dict) and str(entry.get('name', '')).strip():
            staff.append({
                'name': str(entry['name']).strip(),
                'isVisibleInPerformance': entry.get('isVisibleInPerformance', True) is not False,
            })
    return staff

def _build_app_config() -> Dict[str, Any]:
    raw_config = _load_raw_config()
    config: Dict[str, Any] = {
        'secret_key': raw_config.get('secret_key', DEFAULT_SECRET_KEY),
        'admin_pin': str(raw_config.get('admin_pin', DEFAULT_ADMIN_PIN)),
        'database_url': os.environ.get('DASHBOARD_DATABASE_URL') or raw_config.get('database_url', DEFAULT_DATABASE_URL),
        'timezone': raw_config.get('timezone', DEFAULT_TIMEZONE),
        'log_limit': coerce_int(raw_config.get('log_limit', 50), 50),
    }

    security = _merge_section(DEFAULT_SECURITY, raw_config.get('security'))
    security['max_failed_attempts'] = max(1, coerce_int(security.get('max_failed_attempts'), 5))
    security['lockout_minutes'] = max(1, coerce_int(security.get('lockout_minutes'), 5))
    config['security'] = security

    sheet_sync = _merge_section(DEFAULT_SHEET_SYNC, raw_config.get('sheet_sync'))
    sheet_sync['insert_unmatched'] = bool(sheet_sync.get('insert_unmatched', True))
    try:
        sheet_sync['fuzzy_match_cutoff'] = float(sheet_sync.get('fuzzy_match_cutoff') or 0.0)
    except (TypeError, ValueError):
        sheet_sync['fuzzy_match_cutoff'] = 0.0
    config['sheet_sync'] = sheet_sync

    # Scheduler settings
    config['scheduler'] = _merge_section(DEFAULT_SCHEDULER, raw_config.get('scheduler'))

    config['staff'] = _normalize_staff(raw_config.get('staff', []))

    report_tasks = raw_config.get('report_tasks')
    if isinstance(report_tasks, list) and report_tasks:
        config['report_tasks'] = [str(task) for task in report_tasks]
    else:
        config['report_tasks'] = list(DEFAULT_REPORT_TASKS)

    return config

# -----------------------------------------------------------
# Global Configuration Objects
# -----------------------------------------------------------
APP_CONFIG = _build_app_config()
SECURITY_SETTINGS = APP_CONFIG['security']
SHEET_SYNC_SETTINGS = APP_CONFIG['sheet_sync']
SCHEDULER_SETTINGS = APP_CONFIG['scheduler']
LOCAL_TIMEZONE = APP_CONFIG['timezone']
LOG_LIMIT = APP_CONFIG['log_limit']
