# Standard library imports
import atexit
from datetime import time, timedelta
from apscheduler.schedulers.background import BackgroundScheduler

# Flask imports
from flask import Flask

# Local imports
from config import APP_CONFIG, SCHEDULER_SETTINGS, LOCAL_TIMEZONE, dashboard_logger
from routes import routes, run_operational_checks
from data_manager import (
    auto_sync_job,
    check_and_perform_daily_reset,
    init_db,
)
from lib.utils import parse_clock

# -----------------------------------------------------------
# Flask App Initialization
# -----------------------------------------------------------
app = Flask(__name__)
app.secret_key = APP_CONFIG['secret_key']
app.config['MAX_CONTENT_LENGTH'] = 2 * 1024 * 1024  # JSON bodies only

# Shopper PIN verification survives for the onboarding week
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=7)

# Register Routes
app.register_blueprint(routes)

# -----------------------------------------------------------
# Scheduler Setup
# -----------------------------------------------------------
scheduler = BackgroundScheduler(timezone=LOCAL_TIMEZONE)

# Catch-up check on every request in case the process slept through the job
@app.before_request
def before_request_hook():
    check_and_perform_daily_reset()


def start_scheduler() -> None:
    reset_at = parse_clock(SCHEDULER_SETTINGS.get('check_in_reset_time', '04:00'), time(4, 0))
    scheduler.add_job(check_and_perform_daily_reset, 'cron', hour=reset_at.hour, minute=reset_at.minute,
                      id='check_in_reset', replace_existing=True)

    auto_sync_hour = SCHEDULER_SETTINGS.get('auto_sync_hour')
    if isinstance(auto_sync_hour, int) and 0 <= auto_sync_hour <= 23:
        scheduler.add_job(auto_sync_job, 'cron', hour=auto_sync_hour, minute=0,
                          id='sheet_sync', replace_existing=True)
        dashboard_logger.info(f"Auto sync scheduled daily at {auto_sync_hour}:00")

    scheduler.start()
    atexit.register(lambda: scheduler.shutdown(wait=False))

# -----------------------------------------------------------
# Startup Logic
# -----------------------------------------------------------
def startup_initialization():
    init_db()
    checks = run_operational_checks('startup')
    for entry in checks['results']:
        if entry['status'] != 'OK':
            dashboard_logger.warning(f"[startup] {entry['name']}: {entry['status']} - {entry['detail']}")
    start_scheduler()


# -----------------------------------------------------------
# Main Entry Point
# -----------------------------------------------------------
if __name__ == '__main__':
    startup_initialization()

    # In production, use a proper WSGI server (gunicorn/waitress)
    # For development/local use:
    app.run(host='0.0.0.0', port=5000, debug=True, use_reloader=False)
