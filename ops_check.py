"""Quick operational readiness helper.

Loads the Flask app, prints the effective sheet sync and scheduler settings,
then runs the operational checks (config file, database, admin PIN, sheet
source, log folder). Run it after deploying, before starting the server.
"""
from pprint import pprint

import app


def main() -> None:
    app.init_db()
    print("Sheet sync:")
    pprint({k: v for k, v in app.APP_CONFIG['sheet_sync'].items() if k != 'credentials_file'})
    print("\nScheduler:")
    pprint(app.SCHEDULER_SETTINGS)
    print("\nOperational checks:")
    pprint(app.run_operational_checks('cli'))


if __name__ == '__main__':
    main()
