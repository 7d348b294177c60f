import unittest
from datetime import datetime
from unittest.mock import patch

from data_manager import scheduled_tasks
from data_manager.database import get_session
from data_manager.shopper_crud import get_shopper
from lib.errors import SyncError
from state_manager import StateManager

from db_case import DatabaseTestCase


class TestDailyReset(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.shopper_id = self.add_shopper('Wim', {'talkProgress': {'checkInToday': True}})

    def _checked_in(self) -> bool:
        with get_session() as session:
            return get_shopper(session, self.shopper_id).details['talkProgress']['checkInToday']

    def test_no_reset_before_configured_time(self) -> None:
        self.assertFalse(scheduled_tasks.check_and_perform_daily_reset(datetime(2026, 3, 2, 3, 59)))
        self.assertTrue(self._checked_in())

    def test_resets_once_per_day(self) -> None:
        self.assertTrue(scheduled_tasks.check_and_perform_daily_reset(datetime(2026, 3, 2, 4, 0)))
        self.assertFalse(self._checked_in())
        self.assertEqual(StateManager.get_instance().last_check_in_reset, datetime(2026, 3, 2).date())

        self.assertFalse(scheduled_tasks.check_and_perform_daily_reset(datetime(2026, 3, 2, 18, 0)))
        self.assertTrue(scheduled_tasks.check_and_perform_daily_reset(datetime(2026, 3, 3, 8, 0)))


class TestAutoSync(unittest.TestCase):
    @patch('data_manager.scheduled_tasks.run_sheet_sync')
    def test_skipped_when_not_configured(self, mock_sync) -> None:
        with patch.dict(scheduled_tasks.SHEET_SYNC_SETTINGS, {'spreadsheet_id': '', 'csv_url': ''}):
            scheduled_tasks.auto_sync_job()
        mock_sync.assert_not_called()

    @patch('data_manager.scheduled_tasks.get_session')
    @patch('data_manager.scheduled_tasks.run_sheet_sync', side_effect=SyncError("boom"))
    def test_sync_errors_are_logged(self, mock_sync, _mock_session) -> None:
        with patch.dict(scheduled_tasks.SHEET_SYNC_SETTINGS, {'csv_url': 'https://example.test/x.csv'}):
            with self.assertLogs(scheduled_tasks.dashboard_logger, level='ERROR') as logs:
                scheduled_tasks.auto_sync_job()
        mock_sync.assert_called_once()
        self.assertIn('Auto sync failed: boom', logs.output[0])


if __name__ == "__main__":
    unittest.main()
