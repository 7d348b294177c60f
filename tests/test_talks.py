import unittest

from data_manager import talks
from data_manager.database import get_session
from data_manager.shopper_crud import get_shopper
from lib.errors import NotFoundError, ValidationError

from db_case import DatabaseTestCase


class TestTalks(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.shopper_id = self.add_shopper('Uma', {'pnNumber': 'PN5', 'performance': {'late': 2}})

    def test_log_talk_marks_progress(self) -> None:
        with get_session() as session:
            entry = talks.log_talk(session, self.shopper_id, 'welcome', ' Lead Lou ', 'Went well')
            talks.log_talk(session, self.shopper_id, 'CHECK_IN', 'Lead Lou')

        self.assertEqual(entry['type'], 'WELCOME')
        self.assertEqual(entry['leadShopper'], 'Lead Lou')

        with get_session() as session:
            shopper = get_shopper(session, self.shopper_id)
            progress = shopper.details['talkProgress']
            self.assertEqual(progress['welcomeTalk'], 'DONE')
            self.assertIs(progress['checkInToday'], True)
            self.assertEqual(len(shopper.details['talkLogs']), 2)

            history = talks.talk_history(shopper)
            self.assertEqual(len(history), 2)
            self.assertGreaterEqual(history[0]['date'], history[1]['date'])

    def test_log_talk_rejects_bad_input(self) -> None:
        with get_session() as session:
            with self.assertRaises(ValidationError) as ctx:
                talks.log_talk(session, self.shopper_id, 'WELCOME', '  ')
            self.assertEqual(ctx.exception.message, 'Please enter Lead Name')
            with self.assertRaises(ValidationError):
                talks.log_talk(session, self.shopper_id, 'COFFEE', 'Lou')
            with self.assertRaises(NotFoundError):
                talks.log_talk(session, 'nobody', 'WELCOME', 'Lou')

    def test_update_metrics(self) -> None:
        with get_session() as session:
            performance = talks.update_metrics(session, self.shopper_id, {
                'activeWeeks': '3', 'late': '', 'speedAM': '2,5', 'unknown': 9,
            })
        self.assertEqual(performance, {'activeWeeks': 3, 'speedAM': 2.5})

    def test_check_in_toggle_and_daily_reset(self) -> None:
        other_id = self.add_shopper('Vic')
        with get_session() as session:
            self.assertTrue(talks.toggle_check_in(session, self.shopper_id))
            self.assertTrue(talks.toggle_check_in(session, other_id))
            self.assertFalse(talks.toggle_check_in(session, other_id))

        with get_session() as session:
            self.assertEqual(talks.reset_daily_check_ins(session), 1)

        with get_session() as session:
            progress = get_shopper(session, self.shopper_id).details['talkProgress']
            self.assertIs(progress['checkInToday'], False)

    def test_notes(self) -> None:
        with get_session() as session:
            entry = talks.add_note(session, self.shopper_id, ' Needs badge ', '')
            self.assertEqual(entry['content'], 'Needs badge')
            self.assertEqual(entry['author'], 'Admin')
            with self.assertRaises(ValidationError):
                talks.add_note(session, self.shopper_id, '   ', 'Lou')

    def test_dashboard_summary(self) -> None:
        with get_session() as session:
            talks.log_talk(session, self.shopper_id, 'MID_TERM', 'Lou')
            summary = talks.summarize_for_dashboard(get_shopper(session, self.shopper_id))

        self.assertEqual(summary['pn_number'], 'PN5')
        self.assertTrue(summary['has_issues'])
        self.assertFalse(summary['checked_in_today'])
        self.assertEqual(summary['progress'], {'midTermEval': 'DONE'})
        self.assertEqual(summary['last_talk']['type'], 'MID_TERM')


if __name__ == "__main__":
    unittest.main()
