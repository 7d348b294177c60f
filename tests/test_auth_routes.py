import unittest

from data_manager import settings_store
from data_manager.database import get_session

from db_case import RoutesTestCase

MOBILE_UA = 'Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148'


class TestAdminLogin(RoutesTestCase):
    def setUp(self) -> None:
        super().setUp()
        with get_session() as session:
            settings_store.put_setting(session, settings_store.ADMIN_AUTH, {'pin': '2468'})

    def _login(self, pin):
        return self.client.post('/api/auth/admin/login', json={'pin': pin}, headers={'User-Agent': MOBILE_UA})

    def test_login_logout(self) -> None:
        response = self._login('2468')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(self.client.get('/api/auth/status').get_json()['admin'])

        self.client.post('/api/auth/admin/logout')
        self.assertFalse(self.client.get('/api/auth/status').get_json()['admin'])
        self.assertEqual(self.client.get('/api/shoppers').status_code, 401)

    def test_wrong_pin_then_lockout(self) -> None:
        for _ in range(4):
            response = self._login('0000')
            self.assertEqual(response.status_code, 401)
            self.assertEqual(response.get_json()['error'], 'Incorrect PIN')

        response = self._login('0000')
        self.assertEqual(response.status_code, 423)
        self.assertIn('locked_until', response.get_json())

        # the right PIN is refused while locked
        self.assertEqual(self._login('2468').status_code, 423)
        self.assertFalse(self.client.get('/api/auth/status').get_json()['admin'])

    def test_attempts_are_logged(self) -> None:
        self._login('1111')
        self._login('2468')

        response = self.client.get('/api/access-logs')
        self.assertEqual(response.status_code, 200)
        logs = response.get_json()['logs']
        self.assertEqual([entry['status'] for entry in logs], ['SUCCESS', 'FAILURE'])
        self.assertEqual({entry['target_role'] for entry in logs}, {'ADMIN'})
        self.assertEqual(logs[0]['device'], 'mobile')
        self.assertEqual(logs[0]['device_info'], MOBILE_UA)


class TestShopperGate(RoutesTestCase):
    submission = {
        'name': 'Xena',
        'details': {'clothingSize': 'S'},
        'shifts': [{'date': '2026-03-02', 'time': 'Morning (06:00 - 15:00)', 'type': 'Standard'}],
    }

    def test_open_when_no_pin_set(self) -> None:
        response = self.client.post('/api/submissions', json=self.submission)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.get_json()['shopper']['details']['gloveSize'], '7 (S)')

    def test_pin_required_when_enabled(self) -> None:
        with get_session() as session:
            settings_store.put_setting(session, settings_store.SHOPPER_AUTH, {'pin': '1357', 'enabled': True})

        self.assertTrue(self.client.get('/api/public/config').get_json()['shopper_auth_enabled'])
        self.assertEqual(self.client.post('/api/submissions', json=self.submission).status_code, 401)
        self.assertEqual(self.client.post('/api/auth/shopper/verify', json={'pin': '9999'}).status_code, 401)
        self.assertEqual(self.client.post('/api/auth/shopper/verify', json={'pin': '1357'}).status_code, 200)
        self.assertEqual(self.client.post('/api/submissions', json=self.submission).status_code, 201)

    def test_disabled_gate_is_open(self) -> None:
        with get_session() as session:
            settings_store.put_setting(session, settings_store.SHOPPER_AUTH, {'pin': '1357', 'enabled': False})
        self.assertEqual(self.client.post('/api/submissions', json=self.submission).status_code, 201)

    def test_invalid_submission_returns_error_json(self) -> None:
        response = self.client.post('/api/submissions', json={'name': '', 'shifts': []})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json(), {'success': False, 'error': 'Name is required.'})

    def test_malformed_submission_is_rejected(self) -> None:
        for payload in [
            {'name': 'Yan', 'details': 'S', 'shifts': []},
            {'name': 'Yan', 'details': {}, 'shifts': 'Monday'},
            {'name': 'Yan', 'details': {}, 'shifts': ['2026-03-02']},
        ]:
            response = self.client.post('/api/submissions', json=payload)
            self.assertEqual(response.status_code, 400)
            self.assertFalse(response.get_json()['success'])


if __name__ == "__main__":
    unittest.main()
