import unittest

from data_manager import settings_store, shopper_crud
from data_manager.database import get_session
from data_manager.models import Shift
from lib.errors import NotFoundError, ValidationError

from db_case import DatabaseTestCase

MORNING = 'Morning (06:00 - 15:00)'
OPENING = 'Opening (04:00 - 13:00)'
NOON = 'Noon (12:55 - 22:00)'
AA = 'Always Available'
STANDARD = 'Standard'


def _shift(date, time=MORNING, type_=STANDARD):
    return {'date': date, 'time': time, 'type': type_}


class TestSubmissions(DatabaseTestCase):
    def test_submission_sets_glove_size_and_keeps_shifts(self) -> None:
        with get_session() as session:
            shopper = shopper_crud.create_submission(
                session, '  Lena ', {'clothingSize': 'xl'}, [_shift('2026-03-04'), _shift('2026-03-03', OPENING)]
            )
            record = shopper_crud.to_record(shopper)

        self.assertEqual(record['name'], 'Lena')
        self.assertEqual(record['details']['gloveSize'], '10 (XL)')
        self.assertEqual([s['date'] for s in record['shifts']], ['2026-03-03', '2026-03-04'])

    def test_first_working_day_limits_shift_range(self) -> None:
        shifts = [
            _shift('2026-03-01', type_=AA), _shift('2026-03-02'),
            _shift('2026-03-15', type_=AA), _shift('2026-03-16', type_=AA),
        ]
        with get_session() as session:
            shopper = shopper_crud.create_submission(session, 'Mo', {'firstWorkingDay': '2026-03-02'}, shifts)
            dates = sorted(s.date for s in shopper.shifts)

        self.assertEqual(dates, ['2026-03-02', '2026-03-15'])

    def test_first_day_shift_capacity(self) -> None:
        details = {'firstWorkingDay': '2026-03-02'}
        for index in range(shopper_crud.FWD_SHIFT_CAPACITY):
            with get_session() as session:
                shopper_crud.create_submission(session, f'Starter {index}', details, [_shift('2026-03-02')])

        with get_session() as session:
            self.assertEqual(shopper_crud.first_working_day_counts(session), {f'2026-03-02_{MORNING}': 5})

        with self.assertRaises(ValidationError) as ctx:
            with get_session() as session:
                shopper_crud.create_submission(session, 'One too many', details, [_shift('2026-03-02')])
        self.assertIn('is full for new starters', ctx.exception.message)

        # a different shift on the same day still has room
        with get_session() as session:
            shopper_crud.create_submission(session, 'Opener', details, [_shift('2026-03-02', OPENING)])

    def test_schedule_rules_are_enforced(self) -> None:
        details = {'firstWorkingDay': '2026-03-02'}
        cases = [
            ([_shift('2026-03-02', NOON), _shift('2026-03-03')], 'Rest Violation (11h rule).'),
            ([_shift('2026-03-0%d' % day) for day in range(2, 8)], 'Max 5 consecutive days.'),
            ([_shift('2026-03-01')], 'Cannot select before First Day.'),
            ([_shift('2026-03-02'), _shift('2026-03-16')], 'Range Limit Exceeded.'),
        ]
        for shifts, message in cases:
            with get_session() as session:
                with self.assertRaises(ValidationError) as ctx:
                    shopper_crud.create_submission(session, 'Rae', details, shifts)
                self.assertTrue(ctx.exception.message.startswith(message), ctx.exception.message)

        with get_session() as session:
            self.assertEqual(shopper_crud.list_shoppers(session), [])

    def test_always_available_pattern(self) -> None:
        with get_session() as session:
            with self.assertRaises(ValidationError) as ctx:
                shopper_crud.create_submission(session, 'Sol', {}, [
                    _shift('2026-03-03', type_=AA), _shift('2026-03-05', type_=AA),
                ])
            self.assertEqual(ctx.exception.message, 'You can select a maximum of 1 Weekday (Mon-Fri).')

            with self.assertRaises(ValidationError) as ctx:
                shopper_crud.create_submission(session, 'Sol', {}, [_shift('2026-03-03', type_=AA)])
            self.assertEqual(ctx.exception.message, 'You must select at least 1 Weekend day.')

            shopper = shopper_crud.create_submission(session, 'Sol', {}, [
                _shift('2026-03-03', type_=AA), _shift('2026-03-07', type_=AA), _shift('2026-03-08', type_=AA),
            ])
            self.assertEqual(len(shopper.shifts), 3)

    def test_always_available_respects_admin_availability(self) -> None:
        with get_session() as session:
            settings_store.put_setting(session, settings_store.ADMIN_AVAILABILITY, {
                '2026-03-07': {MORNING: [STANDARD], NOON: [AA]},
            })

        with get_session() as session:
            with self.assertRaises(ValidationError) as ctx:
                shopper_crud.create_submission(session, 'Tia', {}, [_shift('2026-03-07', type_=AA)])
            self.assertIn('not open for Morning on 2026-03-07', ctx.exception.message)

        with get_session() as session:
            shopper = shopper_crud.create_submission(session, 'Tia', {}, [
                _shift('2026-03-07', NOON, AA), _shift('2026-03-08', type_=AA),
            ])
            self.assertEqual(len(shopper.shifts), 2)

    def test_malformed_payload_types(self) -> None:
        with get_session() as session:
            for details, shifts in [('pn', []), ({}, 'monday'), ({}, ['2026-03-02']), ({}, {'date': '2026-03-02'})]:
                with self.assertRaises(ValidationError):
                    shopper_crud.create_submission(session, 'Uli', details, shifts)

    def test_invalid_submissions(self) -> None:
        with get_session() as session:
            with self.assertRaises(ValidationError):
                shopper_crud.create_submission(session, '   ', {}, [])
            with self.assertRaises(ValidationError):
                shopper_crud.create_submission(session, 'Nia', {}, [_shift('2026-03-02', 'Midnight')])
            with self.assertRaises(ValidationError):
                shopper_crud.create_submission(session, 'Nia', {}, [_shift('not-a-date')])


class TestShopperEdits(DatabaseTestCase):
    def test_list_orders_by_rank_then_newest(self) -> None:
        first = self.add_shopper('Alpha')
        second = self.add_shopper('Beta')
        third = self.add_shopper('Gamma')

        with get_session() as session:
            self.assertEqual(shopper_crud.save_group_order(session, [third, 'missing', first]), 2)

        with get_session() as session:
            names = [s.name for s in shopper_crud.list_shoppers(session)]
            self.assertEqual(names[:2], ['Gamma', 'Alpha'])
            self.assertEqual(names[2], 'Beta')
            self.assertEqual([s.id for s in shopper_crud.list_shoppers(session, search='bet')], [second])

    def test_update_recomputes_glove_size(self) -> None:
        shopper_id = self.add_shopper('Pia', {'clothingSize': 'S', 'gloveSize': '7 (S)'})
        with get_session() as session:
            shopper = shopper_crud.update_shopper(session, shopper_id, details={'clothingSize': 'L'})
            self.assertEqual(shopper.details['gloveSize'], '9 (L)')
            self.assertEqual(shopper.details['clothingSize'], 'L')

        with get_session() as session:
            with self.assertRaises(ValidationError):
                shopper_crud.update_shopper(session, shopper_id, name='  ')

    def test_shift_crud(self) -> None:
        shopper_id = self.add_shopper('Quinn')
        with get_session() as session:
            shift_id = shopper_crud.add_shift(session, shopper_id, '2026-03-02', MORNING, STANDARD).id

        with get_session() as session:
            shift = shopper_crud.update_shift(session, shift_id, shift_time=OPENING)
            self.assertEqual((shift.date, shift.time, shift.type), ('2026-03-02', OPENING, STANDARD))
            with self.assertRaises(ValidationError):
                shopper_crud.update_shift(session, shift_id, shift_type='Sometimes')

        with get_session() as session:
            shopper_crud.delete_shift(session, shift_id)
            self.assertIsNone(session.get(Shift, shift_id))
            with self.assertRaises(NotFoundError):
                shopper_crud.delete_shift(session, shift_id)

    def test_shift_edits_move_first_working_day(self) -> None:
        shopper_id = self.add_shopper('Vera', {'firstWorkingDay': '2026-03-04'},
                                      shifts=[('2026-03-04', MORNING, STANDARD)])
        with get_session() as session:
            early_id = shopper_crud.add_shift(session, shopper_id, '2026-03-02', MORNING, STANDARD).id
        with get_session() as session:
            self.assertEqual(shopper_crud.get_shopper(session, shopper_id).details['firstWorkingDay'], '2026-03-02')

        with get_session() as session:
            shopper_crud.update_shift(session, early_id, date_str='2026-03-03')
        with get_session() as session:
            self.assertEqual(shopper_crud.get_shopper(session, shopper_id).details['firstWorkingDay'], '2026-03-03')

        with get_session() as session:
            shopper_crud.delete_shift(session, early_id)
        with get_session() as session:
            shopper = shopper_crud.get_shopper(session, shopper_id)
            self.assertEqual(shopper.details['firstWorkingDay'], '2026-03-04')
            self.assertEqual(len(shopper.shifts), 1)

        # the last shift going away leaves the date alone
        with get_session() as session:
            shopper_crud.delete_shift(session, shopper_crud.get_shopper(session, shopper_id).shifts[0].id)
        with get_session() as session:
            self.assertEqual(shopper_crud.get_shopper(session, shopper_id).details['firstWorkingDay'], '2026-03-04')

    def test_delete_removes_shifts(self) -> None:
        shopper_id = self.add_shopper('Rae', shifts=[('2026-03-02', MORNING, STANDARD)])
        with get_session() as session:
            shopper_crud.delete_shopper(session, shopper_id)

        with get_session() as session:
            self.assertEqual(session.query(Shift).count(), 0)
            with self.assertRaises(NotFoundError):
                shopper_crud.get_shopper(session, shopper_id)

    def test_frozen_flags(self) -> None:
        frozen_id = self.add_shopper('Sam', {'isFrozenEligible': True})
        self.add_shopper('Tess', {'isFrozenEligible': False})

        with get_session() as session:
            self.assertEqual([s.id for s in shopper_crud.list_frozen(session)], [frozen_id])
            self.assertTrue(shopper_crud.toggle_frozen_added(session, frozen_id))
            self.assertFalse(shopper_crud.toggle_frozen_added(session, frozen_id))
            shopper_crud.save_frozen_note(session, frozen_id, 'Called twice')
            shopper_crud.set_ignore_compliance(session, frozen_id, True)

        with get_session() as session:
            details = shopper_crud.get_shopper(session, frozen_id).details
            self.assertEqual(details['frozenNotes'], 'Called twice')
            self.assertIs(details['frozenAddedToSystem'], False)
            self.assertIs(details['ignoreCompliance'], True)


if __name__ == "__main__":
    unittest.main()
