from datetime import date

from lib.validation import (
    allowed_end_date,
    build_compliance_report,
    calculate_glove_size,
    calculate_min_start_date,
    is_consecutive_days_violation,
    is_opening_shift_violation,
    is_rest_violation,
    is_weekly_days_violation,
    validate_shopper_range,
    validate_shopper_schedule,
    validate_submission_shifts,
)

OPENING = 'Opening (04:00 - 13:00)'
MORNING = 'Morning (06:00 - 15:00)'
NOON = 'Noon (12:55 - 22:00)'
AFTERNOON = 'Afternoon (14:55 - 00:00)'
AA = 'Always Available'
STANDARD = 'Standard'


def _shift(day, time=MORNING, type_=STANDARD):
    return {'date': day, 'time': time, 'type': type_}


def test_glove_size_lookup():
    assert calculate_glove_size('s') == '7 (S)'
    assert calculate_glove_size(' 5XL ') == '12 (4XL)'
    assert calculate_glove_size(None) == '8 (M)'
    assert calculate_glove_size('huge') == '8 (M)'


def test_min_start_date_by_nationality():
    thursday = date(2026, 3, 5)
    assert calculate_min_start_date('Netherlands', thursday) == date(2026, 3, 8)
    assert calculate_min_start_date(None, thursday) == date(2026, 3, 8)
    # 7 working days, weekend skipped twice
    assert calculate_min_start_date('Ukraine', thursday) == date(2026, 3, 16)
    assert calculate_min_start_date('Brazil', thursday) == date(2026, 3, 12)


def test_rest_violation_both_directions():
    shifts = [_shift('2026-03-02', AFTERNOON), _shift('2026-03-05', OPENING)]
    assert is_rest_violation('2026-03-03', MORNING, shifts)
    assert is_rest_violation('2026-03-04', NOON, shifts)
    assert not is_rest_violation('2026-03-03', NOON, shifts)
    assert not is_rest_violation('2026-03-04', MORNING, shifts)


def test_consecutive_days():
    shifts = [_shift(f'2026-03-0{d}') for d in (2, 3, 4, 6, 7)]
    assert is_consecutive_days_violation('2026-03-05', shifts)
    assert not is_consecutive_days_violation('2026-03-09', shifts)


def test_opening_needs_two_prior_shifts():
    shifts = [_shift('2026-03-02'), _shift('2026-03-03')]
    assert is_opening_shift_violation('2026-03-03', OPENING, shifts[:1])
    assert not is_opening_shift_violation('2026-03-04', OPENING, shifts)
    assert not is_opening_shift_violation('2026-03-02', MORNING, [])
    # AA days before the start date do not count
    pre_start = [_shift('2026-02-27', type_=AA), _shift('2026-02-28', type_=AA)]
    assert is_opening_shift_violation('2026-03-02', OPENING, pre_start, '2026-03-02')


def test_weekly_days_limit():
    shifts = [_shift(f'2026-03-0{d}') for d in (2, 3, 4, 5, 6)]
    assert is_weekly_days_violation('2026-03-07', shifts, '2026-03-02')
    assert not is_weekly_days_violation('2026-03-09', shifts, '2026-03-02')
    assert not is_weekly_days_violation('2026-03-07', shifts)


def test_range_limit():
    assert allowed_end_date('2026-03-04') == date(2026, 3, 15)
    ok, message = validate_shopper_range([_shift('2026-03-16')], '2026-03-04')
    assert not ok
    assert message.startswith('Range Limit Exceeded.')
    # AA days are not range limited
    assert validate_shopper_range([_shift('2026-03-16', type_=AA)], '2026-03-04') == (True, None)
    assert validate_shopper_range([_shift('2030-01-01')], None) == (True, None)


def test_schedule_issues():
    assert validate_shopper_schedule([]) == ['No shifts assigned.']

    shifts = [
        _shift('2026-03-02', OPENING, AA),
        _shift('2026-03-03', NOON, AA),
        _shift('2026-03-04', MORNING),
    ]
    issues = validate_shopper_schedule(shifts)
    assert any(i.startswith('Rest Violation: 2026-03-03 (Noon) -> 2026-03-04 (Morning)') for i in issues)
    assert any(i.startswith('Opening Rule Violation: Shift on 2026-03-02') for i in issues)
    assert not any(i.startswith('Invalid AA Pattern') for i in issues)


def test_schedule_aa_pattern_and_streak():
    shifts = [_shift(f'2026-03-0{d}') for d in range(2, 9)]
    issues = validate_shopper_schedule(shifts)
    assert issues[0] == 'Invalid AA Pattern: Found 0 distinct weekday(s), expected at least 2.'
    assert issues.count('Exceeds 5 consecutive working days.') == 1


def test_compliance_report_lists_ignored_last():
    clean = [_shift('2026-03-02', type_=AA), _shift('2026-03-04', type_=AA)]
    records = [
        {'id': 'a', 'name': 'Ignored', 'details': {'ignoreCompliance': True}, 'shifts': []},
        {'id': 'b', 'name': 'Broken', 'details': {}, 'shifts': []},
        {'id': 'c', 'name': 'Clean', 'details': {}, 'shifts': clean},
    ]
    report = build_compliance_report(records)
    assert [s['id'] for s in report['shoppers']] == ['b', 'a']
    assert report['active_issue_count'] == 1
    assert not report['all_clear']

    only_ignored = build_compliance_report(records[:1])
    assert only_ignored['all_clear']


def test_submission_shifts():
    alternating = [_shift('2026-03-0%d' % day, NOON if day % 2 else MORNING) for day in range(2, 5)]
    assert validate_submission_shifts(alternating, '2026-03-02') == 'Rest Violation (11h rule).'
    assert validate_submission_shifts([_shift('2026-03-02'), _shift('2026-03-07', type_=AA)], '2026-03-02') is None
    assert validate_submission_shifts([_shift('2026-03-02', type_=AA), _shift('2026-03-04', type_=AA)], None) \
        == 'You can select a maximum of 1 Weekday (Mon-Fri).'
