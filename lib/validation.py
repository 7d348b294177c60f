"""
Scheduling rules for shopper shifts.

The checks mirror the labour rules applied during onboarding:
- 11h rest between a late shift and an early shift on the next day
- no more than 5 consecutive working days
- no more than 5 distinct working days in a Monday-based week
- Opening shifts only from the 3rd shift onwards
- standard shifts only up to the Sunday of the week after the first day
"""
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from data_manager.models import (
    EARLY_SHIFTS,
    LATE_SHIFTS,
    ShiftTime,
    ShiftType,
    shift_short_name,
)
from lib.utils import (
    add_business_days,
    end_of_week,
    format_date_key,
    is_same_week,
    parse_date_key,
)

MIN_DAYS_TO_START = 3
MAX_CONSECUTIVE_DAYS = 5
MAX_DAYS_PER_WEEK = 5

EUROPEAN_COUNTRIES = [
    "Albania", "Andorra", "Austria", "Belarus", "Belgium", "Bosnia and Herzegovina",
    "Bulgaria", "Croatia", "Cyprus", "Czech Republic", "Denmark", "Estonia", "Finland",
    "France", "Germany", "Greece", "Hungary", "Iceland", "Ireland", "Italy", "Kosovo",
    "Latvia", "Liechtenstein", "Lithuania", "Luxembourg", "Malta", "Moldova", "Monaco",
    "Montenegro", "Netherlands", "North Macedonia", "Norway", "Poland", "Portugal",
    "Romania", "Russia", "San Marino", "Serbia", "Slovakia", "Slovenia", "Spain",
    "Sweden", "Switzerland", "Ukraine", "United Kingdom", "Vatican City"
]

GLOVE_SIZES = {
    'XS': '6 (XS)', 'S': '7 (S)', 'M': '8 (M)', 'L': '9 (L)',
    'XL': '10 (XL)', 'XXL': '11 (XXL)', '3XL': '12 (3XL)',
    '4XL': '12 (4XL)', '5XL': '12 (4XL)', '6XL': '12 (4XL)',
}
DEFAULT_GLOVE_SIZE = '8 (M)'


def calculate_glove_size(clothing_size: Optional[str]) -> str:
    return GLOVE_SIZES.get(str(clothing_size or '').strip().upper(), DEFAULT_GLOVE_SIZE)


def calculate_min_start_date(nationality: Optional[str], today: date) -> date:
    """
    Earliest first working day for a candidate.

    Ukraine: +7 working days. European: today + 3 days.
    Anything else (including manual input not on the list): +5 working days.
    """
    if not nationality:
        return today + timedelta(days=MIN_DAYS_TO_START)

    normalized = nationality.strip().lower()
    if 'ukraine' in normalized:
        return add_business_days(today, 7)

    is_european = any(
        country.lower() == normalized or country.lower() in normalized
        for country in EUROPEAN_COUNTRIES
    )
    if is_european:
        return today + timedelta(days=MIN_DAYS_TO_START)
    return add_business_days(today, 5)


def _shift_value(shift: Dict[str, Any], key: str) -> str:
    value = shift.get(key)
    return value.value if isinstance(value, (ShiftTime, ShiftType)) else str(value or '')


# -----------------------------------------------------------
# Single-shift checks (used when adding a shift)
# -----------------------------------------------------------
def is_rest_violation(date_str: str, new_time: str, current_shifts: List[Dict[str, Any]]) -> bool:
    new_time = new_time.value if isinstance(new_time, ShiftTime) else new_time
    target = parse_date_key(date_str)
    prev_key = format_date_key(target - timedelta(days=1))
    next_key = format_date_key(target + timedelta(days=1))

    prev_shift = next((s for s in current_shifts if s.get('date') == prev_key), None)
    next_shift = next((s for s in current_shifts if s.get('date') == next_key), None)

    if new_time in EARLY_SHIFTS and prev_shift and _shift_value(prev_shift, 'time') in LATE_SHIFTS:
        return True
    if new_time in LATE_SHIFTS and next_shift and _shift_value(next_shift, 'time') in EARLY_SHIFTS:
        return True
    return False


def is_consecutive_days_violation(date_str: str, current_shifts: List[Dict[str, Any]]) -> bool:
    target = parse_date_key(date_str)
    shift_dates = {s.get('date') for s in current_shifts}

    before = 0
    check = target - timedelta(days=1)
    while format_date_key(check) in shift_dates:
        before += 1
        check -= timedelta(days=1)

    after = 0
    check = target + timedelta(days=1)
    while format_date_key(check) in shift_dates:
        after += 1
        check += timedelta(days=1)

    return before + 1 + after > MAX_CONSECUTIVE_DAYS


def is_opening_shift_violation(date_str: str, shift_time: str, current_shifts: List[Dict[str, Any]],
                               first_working_day: Optional[str] = None) -> bool:
    """Opening is forbidden as the 1st or 2nd working day."""
    shift_time = shift_time.value if isinstance(shift_time, ShiftTime) else shift_time
    if shift_time != ShiftTime.OPENING.value:
        return False

    relevant = current_shifts
    if first_working_day:
        # Pre-start AA shifts must not count towards the first two shifts
        relevant = [s for s in current_shifts if s.get('date', '') >= first_working_day]

    unique_dates = sorted({s.get('date') for s in relevant} | {date_str})
    return unique_dates.index(date_str) < 2


def is_weekly_days_violation(date_str: str, current_shifts: List[Dict[str, Any]],
                             first_working_day: Optional[str] = None) -> bool:
    if not first_working_day:
        return False

    target = parse_date_key(date_str)
    working_days = set()

    fwd = parse_date_key(first_working_day)
    if is_same_week(fwd, target):
        fwd_has_standard = any(
            s.get('date') == first_working_day and _shift_value(s, 'type') == ShiftType.STANDARD.value
            for s in current_shifts
        )
        if fwd_has_standard:
            working_days.add(first_working_day)

    for shift in current_shifts:
        if _shift_value(shift, 'type') not in (ShiftType.AA.value, ShiftType.STANDARD.value):
            continue
        if is_same_week(parse_date_key(shift['date']), target):
            working_days.add(shift['date'])

    working_days.add(date_str)
    return len(working_days) > MAX_DAYS_PER_WEEK


def allowed_end_date(first_working_day: str) -> date:
    """Sunday of the week following the first working day's week."""
    return end_of_week(parse_date_key(first_working_day) + timedelta(days=7))


def validate_shopper_range(proposed_shifts: List[Dict[str, Any]],
                           first_working_day: Optional[str]) -> Tuple[bool, Optional[str]]:
    if not first_working_day:
        return True, None

    fwd = parse_date_key(first_working_day)
    end_date = allowed_end_date(first_working_day)
    late = [
        s for s in proposed_shifts
        if _shift_value(s, 'type') == ShiftType.STANDARD.value and parse_date_key(s['date']) > end_date
    ]
    if late:
        return False, (
            "Range Limit Exceeded.\n\n"
            f"Based on your Start Date ({fwd.strftime('%b %d')}), you can only select shifts "
            f"up to {end_date.strftime('%b %d')}."
        )
    return True, None


def validate_aa_selection(shifts: Iterable[Dict[str, Any]]) -> Optional[str]:
    """AA days: at most one weekday and at least one weekend day."""
    aa_days = {parse_date_key(s['date']) for s in shifts if _shift_value(s, 'type') == ShiftType.AA.value}
    if not aa_days:
        return None
    if sum(1 for d in aa_days if d.weekday() < 5) > 1:
        return "You can select a maximum of 1 Weekday (Mon-Fri)."
    if not any(d.weekday() >= 5 for d in aa_days):
        return "You must select at least 1 Weekend day."
    return None


def validate_submission_shifts(shifts: List[Dict[str, Any]],
                               first_working_day: Optional[str]) -> Optional[str]:
    """
    First rule a proposed schedule breaks, or None.

    Standard shifts are checked against every other selected day for the
    11h rest rule and the consecutive day limit, then the range limit.
    """
    error = validate_aa_selection(shifts)
    if error:
        return error

    for shift in shifts:
        if _shift_value(shift, 'type') != ShiftType.STANDARD.value:
            continue
        if first_working_day and shift['date'] < first_working_day:
            return "Cannot select before First Day."
        others = [s for s in shifts if s.get('date') != shift['date']]
        if is_rest_violation(shift['date'], _shift_value(shift, 'time'), others):
            return "Rest Violation (11h rule)."
        if is_consecutive_days_violation(shift['date'], others):
            return f"Max {MAX_CONSECUTIVE_DAYS} consecutive days."

    ok, message = validate_shopper_range(shifts, first_working_day)
    return None if ok else message


# -----------------------------------------------------------
# Batch validation (admin compliance check)
# -----------------------------------------------------------
def validate_shopper_schedule(shifts: Iterable[Dict[str, Any]]) -> List[str]:
    shifts = list(shifts or [])
    if not shifts:
        return ["No shifts assigned."]

    issues: List[str] = []

    aa_weekdays = {
        parse_date_key(s['date']).weekday()
        for s in shifts if _shift_value(s, 'type') == ShiftType.AA.value
    }
    if len(aa_weekdays) < 2:
        issues.append(
            f"Invalid AA Pattern: Found {len(aa_weekdays)} distinct weekday(s), expected at least 2."
        )

    ordered = sorted(shifts, key=lambda s: s['date'])

    streak = 1
    for previous, current in zip(ordered, ordered[1:]):
        gap = (parse_date_key(current['date']) - parse_date_key(previous['date'])).days
        streak = streak + 1 if gap <= 1 else 1
        if streak > MAX_CONSECUTIVE_DAYS and not any('consecutive' in i for i in issues):
            issues.append("Exceeds 5 consecutive working days.")

    for current, following in zip(ordered, ordered[1:]):
        gap = (parse_date_key(following['date']) - parse_date_key(current['date'])).days
        if gap <= 1 and _shift_value(current, 'time') in LATE_SHIFTS and _shift_value(following, 'time') in EARLY_SHIFTS:
            issues.append(
                f"Rest Violation: {current['date']} ({shift_short_name(_shift_value(current, 'time'))}) -> "
                f"{following['date']} ({shift_short_name(_shift_value(following, 'time'))})."
            )

    for index, shift in enumerate(ordered):
        if _shift_value(shift, 'time') == ShiftTime.OPENING.value and index < 2:
            issues.append(
                f"Opening Rule Violation: Shift on {shift['date']} is too early (Shift #{index + 1}). "
                "Must work 2 shifts before taking Opening."
            )

    return issues


def build_compliance_report(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Run the schedule check over shopper records (as produced by to_record).

    Shoppers flagged ``ignoreCompliance`` are listed after the active ones
    and do not count as active issues.
    """
    affected = []
    for record in records:
        issues = validate_shopper_schedule(record.get('shifts') or [])
        if not issues:
            continue
        ignored = bool((record.get('details') or {}).get('ignoreCompliance'))
        affected.append({
            'id': record['id'],
            'name': record['name'],
            'issues': issues,
            'ignored': ignored,
        })

    affected.sort(key=lambda entry: 1 if entry['ignored'] else 0)
    active_count = sum(1 for entry in affected if not entry['ignored'])
    return {
        'active_issue_count': active_count,
        'all_clear': active_count == 0,
        'shoppers': affected,
    }
