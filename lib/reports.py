"""
Text and spreadsheet exports built from shopper records.

Records are the dicts produced by ``shopper_crud.to_record``:
``{id, created_at, name, details, rank, shifts: [{date, time, type}]}``.

- build_shift_report:       end-of-shift (SER) report for Slack
- generate_spreadsheet_row: weekly FD/X roster grid, tab separated
- hr_row_values & friends:  19-column HR intake row (TSV and HTML)
- export_shoppers_csv:      CSV download via pandas
- session/start-date group keys and recruiter statistics
- shift_heatmap:            staffing density per day and shift
"""
import html
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from data_manager.models import SHIFT_TIME_VALUES, ShiftType, shift_short_name
from lib.utils import (
    DEFAULT_TIMEZONE,
    format_date_key,
    get_local_now,
    is_same_week,
    parse_date_key,
    parse_timestamp,
    start_of_week,
    to_local,
)

SESSION_CUTOFF_MINUTES = 12 * 60 + 30
NO_DATE_GROUP = '9999-99-99_NO_DATE'
INVALID_DATE_GROUP = '9999-99-99_INVALID'

CSV_HEADERS = ['Name', 'PN Number', 'Registered At', 'First Working Day', 'Bus', 'Randstad',
               'Address', 'AA Pattern', 'Shift Details']

CIVIL_STATUS_MAP = {
    'single': 'single',
    'married': 'Married',
    'cohabit': 'Cohabit',
    'divorced': 'Divorced',
    'widowed': 'widowed',
    'engaged': 'Engaged',
}


# -----------------------------------------------------------
# SER report
# -----------------------------------------------------------
def build_shift_report(records: List[Dict[str, Any]], session_date: date, session_type: str,
                       total_hired_week: int, scheduled: int = 0, showed_up: int = 0,
                       rejected: Optional[List[Dict[str, str]]] = None, end_time: str = '',
                       tasks_done: Optional[List[str]] = None, tasks_postponed: Optional[List[str]] = None,
                       it_issues: str = '', additional_notes: str = '') -> str:
    shift = 'Morning' if str(session_type).upper() == 'MORNING' else 'Afternoon'
    weekday = session_date.strftime('%A')

    lines = [f"📋 *END OF SHIFT REPORT {shift.upper()} - {weekday.upper()}*", ""]

    lines += [
        "👥 *Candidates:*",
        f"• Scheduled: {scheduled}",
        f"• Showed Up: {showed_up}",
        f"• Hired (Session): {len(records)} ✅",
        f"• Total Hired (Week): {total_hired_week} ✅",
        "",
    ]

    named = [c for c in (rejected or []) if str(c.get('name', '')).strip()]
    if named:
        lines.append("❌ *Rejected Candidates:*")
        for candidate in named:
            reason = str(candidate.get('reason') or '').strip()
            lines.append(f"• {candidate['name'].strip()}{f' - {reason}' if reason else ''}")
        lines.append("")

    if end_time:
        lines += [f"⏰ *End Time:* {end_time}", ""]

    if tasks_done:
        lines.append("✅ *Tasks Completed:*")
        lines += [f"• {task}" for task in tasks_done]
        lines.append("")

    if tasks_postponed:
        lines.append("⏸️ *Tasks Postponed:*")
        lines += [f"• {task}" for task in tasks_postponed]
        lines.append("")

    if it_issues.strip():
        lines += ["⚠️ *IT Issues:*", it_issues, ""]

    submission_notes = '\n'.join(
        note for note in ((r.get('details') or {}).get('notes') for r in records)
        if note and str(note).strip()
    )
    if submission_notes:
        lines += ["📝 *Submission Notes:*", submission_notes, ""]

    if additional_notes.strip():
        lines += ["💬 *Additional Notes:*", additional_notes]

    return '\n'.join(lines) + '\n'


def count_hired_in_week(records: Iterable[Dict[str, Any]], day: date,
                        tz_name: str = DEFAULT_TIMEZONE) -> int:
    count = 0
    for record in records:
        created = parse_timestamp(record.get('created_at'))
        if created and is_same_week(to_local(created, tz_name).date(), day):
            count += 1
    return count


# -----------------------------------------------------------
# Weekly roster grid
# -----------------------------------------------------------
def generate_spreadsheet_row(record: Dict[str, Any], week_offset: int = 0) -> str:
    """
    One tab-separated roster row: name, PN, then Mon..Sun x 4 shift columns.

    ``week_offset`` 0 is the week of the first working day, 1 the week after.
    """
    details = record.get('details') or {}
    fwd = details.get('firstWorkingDay')
    if not fwd:
        raise ValueError(f"First Working Day missing for {record.get('name')}")

    monday = start_of_week(parse_date_key(fwd)) + timedelta(weeks=max(week_offset, 0))
    cells = [record.get('name', ''), details.get('pnNumber') or '']

    shifts = record.get('shifts') or []
    for offset in range(7):
        day_key = format_date_key(monday + timedelta(days=offset))
        day_times = {s['time'] for s in shifts if s['date'] == day_key}
        for shift_time in SHIFT_TIME_VALUES:
            if shift_time in day_times:
                cells.append('FD' if day_key == fwd else 'X')
            else:
                cells.append('')

    return '\t'.join(cells) + '\t'


# -----------------------------------------------------------
# HR intake row
# -----------------------------------------------------------
def _shift_initial(shift_time: str) -> str:
    for label, initial in (('Opening', 'o'), ('Morning', 'm'), ('Noon', 'n'), ('Afternoon', 'a')):
        if label in shift_time:
            return initial
    return '?'


def normalize_civil_status(status: Optional[str]) -> str:
    if not status:
        return 'unknown'
    s = status.lower().strip()
    if s in CIVIL_STATUS_MAP:
        return CIVIL_STATUS_MAP[s]
    if 'partnership' in s:
        return 'Registered partnership'
    if 'separation' in s:
        return 'Legal separation'
    return 'unknown'


def aa_pattern(shifts: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    """First AA weekday and first AA weekend day, as ``MON(m)/SAT(o)``."""
    aa_shifts = sorted((s for s in shifts if s.get('type') == ShiftType.AA.value), key=lambda s: s['date'])
    weekday_pattern = ''
    weekend_pattern = ''
    for shift in aa_shifts:
        day = parse_date_key(shift['date'])
        pattern = f"{day.strftime('%a').upper()}({_shift_initial(shift['time'])})"
        if day.weekday() >= 5:
            weekend_pattern = weekend_pattern or pattern
        else:
            weekday_pattern = weekday_pattern or pattern

    shift_column = ''
    if weekday_pattern or weekend_pattern:
        distinct_times = {s['time'] for s in aa_shifts}
        shift_column = shift_short_name(next(iter(distinct_times))) if len(distinct_times) == 1 else 'Mixed'

    return {
        'shift': shift_column,
        'pattern': '/'.join(p for p in (weekday_pattern, weekend_pattern) if p),
    }


def hr_row_values(record: Dict[str, Any], tz_name: str = DEFAULT_TIMEZONE) -> List[str]:
    details = record.get('details') or {}
    created = parse_timestamp(record.get('created_at'))
    ser_date = to_local(created, tz_name).strftime('%d/%m/%Y') if created else ''

    fwd_date = ''
    if details.get('firstWorkingDay'):
        try:
            fwd_date = parse_date_key(details['firstWorkingDay']).strftime('%d/%m/%Y')
        except ValueError:
            fwd_date = ''

    pattern = aa_pattern(record.get('shifts') or [])

    return [
        ser_date,                                             # A: Date (SER)
        details.get('pnNumber') or '',                        # B: PN
        record.get('name', ''),                               # C: Name
        pattern['shift'],                                     # D: Shift (AA)
        pattern['pattern'],                                   # E: AA Pattern
        fwd_date,                                             # F: FWD
        details.get('gender') or 'N/D',                       # G: Gender
        normalize_civil_status(details.get('civilStatus')),   # H: Marital status
        (details.get('address') or '') if details.get('isRandstad') else '',  # I: Address
        '',                                                   # J: Nationality
        details.get('clothingSize') or '',                    # K: Shirt size
        details.get('shoeSize') or '',                        # L: Shoe size
        'TRUE' if details.get('usePicnicBus') else 'FALSE',   # M: Bus
        '', '', '', '', '', '',                               # N-S: filled in by HR
    ]


def _html_cells(values: List[str]) -> str:
    return ''.join(
        f'<td style="text-align: center; vertical-align: middle;">{html.escape(v)}</td>' for v in values
    )


def generate_hr_row(record: Dict[str, Any]) -> str:
    return '\t'.join(hr_row_values(record))


def generate_hr_html(record: Dict[str, Any]) -> str:
    return f'<table border="1"><tbody><tr>{_html_cells(hr_row_values(record))}</tr></tbody></table>'


def generate_bulk_hr_rows(records: List[Dict[str, Any]]) -> str:
    return '\n'.join(generate_hr_row(r) for r in records)


def generate_bulk_hr_html(records: List[Dict[str, Any]]) -> str:
    rows = ''.join(f'<tr>{_html_cells(hr_row_values(r))}</tr>' for r in records)
    return f'<table border="1"><tbody>{rows}</tbody></table>'


# -----------------------------------------------------------
# CSV export
# -----------------------------------------------------------
def _csv_aa_pattern(shifts: List[Dict[str, Any]]) -> str:
    seen: List[str] = []
    for shift in shifts:
        if shift.get('type') != ShiftType.AA.value:
            continue
        label = f"{parse_date_key(shift['date']).strftime('%a')} {shift_short_name(shift['time'])}"
        if label not in seen:
            seen.append(label)
    return ' & '.join(seen) if seen else 'None'


def export_shoppers_csv(records: List[Dict[str, Any]], tz_name: str = DEFAULT_TIMEZONE) -> str:
    rows = []
    for record in records:
        details = record.get('details') or {}
        shifts = record.get('shifts') or []
        created = parse_timestamp(record.get('created_at'))
        rows.append({
            'Name': record.get('name', ''),
            'PN Number': details.get('pnNumber') or '',
            'Registered At': to_local(created, tz_name).strftime('%Y-%m-%d %H:%M') if created else '',
            'First Working Day': details.get('firstWorkingDay') or '',
            'Bus': 'Yes' if details.get('usePicnicBus') else 'No',
            'Randstad': 'Yes' if details.get('isRandstad') else 'No',
            'Address': details.get('address') or '',
            'AA Pattern': _csv_aa_pattern(shifts),
            'Shift Details': '; '.join(
                f"{s['date']} ({shift_short_name(s['time'])} - {s['type']})" for s in shifts
            ),
        })
    df = pd.DataFrame(rows, columns=CSV_HEADERS)
    return df.to_csv(index=False)


# -----------------------------------------------------------
# Grouping
# -----------------------------------------------------------
def session_group_key(created_at: Any, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """``YYYY-MM-DD_0_MORNING`` before 12:30 local time, else ``_1_AFTERNOON``."""
    stamp = parse_timestamp(created_at)
    if stamp is None:
        return INVALID_DATE_GROUP
    local = to_local(stamp, tz_name)
    minutes = local.hour * 60 + local.minute
    suffix = '0_MORNING' if minutes < SESSION_CUTOFF_MINUTES else '1_AFTERNOON'
    return f"{local.strftime('%Y-%m-%d')}_{suffix}"


def start_date_group_key(first_working_day: Optional[str]) -> str:
    if not first_working_day:
        return NO_DATE_GROUP
    try:
        return format_date_key(start_of_week(parse_date_key(first_working_day)))
    except ValueError:
        return INVALID_DATE_GROUP


def group_records(records: List[Dict[str, Any]], mode: str = 'SESSION',
                  tz_name: str = DEFAULT_TIMEZONE) -> Dict[str, List[Dict[str, Any]]]:
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for record in records:
        if mode == 'START_DATE':
            key = start_date_group_key((record.get('details') or {}).get('firstWorkingDay'))
        else:
            key = session_group_key(record.get('created_at'), tz_name)
        groups.setdefault(key, []).append(record)
    return groups


# -----------------------------------------------------------
# Recruiter statistics
# -----------------------------------------------------------
def available_weeks(records: Iterable[Dict[str, Any]], tz_name: str = DEFAULT_TIMEZONE) -> List[str]:
    """Monday keys of every week with a submission, newest first."""
    weeks = set()
    for record in records:
        created = parse_timestamp(record.get('created_at'))
        if created:
            weeks.add(format_date_key(start_of_week(to_local(created, tz_name).date())))
    return sorted(weeks, reverse=True)


def recruiter_stats(records: Iterable[Dict[str, Any]], staff: List[Dict[str, Any]],
                    week: Optional[str] = None, tz_name: str = DEFAULT_TIMEZONE) -> List[Dict[str, Any]]:
    stats: Dict[str, Dict[str, Any]] = {}
    for member in staff:
        stats[member['name']] = {'name': member['name'], 'hires': 0, 'shifts_filled': 0, 'last_active': None}

    week_day = parse_date_key(week) if week and week != 'ALL' else None
    staff_names = {member['name'] for member in staff}

    for record in records:
        created = parse_timestamp(record.get('created_at'))
        if week_day is not None and (created is None or not is_same_week(to_local(created, tz_name).date(), week_day)):
            continue

        raw_name = str((record.get('details') or {}).get('recruiter') or '').strip()
        if not raw_name:
            continue

        key = next((k for k in stats if k.lower() == raw_name.lower()), None)
        if key is None:
            key = raw_name
            stats[key] = {'name': key, 'hires': 0, 'shifts_filled': 0, 'last_active': None}

        entry = stats[key]
        entry['hires'] += 1
        entry['shifts_filled'] += len(record.get('shifts') or [])
        last = parse_timestamp(entry['last_active'])
        if created and (last is None or created > last):
            entry['last_active'] = record.get('created_at')

    result = [e for e in stats.values() if e['hires'] > 0 or e['name'] in staff_names]
    result.sort(key=lambda e: e['hires'], reverse=True)
    return result


# -----------------------------------------------------------
# Staffing heatmap
# -----------------------------------------------------------
def shift_heatmap(records: Iterable[Dict[str, Any]], today: Optional[date] = None,
                  tz_name: str = DEFAULT_TIMEZONE) -> Dict[str, Any]:
    """
    Shift counts per ``<date>_<shift time>`` split into AA and standard.

    The day span runs from the earliest to the latest shift, or two weeks
    from today when nobody has shifts yet.
    """
    cells: Dict[str, Dict[str, int]] = {}
    max_count = 0
    dates = []
    for record in records:
        for shift in record.get('shifts') or []:
            try:
                dates.append(parse_date_key(shift['date']))
            except (KeyError, TypeError, ValueError):
                continue
            cell = cells.setdefault(f"{shift['date']}_{shift.get('time')}", {'aa': 0, 'standard': 0, 'total': 0})
            if shift.get('type') == ShiftType.AA.value:
                cell['aa'] += 1
            else:
                cell['standard'] += 1
            cell['total'] += 1
            max_count = max(max_count, cell['total'])

    if dates:
        start, end = min(dates), max(dates)
    else:
        start = today or get_local_now(tz_name).date()
        end = start + timedelta(days=14)

    days = [format_date_key(start + timedelta(days=offset)) for offset in range((end - start).days + 1)]
    return {
        'cells': cells,
        'max_count': max_count,
        'start_date': format_date_key(start),
        'end_date': format_date_key(end),
        'days': days,
        'shift_times': list(SHIFT_TIME_VALUES),
    }
