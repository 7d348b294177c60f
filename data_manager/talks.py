"""
Coaching conversations and performance metrics.

Talk logs, progress flags, performance counters and the note history all
live inside the shopper ``details`` document.
"""
import copy
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import dashboard_logger
from data_manager.models import Shopper, new_uuid
from data_manager.shopper_crud import get_shopper, replace_details
from lib.errors import ValidationError
from lib.utils import coerce_metric, isoformat_utc, parse_timestamp, utc_now

TALK_TYPES = {
    'WELCOME': 'Welcome Talk',
    'MID_TERM': 'Mid-Term Eval',
    'PROMOTION': 'Promotion',
    'END_TRIAL': 'End of Trial',
    'CHECK_IN': 'Quick Check-in',
    'OTHER': 'Ad-hoc / Other',
}

# Talk type -> talkProgress key marked DONE
PROGRESS_FLAGS = {
    'WELCOME': 'welcomeTalk',
    'MID_TERM': 'midTermEval',
    'END_TRIAL': 'endOfTrialTalk',
}

METRIC_KEYS = ('activeWeeks', 'absence', 'late', 'speedAM', 'nsnc')


def log_talk(session: Session, shopper_id: str, talk_type: str, lead_name: str,
             notes: str = '') -> Dict[str, Any]:
    if not (lead_name or '').strip():
        raise ValidationError("Please enter Lead Name")
    talk_type = (talk_type or '').upper()
    if talk_type not in TALK_TYPES:
        raise ValidationError(f"Unknown talk type: {talk_type}")

    shopper = get_shopper(session, shopper_id)
    details = shopper.details or {}

    entry = {
        'id': new_uuid(),
        'date': isoformat_utc(utc_now()),
        'leadShopper': lead_name.strip(),
        'type': talk_type,
        'notes': notes or '',
    }

    progress = dict(details.get('talkProgress') or {})
    if talk_type in PROGRESS_FLAGS:
        progress[PROGRESS_FLAGS[talk_type]] = 'DONE'
    if talk_type == 'CHECK_IN':
        progress['checkInToday'] = True

    replace_details(shopper, {
        'talkProgress': progress,
        'talkLogs': list(details.get('talkLogs') or []) + [entry],
    })
    session.flush()
    dashboard_logger.info(f"{TALK_TYPES[talk_type]} logged for {shopper.name} by {entry['leadShopper']}")
    return entry


def talk_history(shopper: Shopper) -> List[Dict[str, Any]]:
    logs = copy.deepcopy((shopper.details or {}).get('talkLogs') or [])

    def _sort_key(entry):
        stamp = parse_timestamp(entry.get('date'))
        return stamp.timestamp() if stamp else 0.0

    return sorted(logs, key=_sort_key, reverse=True)


def update_metrics(session: Session, shopper_id: str, metrics: Dict[str, Any]) -> Dict[str, Any]:
    shopper = get_shopper(session, shopper_id)
    performance = dict((shopper.details or {}).get('performance') or {})
    for key in METRIC_KEYS:
        if key not in metrics:
            continue
        value = coerce_metric(metrics[key])
        if value is None:
            performance.pop(key, None)
        else:
            performance[key] = value
    replace_details(shopper, {'performance': performance})
    session.flush()
    return performance


def toggle_check_in(session: Session, shopper_id: str) -> bool:
    shopper = get_shopper(session, shopper_id)
    progress = dict((shopper.details or {}).get('talkProgress') or {})
    progress['checkInToday'] = not progress.get('checkInToday')
    replace_details(shopper, {'talkProgress': progress})
    session.flush()
    return progress['checkInToday']


def add_note(session: Session, shopper_id: str, content: str, author: str) -> Dict[str, Any]:
    content = (content or '').strip()
    if not content:
        raise ValidationError("Note cannot be empty.")
    shopper = get_shopper(session, shopper_id)
    entry = {
        'id': new_uuid(),
        'content': content,
        'author': (author or '').strip() or 'Admin',
        'timestamp': isoformat_utc(utc_now()),
    }
    history = list((shopper.details or {}).get('noteHistory') or [])
    history.append(entry)
    replace_details(shopper, {'noteHistory': history})
    session.flush()
    return entry


def reset_daily_check_ins(session: Session) -> int:
    """Clear ``checkInToday`` on every shopper. Returns the number reset."""
    reset = 0
    for shopper in session.scalars(select(Shopper)):
        progress = (shopper.details or {}).get('talkProgress') or {}
        if not progress.get('checkInToday'):
            continue
        replace_details(shopper, {'talkProgress': dict(progress, checkInToday=False)})
        reset += 1
    session.flush()
    return reset


def summarize_for_dashboard(shopper: Shopper) -> Dict[str, Any]:
    details = shopper.details or {}
    performance = details.get('performance') or {}
    progress = details.get('talkProgress') or {}
    logs = details.get('talkLogs') or []

    issue_total = sum(coerce_metric(performance.get(key)) or 0 for key in ('late', 'absence', 'nsnc'))
    last_talk: Optional[Dict[str, Any]] = logs[-1] if logs else None

    return {
        'id': shopper.id,
        'name': shopper.name,
        'pn_number': details.get('pnNumber') or '',
        'performance': performance,
        'progress': progress,
        'checked_in_today': bool(progress.get('checkInToday')),
        'has_issues': issue_total > 0,
        'last_talk': last_talk,
    }
