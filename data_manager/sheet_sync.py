"""
Spreadsheet reconciliation.

Pulls the performance tab (``[Name, PN, ActiveWeeks, Absence, Late,
Speed(AM), Notes]`` from row 2) either through the Google Sheets API with a
service account or from a published CSV export, and merges it into the
shopper records.
"""
import copy
import difflib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import gspread
import pandas as pd
from google.oauth2.service_account import Credentials
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import SHEET_SYNC_SETTINGS, dashboard_logger
from data_manager.models import Shopper
from lib.errors import SyncError
from lib.utils import coerce_metric, normalize_name

SCOPES = ['https://www.googleapis.com/auth/spreadsheets.readonly']
ROW_WIDTH = 7
METRIC_COLUMNS = {2: 'activeWeeks', 3: 'absence', 4: 'late', 5: 'speedAM'}


@dataclass
class SyncResult:
    updated_count: int = 0
    matches: List[str] = field(default_factory=list)
    inserted_count: int = 0
    inserted: List[str] = field(default_factory=list)
    skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'updated_count': self.updated_count,
            'matches': list(self.matches),
            'inserted_count': self.inserted_count,
            'inserted': list(self.inserted),
            'skipped': self.skipped,
        }


# -----------------------------------------------------------
# Row sources
# -----------------------------------------------------------
def _cell(value: Any) -> str:
    if value is None:
        return ''
    try:
        if pd.isna(value):
            return ''
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def pad_row(row: Sequence[Any]) -> List[str]:
    cells = [_cell(v) for v in list(row)[:ROW_WIDTH]]
    return cells + [''] * (ROW_WIDTH - len(cells))


def fetch_rows_from_sheets(spreadsheet_id: str, tab_name: str, cell_range: str,
                           credentials_file: str) -> List[List[str]]:
    try:
        creds = Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
    except FileNotFoundError as exc:
        raise SyncError(f"Credentials file not found: '{credentials_file}'.") from exc

    try:
        client = gspread.authorize(creds)
        worksheet = client.open_by_key(spreadsheet_id).worksheet(tab_name)
        values = worksheet.get(cell_range)
    except gspread.exceptions.WorksheetNotFound as exc:
        raise SyncError(f"Worksheet '{tab_name}' not found.") from exc
    except (gspread.exceptions.GSpreadException, OSError) as exc:
        raise SyncError(f"Error fetching sheet: {exc}") from exc

    return [pad_row(row) for row in (values or [])]


def fetch_rows_from_csv(csv_url: str) -> List[List[str]]:
    """Read a published CSV export; the first line is the header row."""
    try:
        df = pd.read_csv(csv_url, header=None, skiprows=1, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return []
    except (OSError, ValueError) as exc:
        raise SyncError(f"Error fetching sheet: {exc}") from exc
    return [pad_row(row) for row in df.itertuples(index=False, name=None)]


def fetch_rows(settings: Optional[Dict[str, Any]] = None) -> List[List[str]]:
    settings = settings or SHEET_SYNC_SETTINGS
    if settings.get('csv_url'):
        return fetch_rows_from_csv(settings['csv_url'])
    if settings.get('spreadsheet_id'):
        return fetch_rows_from_sheets(
            settings['spreadsheet_id'],
            settings.get('tab_name') or 'Shift-Dashboard-proposal',
            settings.get('range') or 'A2:G',
            settings.get('credentials_file') or 'credentials.json',
        )
    raise SyncError("Sheet sync is not configured (set sheet_sync.spreadsheet_id or sheet_sync.csv_url).")


# -----------------------------------------------------------
# Merge
# -----------------------------------------------------------
def merge_row(details: Optional[Dict[str, Any]], row: List[str]) -> Dict[str, Any]:
    """New details document with the sheet row merged in."""
    merged = copy.deepcopy(details or {})
    performance = dict(merged.get('performance') or {})

    if row[1]:
        merged['pnNumber'] = row[1]

    for index, key in METRIC_COLUMNS.items():
        value = coerce_metric(row[index])
        if value is not None:
            performance[key] = value
    merged['performance'] = performance

    note = row[6]
    if note:
        current = merged.get('notes') or ''
        if note not in current:
            merged['notes'] = f"{current}\n[Sheet]: {note}".strip()

    return merged


def _find_match(name: str, index: Dict[str, Shopper], cutoff: float) -> Optional[Shopper]:
    key = normalize_name(name)
    if key in index:
        return index[key]
    if cutoff > 0:
        close = difflib.get_close_matches(key, list(index.keys()), n=1, cutoff=cutoff)
        if close:
            dashboard_logger.info(f"Fuzzy matched sheet row '{name}' to '{index[close[0]].name}'")
            return index[close[0]]
    return None


def reconcile_rows(session: Session, rows: Sequence[Sequence[Any]], insert_unmatched: bool = True,
                   fuzzy_cutoff: float = 0.0) -> SyncResult:
    if not rows:
        raise SyncError("Spreadsheet is empty or range incorrect.")

    index: Dict[str, Shopper] = {}
    for shopper in session.scalars(select(Shopper).order_by(Shopper.created_at.asc())):
        # First match wins
        index.setdefault(normalize_name(shopper.name), shopper)

    result = SyncResult()
    for raw in rows:
        row = pad_row(raw)
        if not row[0]:
            result.skipped += 1
            continue

        shopper = _find_match(row[0], index, fuzzy_cutoff)
        if shopper is None and not insert_unmatched:
            result.skipped += 1
            continue

        is_new = shopper is None
        try:
            with session.begin_nested():
                if not is_new:
                    shopper.details = merge_row(shopper.details, row)
                else:
                    shopper = Shopper(name=row[0], details=merge_row({}, row))
                    session.add(shopper)
                session.flush()
        except SQLAlchemyError as exc:
            dashboard_logger.error(f"Sheet sync failed for row '{row[0]}': {exc}")
            result.skipped += 1
            continue

        if is_new:
            index[normalize_name(shopper.name)] = shopper
            result.inserted_count += 1
            result.inserted.append(shopper.name)
        else:
            result.updated_count += 1
            result.matches.append(shopper.name)

    dashboard_logger.info(
        f"Sheet sync: {result.updated_count} updated, {result.inserted_count} inserted, {result.skipped} skipped"
    )
    return result


def run_sheet_sync(session: Session, settings: Optional[Dict[str, Any]] = None) -> SyncResult:
    settings = settings or SHEET_SYNC_SETTINGS
    rows = fetch_rows(settings)
    return reconcile_rows(
        session,
        rows,
        insert_unmatched=bool(settings.get('insert_unmatched', True)),
        fuzzy_cutoff=float(settings.get('fuzzy_match_cutoff') or 0.0),
    )
