"""
Google Sheets outreach lists — read the identifier column, append new rows.

Each prospect/client has a spreadsheet whose first worksheet holds one row per
podcast, header in row 1, Podscan id in column E. Appends are deduplicated
against that column first. The read-then-append sequence holds no lock, so
two concurrent appends to the same sheet can still both add a podcast.
"""
import json
import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Set

import gspread
from google.oauth2.service_account import Credentials

from podmatch import config
from podmatch.errors import ConfigurationError, SheetAccessError, SheetsError
from podmatch.schemas import AppendResult, outreach_row

logger = logging.getLogger('services.sheets')

_SHEET_URL_RE = re.compile(r'/d/([a-zA-Z0-9-_]+)')


def extract_spreadsheet_id(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = _SHEET_URL_RE.search(url)
    return match.group(1) if match else None


def get_client(delegate: bool = True) -> gspread.Client:
    """
    Authorize with the service account from GOOGLE_SERVICE_ACCOUNT_JSON.

    With `delegate`, act as GOOGLE_WORKSPACE_USER_EMAIL through domain-wide
    delegation so sheets are owned by the workspace user.
    """
    if not config.GOOGLE_SERVICE_ACCOUNT_JSON:
        raise ConfigurationError('Missing required configuration: GOOGLE_SERVICE_ACCOUNT_JSON')
    try:
        info = json.loads(config.GOOGLE_SERVICE_ACCOUNT_JSON)
    except json.JSONDecodeError as e:
        raise ConfigurationError('GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON') from e

    creds = Credentials.from_service_account_info(info, scopes=config.GOOGLE_SCOPES)
    if delegate and config.GOOGLE_WORKSPACE_USER_EMAIL:
        creds = creds.with_subject(config.GOOGLE_WORKSPACE_USER_EMAIL)
    client = gspread.authorize(creds)
    client.set_timeout(config.SHEETS_TIMEOUT)
    return client


@contextmanager
def _sheet_access(spreadsheet_id: str):
    """Turn "not found" and "permission denied" on one spreadsheet into SheetAccessError."""
    try:
        yield
    except gspread.exceptions.SpreadsheetNotFound as e:
        raise SheetAccessError(f"Spreadsheet {spreadsheet_id} not found") from e
    except gspread.exceptions.APIError as e:
        status = getattr(e.response, 'status_code', None)
        if status in (403, 404):
            raise SheetAccessError(f"Spreadsheet {spreadsheet_id} is not accessible ({status})") from e
        raise


def _first_worksheet(spreadsheet_id: str, delegate: bool = True) -> gspread.Worksheet:
    return get_client(delegate=delegate).open_by_key(spreadsheet_id).get_worksheet(0)


def _read_id_column(spreadsheet_id: str) -> List[str]:
    with _sheet_access(spreadsheet_id):
        worksheet = _first_worksheet(spreadsheet_id, delegate=False)
        values = worksheet.col_values(config.SHEET_ID_COLUMN)
    return [v.strip() for v in values[config.SHEET_HEADER_ROWS:] if v and v.strip()]


def read_podcast_ids(spreadsheet_id: str) -> List[str]:
    """Podcast ids in column E of the first worksheet, header skipped, blanks dropped.

    Raises SheetsError on any API or network failure.
    """
    from podmatch.services.circuit_breaker import get_breaker

    try:
        ids = get_breaker('sheets').call(_read_id_column, spreadsheet_id)
    except (ConfigurationError, SheetsError):
        raise
    except Exception as e:
        raise SheetsError(f"Failed to read spreadsheet {spreadsheet_id}: {e}") from e
    logger.info("Read %d podcast ids from sheet", len(ids), extra={'spreadsheet_id': spreadsheet_id})
    return ids


def existing_podcast_ids(spreadsheet_id: Optional[str], recorded_ids: Iterable[str] = (),
                         cache_only: bool = False) -> Set[str]:
    """
    Ids already present in the outreach list.

    `recorded_ids` are the ids the database has recorded as exported to this
    sheet. With `cache_only` the sheet is not read at all. A failed sheet read
    is logged and the append proceeds with the recorded ids alone.
    """
    ids = set(recorded_ids)
    if cache_only or not spreadsheet_id:
        return ids
    try:
        ids.update(read_podcast_ids(spreadsheet_id))
    except SheetsError as e:
        logger.warning("Proceeding without sheet dedup info: %s", e, extra={'spreadsheet_id': spreadsheet_id})
    return ids


def partition_new_podcasts(podcasts: Iterable[Dict[str, Any]], existing_ids: Set[str]):
    """Split podcasts into (new, duplicates_skipped) against `existing_ids`.

    A podcast repeated within `podcasts` counts as a duplicate after its first
    occurrence. Podcasts without an id cannot be matched against column E and
    are always kept; their rows go in with a blank id cell.
    """
    seen = set(existing_ids)
    new, skipped = [], 0
    for podcast in podcasts:
        podcast_id = str(podcast.get('podscan_podcast_id') or podcast.get('podcast_id') or '')
        if not podcast_id:
            new.append(podcast)
            continue
        if podcast_id in seen:
            skipped += 1
            continue
        seen.add(podcast_id)
        new.append(podcast)
    return new, skipped


def _append(spreadsheet_id: str, rows: List[List[str]]) -> Dict[str, Any]:
    with _sheet_access(spreadsheet_id):
        worksheet = _first_worksheet(spreadsheet_id)
        return worksheet.append_rows(rows, value_input_option='RAW') or {}


def append_podcasts(spreadsheet_id: str, podcasts: Iterable[Dict[str, Any]],
                    existing_ids: Set[str]) -> AppendResult:
    """
    Append podcasts whose id is not in `existing_ids`.

    Raises SheetsError when the append itself fails; nothing is retried.
    """
    from podmatch.services.circuit_breaker import get_breaker

    new, skipped = partition_new_podcasts(podcasts, existing_ids)
    if not new:
        logger.info("Nothing new to append (%d duplicates)", skipped, extra={'spreadsheet_id': spreadsheet_id})
        return AppendResult(new_added=0, duplicates_skipped=skipped)

    rows = [outreach_row(p) for p in new]
    try:
        response = get_breaker('sheets').call(_append, spreadsheet_id, rows)
    except (ConfigurationError, SheetsError):
        raise
    except Exception as e:
        raise SheetsError(f"Failed to append to spreadsheet {spreadsheet_id}: {e}") from e

    updated_range = (response.get('updates') or {}).get('updatedRange')
    logger.info("Appended %d rows, skipped %d duplicates", len(rows), skipped,
                extra={'spreadsheet_id': spreadsheet_id})
    return AppendResult(
        new_added=len(rows),
        duplicates_skipped=skipped,
        updated_range=updated_range,
        appended_ids=[row[-1] for row in rows if row[-1]],
    )


def spreadsheet_url(spreadsheet_id: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit"
