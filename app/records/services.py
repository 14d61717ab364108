"""
Record sources: contacts and agencies loaded from JSON files.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .models import (
    AGENCY_DISPLAY_COLUMNS,
    AGENCY_EXCLUDE_COLUMNS,
    AGENCY_FILTER_COLUMNS,
    DISPLAY_COLUMNS,
    agency_label,
    detail_view,
    filter_options,
    matches_search,
    record_id,
    summary_view,
)

logger = logging.getLogger(__name__)


class RecordSource:
    """Reads records from a JSON array on disk, re-reading only when the file changes."""

    def __init__(self, records_file: Path):
        self.records_file = Path(records_file)
        self._cache: Dict = {
            "records": None,
            "mtime": 0.0,
        }

    def all(self) -> List[Dict[str, Any]]:
        """All records with a usable id, in file order."""
        try:
            mtime = self.records_file.stat().st_mtime
        except OSError:
            return []

        if self._cache["records"] is not None and self._cache["mtime"] >= mtime:
            return list(self._cache["records"])

        try:
            with open(self.records_file, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading records from {self.records_file}: {e}")
            return []

        if not isinstance(raw, list):
            logger.error(f"Records file {self.records_file} does not hold a JSON array")
            return []

        records = []
        for item in raw:
            if isinstance(item, dict) and record_id(item):
                records.append(item)
            else:
                logger.warning(f"Skipping record without id in {self.records_file}")

        self._cache["records"] = records
        self._cache["mtime"] = mtime
        return list(records)

    def get(self, rid: str) -> Optional[Dict[str, Any]]:
        rid = str(rid)
        for record in self.all():
            if record_id(record) == rid:
                return record
        return None


class ContactDirectory:
    """Contact listing with search, filters and per-user lock state."""

    def __init__(self, contacts: RecordSource, agencies: Optional[RecordSource] = None):
        self.contacts = contacts
        self.agencies = agencies

    def agency_map(self) -> Dict[str, str]:
        """Agency id -> name. Empty when no agency file is configured."""
        if self.agencies is None:
            return {}
        return {
            record_id(agency): str(agency["name"])
            for agency in self.agencies.all() if agency.get("name")
        }

    def get(self, rid: str) -> Optional[Dict[str, Any]]:
        return self.contacts.get(rid)

    def detail(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return detail_view(record, self.agency_map())

    def filter_options(self) -> Dict[str, List[str]]:
        return filter_options(self.contacts.all(), self.agency_map())

    def list_rows(self, viewed_ids: Set[str], limit_reached: bool, viewed_only: bool = False,
                  q: Optional[str] = None, agency: Optional[str] = None,
                  department: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List rows with lock state.

        A row is locked when today's cap is reached and the record was not
        unlocked earlier today. Search only looks at fields a locked row
        shows (display columns and agency name), so it never reveals hidden
        contact details.

        Args:
            viewed_ids: Records unlocked today
            limit_reached: Today's limit state for the user
            viewed_only: Keep only records unlocked today
            q: Case-insensitive search text
            agency: Agency id or agency name
            department: Exact department
        """
        agency_map = self.agency_map()
        term = (q or "").strip()

        rows = []
        for record in self.contacts.all():
            row = summary_view(record)
            viewed = row["id"] in viewed_ids
            if viewed_only and not viewed:
                continue

            label = agency_label(record, agency_map)
            if agency and agency not in (label, str(record.get("agency_id") or "")):
                continue
            if department and str(record.get("department") or "") != department:
                continue
            if term and not matches_search(
                    [row[c] for c in DISPLAY_COLUMNS] + [label], term):
                continue

            row["agency"] = label
            row["viewed"] = viewed
            row["locked"] = limit_reached and not viewed
            rows.append(row)
        return rows


class AgencyDirectory:
    """Public agency listing; nothing here is quota-gated."""

    def __init__(self, agencies: RecordSource):
        self.agencies = agencies

    def get(self, rid: str) -> Optional[Dict[str, Any]]:
        return self.agencies.get(rid)

    def detail(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return detail_view(record, exclude=AGENCY_EXCLUDE_COLUMNS)

    def filter_options(self) -> Dict[str, List[str]]:
        return filter_options(self.agencies.all(), columns=AGENCY_FILTER_COLUMNS)

    def list_rows(self, q: Optional[str] = None,
                  filters: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """Agencies matching the search text and every exact-match filter."""
        term = (q or "").strip()
        filters = {k: v for k, v in (filters or {}).items() if v}

        rows = []
        for agency in self.agencies.all():
            if any(str(agency.get(column) or "") != value for column, value in filters.items()):
                continue
            if term and not matches_search(self.detail(agency).values(), term):
                continue
            rows.append(summary_view(agency, AGENCY_DISPLAY_COLUMNS))
        return rows
