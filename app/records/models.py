"""
Record views for the contact directory.

Records are opaque field bags; the only field the quota core relies on is a
stable ``id``.
"""
import math
from typing import Any, Dict, Iterable, List, Optional

# Basic info shown in the list, visible without unlocking
DISPLAY_COLUMNS = ["first_name", "last_name", "title", "department"]

# System/metadata fields never shown in the detail view
EXCLUDE_COLUMNS = ["created_at", "updated_at", "email_type", "id"]

# Columns the list can be filtered on
FILTER_COLUMNS = ["agency_id", "department"]

# Agencies are public: no quota, every non-internal field is shown
AGENCY_DISPLAY_COLUMNS = ["name", "state", "type", "population", "website", "county"]
AGENCY_EXCLUDE_COLUMNS = [
    "total_schools",
    "total_students",
    "mailing_address",
    "grade_span",
    "locale",
    "csa_cbsa",
    "domain_name",
    "status",
    "student_teacher_ratio",
    "supervisory_union",
    "created_at",
    "updated_at",
    "id",
]
AGENCY_FILTER_COLUMNS = ["state", "type", "county"]

ITEMS_PER_PAGE = 10
MAX_PER_PAGE = 100


def record_id(record: Dict[str, Any]) -> str:
    return str(record.get("id", ""))


def summary_view(record: Dict[str, Any], columns: Iterable[str] = DISPLAY_COLUMNS) -> Dict[str, Any]:
    """Id plus the display columns, for list rows."""
    row = {"id": record_id(record)}
    for column in columns:
        row[column] = record.get(column, "")
    return row


def detail_view(record: Dict[str, Any], agency_map: Optional[Dict[str, str]] = None,
                exclude: Iterable[str] = EXCLUDE_COLUMNS) -> Dict[str, Any]:
    """Every non-system field with a value, plus the agency name when it is known."""
    exclude = set(exclude)
    result = {
        key: value for key, value in record.items()
        if key not in exclude and value not in (None, "")
    }
    agency_name = (agency_map or {}).get(str(record.get("agency_id", "")))
    if agency_name:
        result["agency"] = agency_name
    return result


def agency_label(record: Dict[str, Any], agency_map: Dict[str, str]) -> str:
    """Agency name for a contact, falling back to the raw id when unmapped."""
    raw = str(record.get("agency_id") or "")
    return agency_map.get(raw, raw)


def matches_search(values: Iterable[Any], term: str) -> bool:
    """Case-insensitive substring match over any of ``values``."""
    term = term.lower()
    return any(term in str(value).lower() for value in values if value not in (None, ""))


def filter_options(records: List[Dict[str, Any]], agency_map: Optional[Dict[str, str]] = None,
                   columns: Iterable[str] = FILTER_COLUMNS) -> Dict[str, List[str]]:
    """Sorted distinct values of each filter column. Agency ids are shown by name."""
    options = {}
    for column in columns:
        if column == "agency_id" and agency_map is not None:
            values = {agency_label(r, agency_map) for r in records if r.get(column)}
        else:
            values = {str(r[column]) for r in records if r.get(column)}
        options[column] = sorted(values)
    return options


def paginate(rows: List[Dict[str, Any]], page: int = 1, per_page: int = ITEMS_PER_PAGE) -> Dict[str, Any]:
    """
    Slice ``rows`` into one page.

    ``per_page`` is clamped to 1..MAX_PER_PAGE and ``page`` to the existing
    pages, so an out-of-range page returns the nearest one.
    """
    per_page = min(max(1, per_page), MAX_PER_PAGE)
    total = len(rows)
    total_pages = max(1, math.ceil(total / per_page))
    page = min(max(1, page), total_pages)
    start = (page - 1) * per_page
    return {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
        "records": rows[start:start + per_page],
    }
