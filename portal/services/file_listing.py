# portal/services/file_listing.py
"""
In-memory filtering, sorting and paging of a card's file list.

Works on whatever the caller already has loaded: ORM-backed read schemas on
the server, plain JSON dicts in the API client. Nothing here touches the
database or mutates its input.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

SORT_KEYS = ("recent", "name", "size", "owner")
DIRECTIONS = ("asc", "desc")
ALL_TYPES = "all"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "bmp", "svg"}
SPREADSHEET_EXTENSIONS = {"xlsx", "xls", "csv"}
DOCUMENT_EXTENSIONS = {"doc", "docx"}
PRESENTATION_EXTENSIONS = {"ppt", "pptx"}

FILE_ICONS = {
    "image": "🖼️",
    "pdf": "📄",
    "spreadsheet": "📊",
    "document": "📝",
    "presentation": "📈",
    "file": "📄",
}


@dataclass(frozen=True)
class FileQuery:
    query: str = ""
    type_filter: str = ALL_TYPES
    sort_by: str = "recent"
    direction: str = "desc"
    mine_only: bool = False

    def __post_init__(self):
        if self.sort_by not in SORT_KEYS:
            raise ValueError(f"Invalid sort key '{self.sort_by}'. Allowed: {list(SORT_KEYS)}")
        if self.direction not in DIRECTIONS:
            raise ValueError(f"Invalid sort direction '{self.direction}'. Allowed: {list(DIRECTIONS)}")


# The "clear filters" state
DEFAULT_QUERY = FileQuery()


@dataclass
class Page:
    items: list
    total: int
    page: int
    page_size: int
    pages: int


# ------------------------------------------------------------
# Field access (dicts from JSON or attribute objects)
# ------------------------------------------------------------
def _get(record: Any, *keys: str, default=None):
    if record is None:
        return default
    for key in keys:
        if isinstance(record, Mapping):
            value = record.get(key)
        else:
            value = getattr(record, key, None)
        if value is not None:
            return value
    return default


def _owner(record: Any):
    return _get(record, "user", "owner")


def owner_name(record: Any) -> str:
    """'<first> <last>' of the file owner, untrimmed, empty parts allowed."""
    owner = _owner(record)
    first = _get(owner, "first_name", "firstName", default="")
    last = _get(owner, "last_name", "lastName", default="")
    return f"{first} {last}"


def _timestamp(value: Any) -> datetime:
    if value is None or value == "":
        return _EPOCH
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ------------------------------------------------------------
# Ownership
# ------------------------------------------------------------
def _full_name(person: Any) -> str:
    first = _get(person, "first_name", "firstName", default="")
    last = _get(person, "last_name", "lastName", default="")
    return f"{first} {last}".lower().strip()


def is_owned_by(record: Any, user: Any) -> bool:
    """
    Any of id, email (case-insensitive) or lowercased "first last" name
    matching makes the user the owner; a mismatch on one identifier
    moves on to the next.
    """
    if user is None:
        return False
    owner = _owner(record)
    if owner is None:
        return False

    owner_id = _get(owner, "id")
    user_id = _get(user, "id")
    if owner_id is not None and user_id is not None and str(owner_id) == str(user_id):
        return True

    owner_email = _get(owner, "email")
    user_email = _get(user, "email")
    if owner_email and user_email and str(owner_email).strip().lower() == str(user_email).strip().lower():
        return True

    owner_full = _full_name(owner)
    return bool(owner_full) and owner_full == _full_name(user)


def count_owned_by(files: Iterable[Any], user: Any) -> int:
    return sum(1 for f in files if is_owned_by(f, user))


# ------------------------------------------------------------
# Filter + sort
# ------------------------------------------------------------
def _matches_query(record: Any, q: str) -> bool:
    name = str(_get(record, "name", default="")).lower()
    file_type = str(_get(record, "type", default="")).lower()
    owner = owner_name(record).lower()
    return q in name or q in file_type or q in owner


def _sort_key(sort_by: str):
    if sort_by == "name":
        return lambda f: str(_get(f, "name", default="")).casefold()
    if sort_by == "size":
        return lambda f: _get(f, "size", default=0) or 0
    if sort_by == "owner":
        return lambda f: owner_name(f).casefold()
    return lambda f: _timestamp(_get(f, "updatedAt", "updated_at"))


def filter_files(files: Sequence[Any], criteria: FileQuery = DEFAULT_QUERY, current_user: Any = None) -> List[Any]:
    """
    Apply, in order: "mine only", free-text query, exact type filter, sort.

    The query is matched case-insensitively against the file name, type and
    owner name. Sorting is stable; "desc" reverses the comparison.
    """
    result = list(files)

    if criteria.mine_only:
        result = [f for f in result if is_owned_by(f, current_user)]

    if criteria.query.strip():
        q = criteria.query.lower()
        result = [f for f in result if _matches_query(f, q)]

    if criteria.type_filter != ALL_TYPES:
        result = [f for f in result if str(_get(f, "type", default="")) == criteria.type_filter]

    result.sort(key=_sort_key(criteria.sort_by), reverse=criteria.direction == "desc")
    return result


def type_options(files: Iterable[Any]) -> List[str]:
    """Distinct non-empty file types, sorted, for the type filter dropdown."""
    return sorted({str(t) for t in (_get(f, "type") for f in files) if t})


def toggle_sort(sort_by: str, direction: str, column: str) -> Tuple[str, str]:
    if column not in SORT_KEYS:
        raise ValueError(f"Invalid sort key '{column}'")
    if sort_by == column:
        return column, "asc" if direction == "desc" else "desc"
    return column, "asc"


def paginate(items: Sequence[Any], page: int = 1, page_size: int = 20) -> Page:
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    total = len(items)
    pages = (total + page_size - 1) // page_size
    start = (page - 1) * page_size
    return Page(
        items=list(items[start:start + page_size]),
        total=total,
        page=page,
        page_size=page_size,
        pages=pages,
    )


# ------------------------------------------------------------
# Formatting
# ------------------------------------------------------------
_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def format_file_size(size: Optional[int]) -> str:
    if not size:
        return "0 Bytes"

    i = 0
    while i < len(_SIZE_UNITS) - 1 and size >= 1024 ** (i + 1):
        i += 1

    value = f"{size / 1024 ** i:.1f}"
    if value.endswith(".0"):
        value = value[:-2]
    return f"{value} {_SIZE_UNITS[i]}"


def file_extension(name: str) -> str:
    if not name or "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def file_category(name: str, file_type: str = "") -> str:
    ext = file_extension(name)
    if file_type == "Image" or ext in IMAGE_EXTENSIONS:
        return "image"
    if file_type == "PDF" or ext == "pdf":
        return "pdf"
    if file_type == "Spreadsheet" or ext in SPREADSHEET_EXTENSIONS:
        return "spreadsheet"
    if ext in DOCUMENT_EXTENSIONS:
        return "document"
    if ext in PRESENTATION_EXTENSIONS:
        return "presentation"
    return "file"
