from __future__ import annotations
from typing import Dict, Iterable, List, Mapping, Sequence, Union

Scalar = Union[str, int, float, bool]
CsvRow = Mapping[str, Scalar]

_SPECIAL = ('"', ",", "\r", "\n")

# Default column labels per exported record kind
SCHEMAS: Dict[str, List[str]] = {
    "issues": [
        "Issue Key", "Summary", "Description", "Issue Type", "Status", "Priority", "Assignee", "Reporter",
        "Project", "Project Key", "Created", "Updated", "Story Points", "Labels", "Components", "Fix Versions",
    ],
    "users": ["Account ID", "Display Name", "Email Address", "Active"],
    "projects": ["ID", "Key", "Name", "Project Type", "Lead", "Lead Email"],
}


def _to_text(value: Scalar | None) -> str:
    if value is None:
        return ""
    # bool is an int subclass, check it first
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def escape_field(value: Scalar | None) -> str:
    text = _to_text(value)
    if any(ch in text for ch in _SPECIAL):
        return '"' + text.replace('"', '""') + '"'
    return text


def row_to_line(values: Iterable[Scalar | None]) -> str:
    return ",".join(escape_field(v) for v in values)


def build_document(headers: Sequence[str], rows: Iterable[CsvRow]) -> str:
    """Render headers and rows as one CSV document.

    Each row is looked up by header label: absent labels become empty
    fields and keys outside ``headers`` are ignored. Lines are joined with
    a single ``\\n`` and no trailing newline is added.
    """
    lines: List[str] = []
    if headers:
        lines.append(row_to_line(headers))
    for r in rows:
        lines.append(row_to_line(r.get(h, "") for h in headers))
    return "\n".join(lines)


def write_csv(rows: Iterable[CsvRow], columns: Sequence[str], include_headers: bool = True) -> str:
    if include_headers:
        return build_document(columns, rows)
    # rows are still projected onto columns, only the header line is dropped
    return "\n".join(row_to_line(r.get(c, "") for c in columns) for r in rows)


def write_issues(rows: Iterable[CsvRow]) -> str:
    return write_csv(rows, SCHEMAS["issues"])


def write_users(rows: Iterable[CsvRow]) -> str:
    return write_csv(rows, SCHEMAS["users"])


def write_projects(rows: Iterable[CsvRow]) -> str:
    return write_csv(rows, SCHEMAS["projects"])
