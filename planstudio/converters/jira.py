from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import logging
import re

from planstudio.errors import InvalidOptionError
from planstudio.exports.writers import CsvRow, SCHEMAS, Scalar

logger = logging.getLogger(__name__)

FIELD_TYPES = ("string", "number", "date", "boolean", "array")
DATE_FORMATS = ("iso", "local", "custom")

STORY_POINTS_FIELD = "customfield_10016"


@dataclass(frozen=True)
class CsvField:
    key: str
    label: str
    required: bool = False
    type: str = "string"  # string|number|date|boolean|array


DEFAULT_ISSUE_FIELDS: List[CsvField] = [
    CsvField("key", "Issue Key", True),
    CsvField("summary", "Summary", True),
    CsvField("description", "Description"),
    CsvField("issueType", "Issue Type", True),
    CsvField("status", "Status", True),
    CsvField("priority", "Priority"),
    CsvField("assignee", "Assignee"),
    CsvField("reporter", "Reporter", True),
    CsvField("project", "Project", True),
    CsvField("projectKey", "Project Key", True),
    CsvField("created", "Created", True, "date"),
    CsvField("updated", "Updated", True, "date"),
    CsvField("storyPoints", "Story Points", False, "number"),
    CsvField("labels", "Labels", False, "array"),
    CsvField("components", "Components", False, "array"),
    CsvField("fixVersions", "Fix Versions", False, "array"),
]


@dataclass(frozen=True)
class ConvertOptions:
    include_headers: bool = True
    date_format: str = "iso"
    custom_date_format: Optional[str] = None
    fields: List[CsvField] = field(default_factory=lambda: list(DEFAULT_ISSUE_FIELDS))


def validate_options(opts: ConvertOptions) -> ConvertOptions:
    if opts.date_format not in DATE_FORMATS:
        raise InvalidOptionError(f"date_format must be one of {', '.join(DATE_FORMATS)}")
    if opts.custom_date_format is not None and not isinstance(opts.custom_date_format, str):
        raise InvalidOptionError("custom_date_format must be a string")
    if not isinstance(opts.include_headers, bool):
        raise InvalidOptionError("include_headers must be a boolean")
    for f in opts.fields:
        if f.type not in FIELD_TYPES:
            raise InvalidOptionError(f"unknown field type '{f.type}' for {f.key}")
    return opts


def options_from_dict(d: Dict[str, Any] | None) -> ConvertOptions:
    """Build options from a JSON-ish dict (HTTP payloads)."""
    if d is None:
        d = {}
    if not isinstance(d, dict):
        raise InvalidOptionError("options must be an object")
    kwargs: Dict[str, Any] = {}
    if "include_headers" in d:
        kwargs["include_headers"] = d["include_headers"]
    if "date_format" in d:
        kwargs["date_format"] = d["date_format"]
    if "custom_date_format" in d:
        kwargs["custom_date_format"] = d["custom_date_format"]
    if "fields" in d:
        try:
            kwargs["fields"] = [CsvField(**f) for f in d["fields"]]
        except TypeError as e:
            raise InvalidOptionError(f"invalid field definition: {e}") from e
    return validate_options(ConvertOptions(**kwargs))


_TOKEN_RE = re.compile(r"YYYY|MM|DD|HH|mm|ss")


def format_custom_date(dt: datetime, fmt: str) -> str:
    # single left-to-right pass so substituted digits are never re-scanned
    values = {
        "YYYY": f"{dt.year:04d}",
        "MM": f"{dt.month:02d}",
        "DD": f"{dt.day:02d}",
        "HH": f"{dt.hour:02d}",
        "mm": f"{dt.minute:02d}",
        "ss": f"{dt.second:02d}",
    }
    return _TOKEN_RE.sub(lambda m: values[m.group(0)], fmt)


def parse_jira_datetime(text: str) -> Optional[datetime]:
    # Jira sends 2024-01-15T10:20:30.000+0000
    s = text.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    s = re.sub(r"([+-]\d{2})(\d{2})$", r"\1:\2", s)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def array_to_string(items: Iterable[Any]) -> str:
    return ", ".join(str(i) for i in items)


def _name(obj: Any, attr: str = "name") -> str:
    if isinstance(obj, dict):
        return obj.get(attr) or ""
    return ""


class RecordConverter:
    """Flattens Jira issue, user and project payloads into CSV rows."""

    def __init__(self, options: Optional[ConvertOptions] = None):
        self.options = validate_options(options or ConvertOptions())

    def update_options(self, **changes: Any) -> ConvertOptions:
        self.options = validate_options(replace(self.options, **changes))
        return self.options

    def headers(self) -> List[str]:
        return [f.label for f in self.options.fields]

    def format_date(self, text: str) -> str:
        if not text:
            return ""
        dt = parse_jira_datetime(text)
        if dt is None:
            logger.warning("Unparsable date %r left as-is", text)
            return text
        fmt = self.options.date_format
        if fmt == "local" or (fmt == "custom" and not self.options.custom_date_format):
            return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        if fmt == "custom":
            return format_custom_date(dt.astimezone(), self.options.custom_date_format)
        utc = dt.astimezone(timezone.utc)
        return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"

    def convert_issue(self, issue: Dict[str, Any]) -> Dict[str, Any]:
        f = issue.get("fields") or {}
        project = f.get("project") or {}
        return {
            "key": issue.get("key", ""),
            "summary": f.get("summary") or "",
            "description": f.get("description") or "",
            "issueType": _name(f.get("issuetype")),
            "status": _name(f.get("status")),
            "priority": _name(f.get("priority")),
            "assignee": _name(f.get("assignee"), "displayName"),
            "reporter": _name(f.get("reporter"), "displayName"),
            "project": project.get("name", ""),
            "projectKey": project.get("key", ""),
            "created": f.get("created") or "",
            "updated": f.get("updated") or "",
            "storyPoints": f.get(STORY_POINTS_FIELD),
            "labels": list(f.get("labels") or []),
            "components": [_name(c) for c in f.get("components") or []],
            "fixVersions": [_name(v) for v in f.get("fixVersions") or []],
            "custom_fields": self.extract_custom_fields(f),
        }

    @staticmethod
    def extract_custom_fields(fields: Dict[str, Any]) -> Dict[str, str]:
        return {k: str(v) for k, v in fields.items() if k.startswith("customfield_") and v is not None}

    def format_value(self, value: Any, ftype: str) -> Scalar:
        if ftype == "number":
            return value if isinstance(value, (int, float)) and not isinstance(value, bool) else 0
        if ftype == "boolean":
            return bool(value)
        if ftype == "date":
            return self.format_date(str(value or ""))
        if ftype == "array":
            return array_to_string(value) if isinstance(value, (list, tuple)) else ""
        return "" if value is None else str(value)

    def issues_to_rows(self, issues: Iterable[Dict[str, Any]]) -> List[CsvRow]:
        rows: List[CsvRow] = []
        for issue in issues:
            data = self.convert_issue(issue)
            rows.append({f.label: self.format_value(data.get(f.key), f.type) for f in self.options.fields})
        return rows

    def users_to_rows(self, users: Iterable[Dict[str, Any]]) -> List[CsvRow]:
        labels = SCHEMAS["users"]
        return [
            dict(zip(labels, (
                u.get("accountId", ""),
                u.get("displayName") or "",
                u.get("emailAddress") or "",
                bool(u.get("active")),
            )))
            for u in users
        ]

    def projects_to_rows(self, projects: Iterable[Dict[str, Any]]) -> List[CsvRow]:
        labels = SCHEMAS["projects"]
        rows: List[CsvRow] = []
        for p in projects:
            lead = p.get("lead") or {}
            rows.append(dict(zip(labels, (
                p.get("id", ""),
                p.get("key", ""),
                p.get("name") or "",
                p.get("projectTypeKey") or "",
                lead.get("displayName") or "",
                lead.get("emailAddress") or "",
            ))))
        return rows
