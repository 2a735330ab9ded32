from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
import logging

from planstudio.converters.jira import RecordConverter
from planstudio.exports.files import (
    CsvPayload, Sink, deliver, estimate_byte_size, format_byte_size, generate_filename, preview,
)
from planstudio.exports.writers import CsvRow, SCHEMAS, write_csv

logger = logging.getLogger(__name__)

NO_ROWS = "no rows to export"


@dataclass
class ExportResult:
    success: bool
    filename: Optional[str] = None
    row_count: int = 0
    file_size: Optional[str] = None
    error: Optional[str] = None
    payload: Optional[CsvPayload] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "filename": self.filename,
            "row_count": self.row_count,
            "file_size": self.file_size,
            "error": self.error,
        }


def _discard(payload: CsvPayload) -> None:
    return None


class ExportService:
    """Builds CSV exports and hands them to ``sink``.

    Construct one per caller (or per request); it holds no state beyond
    its collaborators.
    """

    def __init__(
        self,
        converter: Optional[RecordConverter] = None,
        sink: Optional[Sink] = None,
        clock: Optional[Callable[[], datetime]] = None,
        extension: str = "csv",
    ):
        self.converter = converter or RecordConverter()
        self.sink = sink or _discard
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.extension = extension

    def export_rows(
        self,
        headers: Sequence[str],
        rows: Sequence[CsvRow],
        filename: str = "custom_data",
        include_headers: bool = True,
    ) -> ExportResult:
        if not rows:
            return ExportResult(success=False, error=NO_ROWS)
        final_name = generate_filename(filename, self.extension, now=self.clock())
        document = write_csv(rows, headers, include_headers=include_headers)
        try:
            payload = deliver(document, final_name, self.sink)
        except Exception as e:
            logger.exception("CSV delivery failed for %s", final_name)
            return ExportResult(success=False, filename=final_name, row_count=len(rows), error=str(e) or type(e).__name__)
        size = format_byte_size(estimate_byte_size(headers, rows))
        logger.info("Exported %d rows to %s (~%s)", len(rows), payload.filename, size)
        return ExportResult(
            success=True, filename=payload.filename, row_count=len(rows), file_size=size, payload=payload,
        )

    def export_issues(self, issues: Iterable[Dict[str, Any]], filename: str = "jira_issues") -> ExportResult:
        rows = self.converter.issues_to_rows(issues)
        return self.export_rows(
            self.converter.headers(), rows, filename, include_headers=self.converter.options.include_headers,
        )

    def export_users(self, users: Iterable[Dict[str, Any]], filename: str = "jira_users") -> ExportResult:
        return self.export_rows(SCHEMAS["users"], self.converter.users_to_rows(users), filename)

    def export_projects(self, projects: Iterable[Dict[str, Any]], filename: str = "jira_projects") -> ExportResult:
        return self.export_rows(SCHEMAS["projects"], self.converter.projects_to_rows(projects), filename)

    def rows_for(self, kind: str, records: Iterable[Dict[str, Any]]) -> tuple[List[str], List[CsvRow]]:
        if kind == "issues":
            return self.converter.headers(), self.converter.issues_to_rows(records)
        if kind == "users":
            return list(SCHEMAS["users"]), self.converter.users_to_rows(records)
        if kind == "projects":
            return list(SCHEMAS["projects"]), self.converter.projects_to_rows(records)
        raise KeyError(kind)

    def preview(self, headers: Sequence[str], rows: Sequence[CsvRow], max_rows: int = 10) -> Dict[str, Any]:
        out = preview(headers, rows, max_rows)
        out["estimated_size"] = format_byte_size(estimate_byte_size(headers, rows))
        return out
