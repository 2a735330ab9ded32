from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence
import logging
import re

from planstudio.exports.writers import CsvRow, build_document

logger = logging.getLogger(__name__)

CSV_MIMETYPE = "text/csv; charset=utf-8"
_UNITS = ["B", "KB", "MB", "GB"]


@dataclass(frozen=True)
class CsvPayload:
    filename: str
    body: bytes
    mimetype: str = CSV_MIMETYPE

    @property
    def size(self) -> int:
        return len(self.body)


Sink = Callable[[CsvPayload], Any]


def generate_filename(prefix: str, extension: str = "csv", now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    # e.g. 2024-05-01T09-30-00, no ':' or '.' so it is safe on every filesystem
    stamp = re.sub(r"[:.]", "-", now.isoformat())[:19]
    return f"{prefix}_{stamp}.{extension}"


def sanitize_filename(name: str) -> str:
    out = re.sub(r"[^A-Za-z0-9._-]", "_", name)
    out = re.sub(r"_{2,}", "_", out)
    return re.sub(r"^_|_$", "", out)


def estimate_byte_size(headers: Sequence[str], rows: Sequence[CsvRow]) -> int:
    """Rough output size: the header plus first-row sample, times the row count.

    Only exact for uniform rows; heterogeneous rows can make it far off.
    """
    sample = build_document(headers, list(rows[:1]))
    return len(sample.encode("utf-8")) * len(rows)


def format_byte_size(num_bytes: float) -> str:
    size = float(num_bytes)
    idx = 0
    while size >= 1024 and idx < len(_UNITS) - 1:
        size /= 1024
        idx += 1
    return f"{size:.2f} {_UNITS[idx]}"


def preview(headers: Sequence[str], rows: Sequence[CsvRow], max_rows: int = 10) -> Dict[str, Any]:
    shown: List[CsvRow] = list(rows[:max_rows])
    remaining = max(0, len(rows) - max_rows)
    logger.debug("CSV preview headers=%s showing %d of %d rows", list(headers), len(shown), len(rows))
    for i, r in enumerate(shown, start=1):
        logger.debug("row %d: %s", i, dict(r))
    if remaining:
        logger.debug("... and %d more rows", remaining)
    return {"headers": list(headers), "rows": [dict(r) for r in shown], "count": len(shown), "remaining": remaining}


def deliver(document: str, filename: str, sink: Sink) -> CsvPayload:
    """Encode ``document`` and hand it to ``sink`` under a sanitized name.

    Whatever the sink raises (disk full, client gone) propagates.
    """
    payload = CsvPayload(filename=sanitize_filename(filename), body=document.encode("utf-8"))
    logger.debug("Delivering %s (%d bytes)", payload.filename, payload.size)
    sink(payload)
    return payload
