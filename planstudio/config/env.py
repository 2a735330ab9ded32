from __future__ import annotations
import logging
import os
import re
from dataclasses import dataclass
from typing import List
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class JiraConfig:
    base_url: str = ""
    api_key: str = ""
    email: str = ""

    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key and self.email)

    def normalized_base_url(self) -> str:
        return self.base_url.strip().rstrip("/") + "/"


def get_jira_config() -> JiraConfig:
    return JiraConfig(
        base_url=os.getenv("JIRA_BASE_URL", ""),
        api_key=os.getenv("JIRA_API_KEY", ""),
        email=os.getenv("JIRA_EMAIL", ""),
    )


def validate_jira_config(cfg: JiraConfig) -> List[str]:
    warnings: List[str] = []
    for name, val in (("JIRA_BASE_URL", cfg.base_url), ("JIRA_API_KEY", cfg.api_key), ("JIRA_EMAIL", cfg.email)):
        if not val:
            warnings.append(f"{name} is not set")
    if cfg.base_url and urlparse(cfg.base_url.strip()).scheme not in ("http", "https"):
        warnings.append("Jira base URL must use HTTP or HTTPS protocol")
    if cfg.email and not _EMAIL_RE.match(cfg.email):
        warnings.append(f"Invalid email format: {cfg.email}")
    for w in warnings:
        logger.warning("Jira configuration: %s", w)
    return warnings


@dataclass(frozen=True)
class ExportConfig:
    max_preview_rows: int = 10
    default_extension: str = "csv"


def get_export_config() -> ExportConfig:
    try:
        rows = int(os.getenv("EXPORT_PREVIEW_ROWS", "10"))
    except ValueError:
        logger.warning("EXPORT_PREVIEW_ROWS is not an integer, using 10")
        rows = 10
    return ExportConfig(max_preview_rows=max(0, rows), default_extension=os.getenv("EXPORT_EXTENSION", "csv"))
