from __future__ import annotations
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlencode
import base64
import json

from planstudio.config.env import JiraConfig
from planstudio.errors import JiraApiError

"""
Jira Cloud REST v3: we build URLs/headers and parse the minimal response
shapes used for exports. Transport is left to the caller.
"""

API_PREFIX = "/rest/api/3"


def _api_root(base_url: str) -> str:
    return base_url.strip().rstrip("/") + API_PREFIX


def build_search_url(base_url: str, jql: str, max_results: int = 50) -> str:
    qs = urlencode({"jql": jql, "maxResults": max_results}, quote_via=quote)
    return f"{_api_root(base_url)}/search?{qs}"


def build_project_issues_url(base_url: str, project_key: str, jql: str = "", max_results: int = 50) -> str:
    return build_search_url(base_url, jql or f"project = {project_key}", max_results)


def build_users_url(base_url: str) -> str:
    return f"{_api_root(base_url)}/users/search"


def build_projects_url(base_url: str) -> str:
    return f"{_api_root(base_url)}/project"


def basic_auth_header(email: str, token: str) -> str:
    raw = f"{email}:{token}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def request_headers(cfg: JiraConfig) -> Dict[str, str]:
    return {
        "Authorization": basic_auth_header(cfg.email, cfg.api_key),
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def parse_search_issues(payload: Dict[str, Any] | None) -> List[Dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    return [i for i in payload.get("issues") or [] if isinstance(i, dict)]


def _parse_list(payload: Any) -> List[Dict[str, Any]]:
    # users/projects endpoints return bare arrays; paginated variants wrap them in "values"
    if isinstance(payload, dict):
        payload = payload.get("values") or []
    if not isinstance(payload, list):
        return []
    return [x for x in payload if isinstance(x, dict)]


def parse_users(payload: Any) -> List[Dict[str, Any]]:
    return _parse_list(payload)


def parse_projects(payload: Any) -> List[Dict[str, Any]]:
    return _parse_list(payload)


def parse_error(status: int, body: Optional[str]) -> JiraApiError:
    """Turn a non-2xx response into an error, preferring Jira's errorMessages."""
    message = body or ""
    try:
        data = json.loads(body or "")
    except ValueError:
        data = None
    if isinstance(data, dict):
        msgs = list(data.get("errorMessages") or [])
        msgs += [f"{k}: {v}" for k, v in (data.get("errors") or {}).items()]
        if msgs:
            message = "; ".join(msgs)
    return JiraApiError(status, message, body)
