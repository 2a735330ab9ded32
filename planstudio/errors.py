from __future__ import annotations
from typing import Optional


class PlanstudioError(Exception):
    """Base class for errors raised by planstudio."""


class InvalidOptionError(PlanstudioError, ValueError):
    pass


class JiraApiError(PlanstudioError):
    def __init__(self, status: int, message: str, body: Optional[str] = None):
        super().__init__(f"Jira API Error: {status} - {message}")
        self.status = status
        self.message = message
        self.body = body
