# errors.py
from __future__ import annotations


class HisaabError(Exception):
    """Base error; status_code is what the HTTP layer answers with."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class InvalidRequest(HisaabError):
    status_code = 400

    def __init__(self, violations: list[str] | str, message: str = "Invalid request"):
        if isinstance(violations, str):
            violations = [violations]
        self.violations = list(violations)
        super().__init__(f"{message}: " + "; ".join(self.violations))

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.violations}


class Unauthorized(HisaabError):
    status_code = 401


class NotFound(HisaabError):
    status_code = 404


class NoData(HisaabError):
    """Farmer exists but nothing is visible to bill."""
    status_code = 404


class InternalError(HisaabError):
    status_code = 500
