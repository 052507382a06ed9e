from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class LightingError(Exception):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class GenerationFailure(LightingError):
    """The language-model service was unreachable or answered with an error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("generation_failed", message, details)


class InvalidScope(LightingError):
    """Additive generation was requested without a usable fixture filter."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("invalid_scope", message, details)


class InvalidRequest(LightingError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("invalid_request", message, details)


class NoMatchingFixtures(LightingError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("no_matching_fixtures", message, details)


class BackendFailure(LightingError):
    """Raised for lighting-control backend errors; ``code`` narrows not-found cases."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = "backend_failed",
    ) -> None:
        super().__init__(code, message, details)


def to_error(error: LightingError) -> Dict[str, Any]:
    return {"ok": False, "error": error.to_dict()}
