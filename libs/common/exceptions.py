"""Base exception type for domain errors surfaced over HTTP."""

from typing import Any, Optional


class ServiceError(Exception):
    """Domain error carrying an HTTP status and a machine-readable code.

    Services raise subclasses of this; ``libs.common.error_handler`` turns
    them into JSON responses so routers never need to catch them.
    """

    status_code: int = 400
    code: str = "service_error"
    # Idempotent short-circuits are reported to callers as success.
    treat_as_success: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        if self.treat_as_success:
            return {"success": True, "already_processed": True, **self.details}
        return {"error": self.code, "detail": self.message, **self.details}
