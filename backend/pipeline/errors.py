"""
Pipeline Errors - Classification Boundary
=========================================
Every failure the pipelines raise is a PipelineError subclass carrying its
kind and the HTTP status it maps to. The API edge calls classify() instead
of guessing from exception types scattered through route handlers.

Taxonomy:
- validation   (400) missing/malformed request fields, nothing written
- integrity    (400) payment signature mismatch, nothing written
- not_found    (404)
- persistence  (500) database unavailable, constraint or transaction failure
- side_effect  (500) mirror write or notification failed after the insert
- upstream     (500) gateway or media host call failed
"""

from typing import Tuple


class PipelineError(Exception):
    kind = "internal"
    status_code = 500

    def __init__(self, message: str = "", *, cause: Exception = None):
        super().__init__(message or self.kind)
        self.message = message or self.kind
        self.cause = cause


class ValidationError(PipelineError):
    kind = "validation"
    status_code = 400


class SignatureError(PipelineError):
    kind = "integrity"
    status_code = 400


class NotFoundError(PipelineError):
    kind = "not_found"
    status_code = 404


class PersistenceError(PipelineError):
    kind = "persistence"
    status_code = 500


class SideEffectError(PipelineError):
    kind = "side_effect"
    status_code = 500


class MirrorWriteError(SideEffectError):
    kind = "mirror_write"


class NotificationError(SideEffectError):
    kind = "notification"


class UpstreamError(PipelineError):
    kind = "upstream"
    status_code = 500


class GatewayError(UpstreamError):
    kind = "gateway"


class MediaHostError(UpstreamError):
    kind = "media_host"


def classify(exc: BaseException) -> Tuple[int, str]:
    """Map any exception to (http_status, error_kind)."""
    if isinstance(exc, PipelineError):
        return exc.status_code, exc.kind
    return 500, "internal"
