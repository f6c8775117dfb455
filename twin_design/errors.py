"""Failures raised by the design-job pipeline.

Every error carries an HTTP-equivalent ``status_code``, a stable ``code`` and a
structured ``detail`` dict so the orchestrator can fold it into a non-success
result without losing diagnostics.
"""

from __future__ import annotations

from typing import Any


class DesignJobError(Exception):
    status_code = 500
    code = "design_job_error"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class AssetNotFound(DesignJobError):
    status_code = 404
    code = "asset_not_found"

    def __init__(self, path: str) -> None:
        super().__init__(f"File not found in storage: {path}", detail={"path": path})
        self.path = path


class AssetTooSmall(DesignJobError):
    status_code = 400
    code = "asset_too_small"

    def __init__(self, width: int, height: int, minimum: int) -> None:
        super().__init__(
            f"Image dimensions ({width}x{height}) are too small. "
            f"Minimum required: {minimum}x{minimum} pixels.",
            detail={"width": width, "height": height, "minimum": minimum},
        )
        self.width = width
        self.height = height
        self.minimum = minimum


class AssetMissingTransparency(DesignJobError):
    status_code = 400
    code = "asset_missing_transparency"

    def __init__(self, mode: str | None = None, image_format: str | None = None) -> None:
        super().__init__(
            "Image does not have transparency. A transparent PNG with isolated "
            "objects (alpha channel) is required.",
            detail={"mode": mode, "format": image_format},
        )


class MissingRequiredField(DesignJobError):
    status_code = 400
    code = "missing_required_field"

    def __init__(self, field: str, design_type: str | None = None) -> None:
        reason = f"{field} is required"
        if design_type:
            reason = f"{reason} for {design_type} design type"
        super().__init__(reason, detail={"field": field, "design_type": design_type})
        self.field = field


class InvalidParameter(DesignJobError):
    status_code = 400
    code = "invalid_parameter"

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}", detail={"field": field})
        self.field = field


class ProviderError(DesignJobError):
    """The provider rejected the job, failed it, or answered without outputs."""

    status_code = 500
    code = "provider_error"

    def __init__(
        self,
        message: str,
        *,
        raw_body: str | None = None,
        http_status: int | None = None,
        job_id: str | None = None,
        status: str | None = None,
    ) -> None:
        super().__init__(
            message,
            detail={
                "raw_body": raw_body,
                "http_status": http_status,
                "job_id": job_id,
                "status": status,
            },
        )
        self.raw_body = raw_body
        self.http_status = http_status
        self.job_id = job_id
        self.status = status


class ProviderUnavailable(ProviderError):
    status_code = 503
    code = "provider_unavailable"


class RequestTimeout(DesignJobError):
    status_code = 408
    code = "request_timeout"

    def __init__(self, job_id: str, status: str | None, attempts: int) -> None:
        super().__init__(
            "Timeout waiting for design completion",
            detail={"job_id": job_id, "status": status or "unknown", "attempts": attempts},
        )
        self.job_id = job_id
        self.status = status or "unknown"
        self.attempts = attempts


class TransformationCancelled(DesignJobError):
    status_code = 499
    code = "cancelled"

    def __init__(self, job_id: str | None = None, attempts: int = 0) -> None:
        super().__init__(
            "Design request was cancelled by the caller",
            detail={"job_id": job_id, "attempts": attempts},
        )
        self.job_id = job_id


class InternalDesignError(DesignJobError):
    status_code = 500
    code = "internal_error"
