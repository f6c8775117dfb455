"""HomeDesigns.ai transport: job submission, response classification and status checks.

Submission and status calls carry the bearer token. A submission is attempted
exactly once; resubmitting could duplicate billable provider work.
"""

from __future__ import annotations

import contextlib
import json
import logging
from typing import Any, Iterator, Optional, Tuple

import httpx

from twin_design.config import HomeDesignsConfig, get_settings
from twin_design.errors import ProviderError, ProviderUnavailable
from twin_design.models import ExternalJob, ImmediateJob, QueuedJob, StatusSnapshot
from twin_design.services.design_operations import DesignOperation, ResponseMode
from twin_design.services.request_builder import MultipartPayload

logger = logging.getLogger(__name__)

NO_OUTPUT_MESSAGE = "Invalid response from HomeDesigns.ai: No output images received"
INVALID_QUEUE_MESSAGE = "Invalid queue response from HomeDesigns.ai"


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


def _text(value: Any) -> Optional[str]:
    """Scalar provider metadata as a string; containers and blanks become ``None``."""

    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _extract_outputs(data: dict[str, Any]) -> Tuple[Optional[list[str]], Optional[str]]:
    """Return ``(outputs, input_image)``; ``outputs`` is ``None`` when no list is present."""

    nested = data.get("success")
    if isinstance(nested, dict) and "generated_image" in nested:
        return _string_list(nested.get("generated_image")), _text(nested.get("original_image"))

    if "output_images" in data:
        return _string_list(data.get("output_images")), _text(data.get("input_image"))

    return None, _text(data.get("input_image"))


def _load_json(body: str) -> Optional[dict[str, Any]]:
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def classify_submission(operation: DesignOperation, body: str) -> ExternalJob:
    """Turn a successful submission body into an Immediate or Queued job."""

    data = _load_json(body)
    if data is None:
        raise ProviderError("HomeDesigns.ai returned a non-JSON response", raw_body=body)

    outputs, input_image = _extract_outputs(data)
    if outputs:
        return ImmediateJob(output_images=tuple(outputs), input_image=input_image, raw=body)
    if outputs is not None:
        raise ProviderError(NO_OUTPUT_MESSAGE, raw_body=body)

    job_id = data.get("id")
    if isinstance(job_id, (str, int)) and str(job_id).strip():
        return QueuedJob(job_id=str(job_id).strip(), provider_status=_text(data.get("status")))

    message = INVALID_QUEUE_MESSAGE if operation.mode is ResponseMode.QUEUED else NO_OUTPUT_MESSAGE
    raise ProviderError(message, raw_body=body)


def parse_status(body: str) -> Optional[StatusSnapshot]:
    """Parse a status-check body; ``None`` means the body could not be understood."""

    data = _load_json(body)
    if data is None:
        return None

    wrapper = data.get("data") if isinstance(data.get("data"), dict) else {}
    outputs, input_image = _extract_outputs(data)
    if outputs is None and wrapper:
        outputs, wrapped_input = _extract_outputs(wrapper)
        input_image = wrapped_input or input_image

    return StatusSnapshot(
        status=_text(data.get("status")) or _text(wrapper.get("status")),
        input_image=input_image,
        output_images=tuple(outputs or ()),
        created_at=_text(data.get("created_at")) or _text(wrapper.get("created_at")),
        started_at=_text(data.get("started_at")) or _text(wrapper.get("started_at")),
        raw=body,
    )


class HomeDesignsGateway:
    def __init__(
        self,
        config: HomeDesignsConfig | None = None,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = config or get_settings().homedesigns
        self._shared_client = client

    def _headers(self) -> dict[str, str]:
        if not self.config.token:
            raise ProviderUnavailable("HOMEDESIGNS_AI_TOKEN is not configured")
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Accept": "application/json",
        }

    @contextlib.contextmanager
    def _session(self) -> Iterator[httpx.Client]:
        if self._shared_client is not None:
            yield self._shared_client
            return
        with httpx.Client(proxy=self.config.proxy, timeout=self.config.timeout) as client:
            yield client

    def submit(self, operation: DesignOperation, payload: MultipartPayload) -> ExternalJob:
        url = operation.submit_url(self.config.api_base)
        headers = self._headers()
        logger.info(
            "Sending request to HomeDesigns.ai",
            extra={"operation": operation.name, "url": url, "params": payload.summary()},
        )

        try:
            with self._session() as client:
                response = client.post(url, data=payload.fields, files=payload.files, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("HomeDesigns.ai request failed: %s", exc)
            raise ProviderError(f"HomeDesigns.ai request failed: {exc}") from exc

        body = response.text
        logger.info("API Response Status: %s", response.status_code)
        logger.debug("API Response Content: %s", body)

        if response.status_code >= 400:
            logger.error("HomeDesigns.ai API error: %s - %s", response.status_code, body)
            raise ProviderError(
                f"HomeDesigns.ai API error: {body}",
                raw_body=body,
                http_status=response.status_code,
            )

        job = classify_submission(operation, body)
        if isinstance(job, QueuedJob):
            logger.info("HomeDesigns.ai request queued successfully. Queue ID: %s", job.job_id)
        else:
            logger.info("HomeDesigns.ai returned %s designs immediately", len(job.output_images))
        return job

    def check_status(self, operation: DesignOperation, job_id: str) -> Optional[StatusSnapshot]:
        """One status query; transport failures and unreadable bodies yield ``None``."""

        url = operation.status_url(self.config.api_base, job_id)
        headers = self._headers()
        try:
            with self._session() as client:
                response = client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Status check for job %s failed: %s", job_id, exc)
            return None

        body = response.text
        logger.debug("Raw status response: %s", body)
        if response.status_code >= 400:
            logger.warning("Status check for job %s returned HTTP %s", job_id, response.status_code)

        snapshot = parse_status(body)
        if snapshot is None:
            logger.warning("Failed to parse status response for job %s: %s", job_id, body[:200])
        return snapshot
