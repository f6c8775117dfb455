"""End-to-end design job: fetch, validate, submit, poll, persist, aggregate.

``DesignJobOrchestrator.run_transformation`` never raises for pipeline
failures; every outcome is folded into an :class:`OrchestrationResult` so the
HTTP layer answers with one shape regardless of what went wrong.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from functools import lru_cache
from typing import Any, Callable, Optional, Sequence

from twin_design.config import PipelineConfig, get_settings
from twin_design.errors import (
    DesignJobError,
    InternalDesignError,
    ProviderError,
    RequestTimeout,
)
from twin_design.models import (
    ImmediateJob,
    PersistedArtifact,
    PollResult,
    PollState,
    QueuedJob,
    SourceAsset,
    StatusSnapshot,
)
from twin_design.schemas import OrchestrationResult, TransformationRequest
from twin_design.services.artifacts import ArtifactFanOutPersister
from twin_design.services.asset_validation import validate_source_asset
from twin_design.services.design_operations import DesignOperation, get_operation
from twin_design.services.homedesigns import HomeDesignsGateway
from twin_design.services.object_store import (
    ObjectStore,
    container_name,
    fetch_source_asset,
    get_object_store,
)
from twin_design.services.polling import JobPollingCoordinator, PollingPolicy
from twin_design.services.request_builder import build_payload, check_request

logger = logging.getLogger(__name__)


def _echoed_parameters(
    request: TransformationRequest, operation: Optional[DesignOperation]
) -> dict[str, Any]:
    """Design parameters the operation actually sent; unknown operations echo the request."""

    sends_design = operation is None or operation.design_parameters
    sends_intervention = operation is None or operation.sends_intervention
    return {
        "design_type": request.design_type if sends_design else None,
        "design_style": request.design_style if sends_design else None,
        "ai_intervention": request.ai_intervention if sends_intervention else None,
    }


def aggregate_result(
    request: TransformationRequest,
    operation: DesignOperation,
    *,
    output_images: Sequence[str],
    persisted: Sequence[PersistedArtifact],
    elapsed: float,
    input_image: Optional[str] = None,
    queue_id: Optional[str] = None,
    snapshot: Optional[StatusSnapshot] = None,
) -> OrchestrationResult:
    """Success means the provider produced outputs; persistence only lowers the saved count."""

    outputs = list(output_images)
    saved_urls = [artifact.url for artifact in sorted(persisted, key=lambda a: a.ordinal)]
    success = bool(outputs)

    shortfall = None
    if success and len(saved_urls) < len(outputs):
        shortfall = f"Only {len(saved_urls)} of {len(outputs)} result images could be saved"

    if success:
        message = (
            f"Design completed successfully with {len(outputs)} variations. "
            f"{len(saved_urls)} images saved"
        )
    else:
        message = "Provider returned no output images"

    return OrchestrationResult(
        success=success,
        error_code=None if success else "provider_error",
        error_message=None if success else message,
        message=message,
        twin_id=request.twin_id,
        operation=operation.name,
        queue_id=queue_id,
        status=(snapshot.status if snapshot and snapshot.status else "complete") if success else None,
        input_image=input_image,
        output_images=outputs,
        saved_image_urls=saved_urls,
        **_echoed_parameters(request, operation),
        number_of_designs=len(outputs),
        requested_designs=request.no_design if operation.design_parameters else len(outputs),
        persistence_shortfall=shortfall,
        processing_time_seconds=round(elapsed, 2),
        created_at=snapshot.created_at if snapshot else None,
        started_at=snapshot.started_at if snapshot else None,
        status_code=200 if success else ProviderError.status_code,
    )


def failure_result(
    request: TransformationRequest,
    exc: DesignJobError,
    *,
    elapsed: float,
    operation: Optional[DesignOperation] = None,
) -> OrchestrationResult:
    detail = exc.detail or {}
    sends_design = operation is None or operation.design_parameters
    return OrchestrationResult(
        success=False,
        error_code=exc.code,
        error_message=exc.message,
        message=exc.message,
        twin_id=request.twin_id,
        operation=operation.name if operation else request.operation,
        queue_id=detail.get("job_id"),
        status=detail.get("status"),
        **_echoed_parameters(request, operation),
        requested_designs=request.no_design if sends_design else 0,
        processing_time_seconds=round(elapsed, 2),
        status_code=exc.status_code,
    )


class DesignJobOrchestrator:
    def __init__(
        self,
        store: ObjectStore,
        gateway: HomeDesignsGateway,
        config: PipelineConfig | None = None,
        *,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        deadline: float | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.config = config or get_settings().pipeline
        self.sleep = sleep
        self.clock = clock
        self.deadline = deadline

    def run_transformation(
        self,
        request: TransformationRequest,
        *,
        cancel: threading.Event | None = None,
    ) -> OrchestrationResult:
        started = self.clock()
        operation: Optional[DesignOperation] = None
        try:
            operation = get_operation(request.operation)
            logger.info(
                "Starting design job",
                extra={"operation": operation.name, "twin_id": request.twin_id},
            )
            return self._run(operation, request, started, cancel)
        except DesignJobError as exc:
            logger.error("Design job failed: %s", exc.message, extra={"code": exc.code})
            return failure_result(
                request, exc, elapsed=self.clock() - started, operation=operation
            )
        except Exception:
            logger.exception("Unexpected error running design job for twin %s", request.twin_id)
            error = InternalDesignError("An unexpected error occurred while generating designs")
            return failure_result(
                request, error, elapsed=self.clock() - started, operation=operation
            )

    def _fetch_inputs(
        self, operation: DesignOperation, request: TransformationRequest
    ) -> tuple[SourceAsset, Optional[SourceAsset]]:
        source = fetch_source_asset(self.store, request.twin_id, request.file_path, request.file_name)
        validate_source_asset(
            source,
            min_dimension=self.config.min_dimension,
            require_alpha=operation.requires_alpha,
        )

        mask = None
        if operation.requires_mask:
            mask = fetch_source_asset(
                self.store,
                request.twin_id,
                request.masked_file_path or request.file_path,
                request.masked_file_name or "",
            )
        return source, mask

    def _await(
        self, operation: DesignOperation, job: QueuedJob, cancel: threading.Event | None
    ) -> PollResult:
        policy = PollingPolicy.from_config(self.config)
        if self.deadline is not None:
            policy = PollingPolicy(policy.interval, policy.max_attempts, self.deadline)
        coordinator = JobPollingCoordinator(
            lambda job_id: self.gateway.check_status(operation, job_id),
            policy,
            sleep=self.sleep,
            clock=self.clock,
            cancel=cancel,
        )
        outcome = coordinator.run(job)

        if outcome.state is PollState.FAILED:
            raise ProviderError(
                f"HomeDesigns.ai processing failed: {outcome.last_status}",
                raw_body=outcome.snapshot.raw if outcome.snapshot else None,
                job_id=job.job_id,
                status=outcome.last_status,
            )
        if outcome.state is PollState.TIMED_OUT:
            raise RequestTimeout(job.job_id, outcome.last_status, outcome.attempts)
        return outcome

    def _run(
        self,
        operation: DesignOperation,
        request: TransformationRequest,
        started: float,
        cancel: threading.Event | None,
    ) -> OrchestrationResult:
        check_request(operation, request)
        source, mask = self._fetch_inputs(operation, request)
        payload = build_payload(operation, request, source, mask)

        job = self.gateway.submit(operation, payload)
        queue_id = None
        snapshot = None
        if isinstance(job, ImmediateJob):
            outputs, input_image = list(job.output_images), job.input_image
        else:
            queue_id = job.job_id
            snapshot = self._await(operation, job, cancel).snapshot
            outputs = list(snapshot.output_images) if snapshot else []
            input_image = snapshot.input_image if snapshot else None

        persisted: list[PersistedArtifact] = []
        if outputs:
            persister = ArtifactFanOutPersister(
                self.store,
                filesystem=container_name(request.twin_id),
                suffix=operation.artifact_suffix,
                max_workers=self.config.persist_workers,
                url_ttl=self.config.signed_url_ttl,
            )
            base_name = os.path.splitext(request.file_name)[0]
            persisted = persister.persist(
                outputs, request.file_path or operation.default_directory, base_name
            )
        else:
            logger.warning("No output images to persist for twin %s", request.twin_id)

        result = aggregate_result(
            request,
            operation,
            output_images=outputs,
            persisted=persisted,
            elapsed=self.clock() - started,
            input_image=input_image,
            queue_id=queue_id,
            snapshot=snapshot,
        )
        logger.info(
            "Design job finished",
            extra={
                "operation": operation.name,
                "twin_id": request.twin_id,
                "outputs": result.number_of_designs,
                "saved": len(result.saved_image_urls),
                "elapsed": result.processing_time_seconds,
            },
        )
        return result


@lru_cache(maxsize=1)
def get_orchestrator() -> DesignJobOrchestrator:
    """Process-wide orchestrator wired from environment settings."""

    settings = get_settings()
    return DesignJobOrchestrator(
        get_object_store(),
        HomeDesignsGateway(settings.homedesigns),
        settings.pipeline,
    )
