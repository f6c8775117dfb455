from __future__ import annotations

import asyncio
import logging
import threading

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from twin_design.config import get_settings
from twin_design.errors import InvalidParameter
from twin_design.schemas import TransformationRequest
from twin_design.services.design_operations import get_operation
from twin_design.services.orchestrator import DesignJobOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["designs"])

DISCONNECT_CHECK_INTERVAL = 1.0


def orchestrator_dependency() -> DesignJobOrchestrator:
    settings = get_settings()
    if not settings.homedesigns.is_configured:
        raise HTTPException(status_code=503, detail="HomeDesigns.ai token is not configured")
    if not settings.storage.is_configured:
        raise HTTPException(status_code=503, detail="Object storage is not configured")
    return get_orchestrator()


async def watch_disconnect(
    request: Request,
    cancel: threading.Event,
    interval: float = DISCONNECT_CHECK_INTERVAL,
) -> None:
    """Set ``cancel`` once the client goes away so polling stops early."""

    while not cancel.is_set():
        if await request.is_disconnected():
            logger.warning("Client disconnected; cancelling design job")
            cancel.set()
            return
        await asyncio.sleep(interval)


@router.post("/{route}/{twin_id}")
async def run_design(
    route: str,
    twin_id: str,
    req: TransformationRequest,
    http_request: Request,
    orchestrator: DesignJobOrchestrator = Depends(orchestrator_dependency),
) -> JSONResponse:
    try:
        operation = get_operation(route)
    except InvalidParameter as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc

    if not twin_id.strip():
        raise HTTPException(status_code=400, detail="twin_id is required")

    request = req.model_copy(update={"twin_id": twin_id, "operation": operation.name})
    logger.info(
        "design request received",
        extra={"route": route, "twin_id": twin_id, "file_name": request.file_name},
    )

    cancel = threading.Event()
    watcher = asyncio.create_task(watch_disconnect(http_request, cancel))
    try:
        result = await run_in_threadpool(orchestrator.run_transformation, request, cancel=cancel)
    finally:
        watcher.cancel()
    return JSONResponse(result.to_payload(), status_code=result.status_code)
