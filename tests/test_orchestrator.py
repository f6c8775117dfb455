import json
import threading

import pytest

from twin_design.config import HomeDesignsConfig, PipelineConfig
from twin_design.errors import ProviderError
from twin_design.models import ImmediateJob, QueuedJob, StatusSnapshot
from twin_design.schemas import TransformationRequest
from twin_design.services import artifacts
from twin_design.services.homedesigns import HomeDesignsGateway, classify_submission, parse_status
from twin_design.services.orchestrator import DesignJobOrchestrator, aggregate_result
from twin_design.services.design_operations import BEAUTIFUL_REDESIGN, PERFECT_REDESIGN

from conftest import FakeStore, make_png

SOURCE_KEY = "twin-7/rooms/living.png"


class StubGateway:
    def __init__(self, job=None, statuses=(), error=None):
        self.job = job
        self.statuses = list(statuses)
        self.error = error
        self.submitted = []
        self.status_calls = []

    def submit(self, operation, payload):
        self.submitted.append((operation.name, payload))
        if self.error is not None:
            raise self.error
        return self.job

    def check_status(self, operation, job_id):
        self.status_calls.append(job_id)
        index = min(len(self.status_calls), len(self.statuses)) - 1
        return self.statuses[index]


class FakeResponse:
    def __init__(self, content):
        self.content = content

    def raise_for_status(self):
        return None


@pytest.fixture
def downloads(monkeypatch):
    fetched: list[str] = []

    def fake_get(url, **kwargs):
        fetched.append(url)
        return FakeResponse(b"result:" + url.encode())

    monkeypatch.setattr(artifacts.requests, "get", fake_get)
    return fetched


def _store(width=800, height=600) -> FakeStore:
    return FakeStore({SOURCE_KEY: make_png(width, height)})


def _request(**overrides) -> TransformationRequest:
    data = {
        "twinId": "Twin-7",
        "operation": "perfect_redesign",
        "filePath": "rooms",
        "fileName": "living.png",
        "roomType": "Living Room",
        "noDesign": 2,
    }
    data.update(overrides)
    return TransformationRequest(**data)


def _orchestrator(store, gateway, **kwargs) -> DesignJobOrchestrator:
    config = kwargs.pop("config", PipelineConfig(poll_interval=0.0, poll_max_attempts=60))
    return DesignJobOrchestrator(store, gateway, config, sleep=lambda _s: None, **kwargs)


def test_immediate_response_persists_every_output(downloads) -> None:
    outputs = ("https://cdn/1.png", "https://cdn/2.png")
    store = _store()
    gateway = StubGateway(ImmediateJob(output_images=outputs, input_image="https://cdn/in.png"))

    result = _orchestrator(store, gateway).run_transformation(_request(operation="decor_design"))

    assert result.success is True
    assert result.output_images == list(outputs)
    assert len(result.saved_image_urls) == 2
    assert result.persistence_shortfall is None
    assert result.number_of_designs == 2
    assert result.status_code == 200
    assert downloads == list(outputs)
    assert all(key.startswith("twin-7/rooms/living_decor_") for key in store.uploads)
    assert gateway.status_calls == []


def test_empty_immediate_outputs_halt_before_persistence(downloads) -> None:
    store = _store()
    gateway = StubGateway(error=ProviderError("Invalid response from HomeDesigns.ai: No output images received"))

    result = _orchestrator(store, gateway).run_transformation(_request(operation="decor_design"))

    assert result.success is False
    assert result.error_code == "provider_error"
    assert "No output images received" in result.error_message
    assert result.status_code == 500
    assert store.uploads == []
    assert downloads == []


def test_queued_job_failing_on_third_attempt(downloads) -> None:
    store = _store()
    processing = StatusSnapshot(status="PROCESSING")
    gateway = StubGateway(
        QueuedJob("q-42"),
        statuses=[processing, processing, StatusSnapshot(status="failed")],
    )

    result = _orchestrator(store, gateway).run_transformation(_request())

    assert result.success is False
    assert result.error_code == "provider_error"
    assert result.status == "failed"
    assert result.queue_id == "q-42"
    assert len(gateway.status_calls) == 3
    assert store.uploads == []


def test_queued_job_completes_and_echoes_metadata(downloads) -> None:
    done = StatusSnapshot(
        status="SUCCESS",
        input_image="https://cdn/in.png",
        output_images=("https://cdn/a.png",),
        created_at="2024-05-01T10:00:00Z",
        started_at="2024-05-01T10:00:03Z",
    )
    gateway = StubGateway(QueuedJob("q-1"), statuses=[StatusSnapshot(status="PROCESSING"), done])

    result = _orchestrator(_store(), gateway).run_transformation(_request())
    payload = result.to_payload()

    assert result.success is True
    assert payload["queueId"] == "q-1"
    assert payload["inputImage"] == "https://cdn/in.png"
    assert payload["createdAt"] == "2024-05-01T10:00:00Z"
    assert payload["requestedDesigns"] == 2
    assert payload["designType"] == "Interior"
    assert "statusCode" not in payload


def test_queued_job_timeout_reports_attempts(downloads) -> None:
    gateway = StubGateway(QueuedJob("q-2"), statuses=[StatusSnapshot(status="PROCESSING")])
    config = PipelineConfig(poll_interval=0.0, poll_max_attempts=4)

    result = _orchestrator(_store(), gateway, config=config).run_transformation(_request())

    assert result.success is False
    assert result.error_code == "request_timeout"
    assert result.status_code == 408
    assert result.status == "PROCESSING"
    assert len(gateway.status_calls) == 4


def test_missing_room_type_makes_no_network_calls(monkeypatch, downloads) -> None:
    posts: list = []

    class CountingClient:
        def __init__(self, *args, **kwargs):
            pass

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return None

        def post(self, *args, **kwargs):
            posts.append(args)
            raise AssertionError("provider must not be called")

    monkeypatch.setattr("twin_design.services.homedesigns.httpx.Client", CountingClient)
    store = _store()
    gateway = HomeDesignsGateway(HomeDesignsConfig(token="secret"))

    result = _orchestrator(store, gateway).run_transformation(_request(roomType=None))

    assert result.success is False
    assert result.error_code == "missing_required_field"
    assert result.status_code == 400
    assert posts == []
    assert store.downloads == []
    assert downloads == []


def test_small_source_image_is_rejected(downloads) -> None:
    gateway = StubGateway(ImmediateJob(output_images=("https://cdn/1.png",)))

    result = _orchestrator(_store(300, 900), gateway).run_transformation(_request(operation="decor_design"))

    assert result.success is False
    assert result.error_code == "asset_too_small"
    assert "(300x900)" in result.error_message
    assert gateway.submitted == []


def test_missing_source_image_is_not_found() -> None:
    gateway = StubGateway()

    result = _orchestrator(FakeStore(), gateway).run_transformation(_request())

    assert result.error_code == "asset_not_found"
    assert result.status_code == 404


def test_partial_persistence_is_still_success(monkeypatch) -> None:
    def flaky_get(url, **kwargs):
        if url.endswith("2.png"):
            raise artifacts.requests.ConnectionError("boom")
        return FakeResponse(b"ok")

    monkeypatch.setattr(artifacts.requests, "get", flaky_get)
    outputs = ("https://cdn/1.png", "https://cdn/2.png", "https://cdn/3.png")
    gateway = StubGateway(ImmediateJob(output_images=outputs))

    result = _orchestrator(_store(), gateway).run_transformation(_request(operation="decor_design"))

    assert result.success is True
    assert len(result.output_images) == 3
    assert len(result.saved_image_urls) == 2
    assert result.persistence_shortfall == "Only 2 of 3 result images could be saved"


def test_cancelled_polling_returns_structured_result() -> None:
    cancel = threading.Event()
    cancel.set()
    gateway = StubGateway(QueuedJob("q-3"), statuses=[StatusSnapshot(status="PROCESSING")])
    orchestrator = DesignJobOrchestrator(_store(), gateway, PipelineConfig(poll_interval=5.0))

    result = orchestrator.run_transformation(_request(), cancel=cancel)

    assert result.error_code == "cancelled"
    assert gateway.status_calls == []


def test_unexpected_errors_become_internal_error(caplog) -> None:
    gateway = StubGateway(error=KeyError("surprise"))

    result = _orchestrator(_store(), gateway).run_transformation(_request())

    assert result.success is False
    assert result.error_code == "internal_error"
    assert result.status_code == 500
    assert "Unexpected error" in caplog.text


def test_unknown_operation_is_invalid_parameter() -> None:
    result = _orchestrator(_store(), StubGateway()).run_transformation(_request(operation="repaint"))

    assert result.error_code == "invalid_parameter"
    assert result.operation == "repaint"


def test_aggregate_without_outputs_is_not_success() -> None:
    result = aggregate_result(_request(), PERFECT_REDESIGN, output_images=[], persisted=[], elapsed=1.234)

    assert result.success is False
    assert result.processing_time_seconds == 1.23


def test_numeric_status_timestamps_keep_the_job_successful(downloads) -> None:
    done = parse_status(
        json.dumps(
            {
                "status": "SUCCESS",
                "created_at": 1714557600,
                "input_image": "https://cdn/in.png",
                "output_images": ["https://cdn/a.png"],
            }
        )
    )
    store = _store()
    gateway = StubGateway(QueuedJob("q-5"), statuses=[done])

    result = _orchestrator(store, gateway).run_transformation(_request())

    assert result.success is True
    assert result.created_at == "1714557600"
    assert result.output_images == ["https://cdn/a.png"]
    assert len(result.saved_image_urls) == len(store.uploads) == 1


def test_structured_original_image_keeps_the_job_successful(downloads) -> None:
    job = classify_submission(
        BEAUTIFUL_REDESIGN,
        json.dumps({"success": {"original_image": {"url": "x"}, "generated_image": ["https://cdn/b.png"]}}),
    )
    gateway = StubGateway(job)

    result = _orchestrator(_store(), gateway).run_transformation(_request(operation="beautiful_redesign"))

    assert result.success is True
    assert result.input_image is None
    assert result.output_images == ["https://cdn/b.png"]


def test_failure_echoes_only_parameters_the_operation_sends() -> None:
    removal = _orchestrator(_store(), StubGateway()).run_transformation(
        _request(operation="furniture_removal")
    )
    decor = _orchestrator(FakeStore(), StubGateway()).run_transformation(_request(operation="decor_design"))

    assert removal.error_code == "missing_required_field"
    assert (removal.design_type, removal.design_style, removal.ai_intervention) == (None, None, None)
    assert removal.requested_designs == 0
    assert decor.error_code == "asset_not_found"
    assert decor.design_type == "Interior"
    assert decor.ai_intervention is None
    assert decor.requested_designs == 2


def test_success_and_failure_echo_the_same_parameters(downloads) -> None:
    gateway = StubGateway(ImmediateJob(output_images=("https://cdn/1.png",)))
    ok = _orchestrator(_store(), gateway).run_transformation(_request(operation="decor_design"))
    failed = _orchestrator(FakeStore(), gateway).run_transformation(_request(operation="decor_design"))

    def echoed(result):
        return result.design_type, result.design_style, result.ai_intervention

    assert echoed(ok) == echoed(failed) == ("Interior", "Modern", None)
