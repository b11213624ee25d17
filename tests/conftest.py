from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import pytest
from google.cloud import dialogflow_v2 as dialogflow

from dfreco.harness.config import HarnessConfig


def make_response(
    query: str,
    *,
    intent: str | None = None,
    fallback: bool = False,
    confidence: float = 0.75,
    fulfillment: str = "",
    parameters: Mapping[str, Any] | None = None,
    output_contexts: list[tuple[str, int, Mapping[str, Any] | None]] | None = None,
) -> dialogflow.DetectIntentResponse:
    result = dialogflow.QueryResult(query_text=query, fulfillment_text=fulfillment)
    if intent is not None:
        result.intent = dialogflow.Intent(display_name=intent, is_fallback=fallback)
        result.intent_detection_confidence = confidence
    raw = type(result).pb(result)
    if parameters is not None:
        raw.parameters.update(dict(parameters))
    for name, lifespan, ctx_params in output_contexts or ():
        ctx = raw.output_contexts.add(name=name, lifespan_count=lifespan)
        if ctx_params:
            ctx.parameters.update(dict(ctx_params))
    return dialogflow.DetectIntentResponse(query_result=result)


class FakeSessionsClient:
    """Stands in for ``SessionsAsyncClient``; samples are keyed by their audio bytes.

    Test audio files contain their own filename, so the request's
    ``input_audio`` tells the fake which sample it is answering.
    """

    def __init__(
        self,
        responses: Mapping[str, Any] | None = None,
        *,
        delays: Mapping[str, float] | None = None,
        failures: Mapping[str, BaseException] | None = None,
    ):
        self.responses = dict(responses or {})
        self.delays = dict(delays or {})
        self.failures = dict(failures or {})
        self.requests: list[dialogflow.DetectIntentRequest] = []
        self.events: list[str] = []

    async def detect_intent(self, request=None, **kwargs):
        name = bytes(request.input_audio).decode("utf-8")
        self.requests.append(request)
        self.events.append(f"start:{name}")
        await asyncio.sleep(self.delays.get(name, 0.0))
        self.events.append(f"end:{name}")
        if name in self.failures:
            raise self.failures[name]
        return self.responses.get(name) or make_response(f"query for {name}", intent="Echo")

    def started(self) -> list[str]:
        return [event.split(":", 1)[1] for event in self.events if event.startswith("start:")]

    def finished(self) -> list[str]:
        return [event.split(":", 1)[1] for event in self.events if event.startswith("end:")]


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    @property
    def messages(self) -> list[str]:
        return [record.getMessage() for record in self.records]


@pytest.fixture
def sample_dir(tmp_path):
    def _make(*names: str):
        root = tmp_path / "samples"
        root.mkdir(exist_ok=True)
        for name in names:
            (root / name).write_bytes(name.encode("utf-8"))
        return root

    return _make


@pytest.fixture
def sink(request):
    logger = logging.getLogger(f"tests.sink.{request.node.name}")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = ListHandler()
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


@pytest.fixture
def config(tmp_path) -> HarnessConfig:
    return HarnessConfig(project_id="df-reco-testing", language_code="de-DE", log_dir=tmp_path / "logs")


@pytest.fixture
def fake_client():
    return FakeSessionsClient


@pytest.fixture
def response():
    return make_response
