"""Adapter between harness samples and the Dialogflow ``DetectIntent`` API.

The adapter is a pure request/response translator: it reads a sample, sends
exactly one request and normalises the response into a
:class:`~dfreco.harness.models.DetectionResult`.  Failures are raised to the
caller, which decides where they are logged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import proto
from google.api_core.exceptions import GoogleAPIError
from google.cloud import dialogflow_v2 as dialogflow
from google.protobuf import json_format, struct_pb2

from .catalog import AudioSample
from .config import HarnessConfig
from .contexts import ContextDirective, context_id, pin_context
from .errors import DecodeError, coerce_detection_error
from .models import DetectionResult, OutputContextSummary
from .session import SessionSpec

__all__ = [
    "DetectionClient",
    "DetectionRequest",
    "decode_parameters",
    "normalize_response",
    "session_path",
]

logger = logging.getLogger(__name__)


class SessionsClientLike(Protocol):
    async def detect_intent(self, request: Any = None, **kwargs: Any) -> Any: ...


def session_path(project_id: str, session_id: str) -> str:
    return f"projects/{project_id}/agent/sessions/{session_id}"


@dataclass(slots=True, frozen=True)
class DetectionRequest:
    """Everything needed for one ``DetectIntent`` call; never reused."""

    session: str
    audio_bytes: bytes
    language_code: str
    encoding: str
    sample_rate_hertz: int
    directive: ContextDirective | None = None

    def to_proto(self) -> dialogflow.DetectIntentRequest:
        audio_config = dialogflow.InputAudioConfig(
            audio_encoding=dialogflow.AudioEncoding[self.encoding],
            sample_rate_hertz=self.sample_rate_hertz,
            language_code=self.language_code,
        )
        request = dialogflow.DetectIntentRequest(
            session=self.session,
            query_input=dialogflow.QueryInput(audio_config=audio_config),
            input_audio=self.audio_bytes,
        )
        if self.directive is not None:
            request.query_params = dialogflow.QueryParameters(
                reset_contexts=self.directive.reset_contexts,
                contexts=[
                    dialogflow.Context(name=ref.name, lifespan_count=ref.lifespan_count)
                    for ref in self.directive.contexts
                ],
            )
        return request


def _plain(value: Any, *, where: str) -> Any:
    """Recursively convert marshalled protobuf containers into plain Python."""

    if isinstance(value, (struct_pb2.Struct, struct_pb2.ListValue, struct_pb2.Value)):
        return json_format.MessageToDict(value)
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _plain(item, where=f"{where}.{key}") for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return [_plain(item, where=f"{where}[{index}]") for index, item in enumerate(value)]
    raise DecodeError(
        f"Unsupported value of type {type(value).__name__} at {where}",
        context={"path": where},
    )


def decode_parameters(payload: Any, *, sample: str | None = None) -> dict[str, Any]:
    """Decode a structured parameter payload into a plain ``dict``.

    ``payload`` may be a protobuf ``Struct``, an already marshalled mapping or
    ``None`` (no parameters).  Nested mappings and lists are preserved; numbers
    follow protobuf semantics and come back as ``float``.
    """

    if payload is None:
        return {}
    try:
        if isinstance(payload, struct_pb2.Struct):
            return json_format.MessageToDict(payload)
        if isinstance(payload, Mapping):
            return _plain(payload, where="parameters")
    except DecodeError as exc:
        if sample is not None:
            exc.sample = sample
        raise
    except (json_format.Error, TypeError, ValueError) as exc:
        raise DecodeError(
            f"Malformed parameter payload: {exc}", sample=sample, cause=exc
        ) from exc
    raise DecodeError(
        f"Parameter payload must be a mapping, got {type(payload).__name__}",
        sample=sample,
    )


def _raw_struct(message: Any, field_name: str) -> Any:
    # proto-plus marshals Struct fields on access; go to the raw protobuf instead.
    if isinstance(message, proto.Message):
        raw = type(message).pb(message)
        return getattr(raw, field_name) if raw.HasField(field_name) else None
    return getattr(message, field_name, None)


def normalize_response(
    response: Any,
    *,
    sample: AudioSample,
    session: SessionSpec,
) -> DetectionResult:
    """Translate a ``DetectIntentResponse`` into a :class:`DetectionResult`."""

    result = response.query_result
    intent = getattr(result, "intent", None)
    if intent:
        intent_name = intent.display_name or intent.name or None
        is_fallback = bool(intent.is_fallback)
        confidence = float(result.intent_detection_confidence)
    else:
        intent_name, is_fallback, confidence = None, False, None

    contexts = [
        OutputContextSummary(
            context_id=context_id(ctx.name),
            lifespan_count=int(ctx.lifespan_count or 0),
            parameters=decode_parameters(_raw_struct(ctx, "parameters"), sample=sample.identifier),
        )
        for ctx in (getattr(result, "output_contexts", None) or ())
    ]

    return DetectionResult(
        sample_identifier=sample.identifier,
        session_id=session.session_id,
        query_text=result.query_text or "",
        fulfillment_text=result.fulfillment_text or "",
        intent_name=intent_name,
        intent_is_fallback=is_fallback,
        intent_confidence=confidence,
        parameters=decode_parameters(_raw_struct(result, "parameters"), sample=sample.identifier),
        output_contexts=contexts,
    )


class DetectionClient:
    """Send one sample per call to the detection service."""

    def __init__(self, config: HarnessConfig, client: SessionsClientLike | None = None):
        self.config = config
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> DetectionClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> SessionsClientLike:
        if self._client is None:
            if self.config.credentials is not None:
                self._client = dialogflow.SessionsAsyncClient.from_service_account_file(
                    str(self.config.credentials)
                )
            else:
                self._client = dialogflow.SessionsAsyncClient()
            logger.debug("Created Dialogflow sessions client for %s", self.config.project_id)
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            transport = getattr(self._client, "transport", None)
            if transport is not None:
                await transport.close()
            self._client = None

    def build_request(
        self, session: SessionSpec, sample: AudioSample, audio: bytes
    ) -> DetectionRequest:
        directive = pin_context(session.context_override, self.config.project_id, session.session_id)
        return DetectionRequest(
            session=session_path(self.config.project_id, session.session_id),
            audio_bytes=audio,
            language_code=self.config.language_code,
            encoding=self.config.audio_encoding,
            sample_rate_hertz=self.config.sample_rate_hertz,
            directive=directive,
        )

    async def detect(self, session: SessionSpec, sample: AudioSample) -> DetectionResult:
        """Run one detection call for ``sample`` inside ``session``.

        Raises:
            DetectionCallError: the audio could not be read or the call failed.
            DecodeError: the response carried a malformed parameter payload.
        """

        try:
            audio = await asyncio.to_thread(sample.path.read_bytes)
        except OSError as exc:
            raise coerce_detection_error(
                sample.identifier,
                f"Cannot read audio file {sample.path}",
                context={"path": sample.path.as_posix()},
                cause=exc,
            ) from exc

        request = self.build_request(session, sample, audio)
        client = self._ensure_client()
        try:
            response = await client.detect_intent(request=request.to_proto())
        except (GoogleAPIError, OSError, TimeoutError) as exc:
            raise coerce_detection_error(
                sample.identifier,
                f"Detection call failed: {exc}",
                context={"session": request.session},
                cause=exc,
            ) from exc

        return normalize_response(response, sample=sample, session=session)
