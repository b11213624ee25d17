from __future__ import annotations

import pytest
from google.cloud import dialogflow_v2 as dialogflow

from dfreco.harness.catalog import AudioSample
from dfreco.harness.config import HarnessConfig, NoContextOverride, PinnedContext
from dfreco.harness.contexts import context_id, context_path, pin_context
from dfreco.harness.detection import DetectionClient
from dfreco.harness.errors import ConfigurationError
from dfreco.harness.session import SessionSpec


def test_context_path_is_case_folded():
    assert (
        context_path("proj", "sess-1", "GREETING")
        == "projects/proj/agent/sessions/sess-1/contexts/greeting"
    )


def test_context_path_folds_non_ascii_names():
    assert context_path("p", "s", "STRASSE") == context_path("p", "s", "Straße")
    assert context_path("p", "s", " Straße ").endswith("/contexts/strasse")


def test_context_id_extracts_last_segment():
    assert context_id("projects/p/agent/sessions/s/contexts/await-name") == "await-name"
    assert context_id("plain") == "plain"


def test_no_override_produces_no_directive():
    assert pin_context(NoContextOverride(), "proj", "s") is None
    assert pin_context(None, "proj", "s") is None


def test_pinned_context_directive_resets_and_pins_one_context():
    directive = pin_context(PinnedContext("Greeting", lifespan=3), "proj", "s-9")

    assert directive is not None
    assert directive.reset_contexts is True
    assert len(directive.contexts) == 1
    ref = directive.contexts[0]
    assert ref.name == "projects/proj/agent/sessions/s-9/contexts/greeting"
    assert ref.lifespan_count == 3


def test_pinned_context_rejects_blank_names():
    with pytest.raises(ConfigurationError):
        PinnedContext("  ")
    with pytest.raises(ConfigurationError):
        PinnedContext("x", lifespan=0)


def test_fixed_context_is_attached_to_every_request(tmp_path):
    config = HarnessConfig(project_id="df-reco-testing", fixed_context="GREETING")
    client = DetectionClient(config, client=object())
    sessions = [SessionSpec("s-1", config.context_override), SessionSpec("s-2", config.context_override)]

    for spec in sessions:
        request = client.build_request(spec, AudioSample("a.flac", tmp_path), b"audio").to_proto()

        assert request.query_params.reset_contexts is True
        assert [ctx.name for ctx in request.query_params.contexts] == [
            f"projects/df-reco-testing/agent/sessions/{spec.session_id}/contexts/greeting"
        ]
        assert request.query_params.contexts[0].lifespan_count == 5


def test_requests_without_override_have_no_query_params(tmp_path):
    config = HarnessConfig()
    client = DetectionClient(config, client=object())
    spec = SessionSpec("s-1")

    request = client.build_request(spec, AudioSample("a.flac", tmp_path), b"audio").to_proto()

    assert request.query_params.reset_contexts is False
    assert len(request.query_params.contexts) == 0
    assert request.query_input.audio_config.audio_encoding == dialogflow.AudioEncoding.AUDIO_ENCODING_FLAC
    assert request.query_input.audio_config.sample_rate_hertz == 44100
    assert request.query_input.audio_config.language_code == "de-DE"
    assert request.session == "projects/df-reco-testing/agent/sessions/s-1"
    assert request.input_audio == b"audio"
