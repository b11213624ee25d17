from __future__ import annotations

from pathlib import Path

import pytest

from dfreco.harness.config import HarnessConfig, NoContextOverride, PinnedContext
from dfreco.harness.errors import ConfigurationError


def test_defaults():
    config = HarnessConfig()

    assert config.project_id == "df-reco-testing"
    assert config.language_code == "de-DE"
    assert config.audio_encoding == "AUDIO_ENCODING_FLAC"
    assert config.sample_rate_hertz == 44100
    assert config.concurrent is True
    assert isinstance(config.context_override, NoContextOverride)
    assert not config.context_override


def test_from_env_reads_environment(tmp_path):
    env = {
        "DF_RECO_TESTING_PATH": str(tmp_path / "audio"),
        "DF_RECO_PROJECT_ID": "my-agent",
        "DF_RECO_LANGUAGE_CODE": "en-US",
        "DF_RECO_FIXED_CONTEXT": "Greeting",
        "DF_RECO_SAMPLE_RATE": "16000",
        "GOOGLE_APPLICATION_CREDENTIALS": str(tmp_path / "key.json"),
    }

    config = HarnessConfig.from_env(env, dotenv_path=tmp_path / "missing.env")

    assert config.testing_path == tmp_path / "audio"
    assert config.project_id == "my-agent"
    assert config.language_code == "en-US"
    assert config.sample_rate_hertz == 16000
    assert config.credentials == tmp_path / "key.json"
    assert config.context_override == PinnedContext("Greeting", 5)


def test_from_env_dotenv_is_overridden_by_environment_and_kwargs(tmp_path):
    dotenv = tmp_path / ".env"
    dotenv.write_text(
        "DF_RECO_PROJECT_ID=from-dotenv\nDF_RECO_LANGUAGE_CODE=fr-FR\nDF_RECO_LOG_DIR=out\n",
        encoding="utf-8",
    )

    config = HarnessConfig.from_env(
        {"DF_RECO_LANGUAGE_CODE": "it-IT"},
        dotenv_path=dotenv,
        project_id=None,
        concurrent=False,
    )

    assert config.project_id == "from-dotenv"
    assert config.language_code == "it-IT"
    assert config.log_dir == Path("out")
    assert config.concurrent is False


def test_blank_fixed_context_means_no_override():
    config = HarnessConfig(fixed_context="   ")

    assert config.fixed_context is None
    assert isinstance(config.context_override, NoContextOverride)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"project_id": ""},
        {"language_code": " "},
        {"sample_rate_hertz": 0},
        {"sample_rate_hertz": "fast"},
        {"context_lifespan": -1},
        {"audio_encoding": "mp3"},
        {"initial_prefix": ""},
    ],
)
def test_invalid_values_raise_configuration_error(kwargs):
    with pytest.raises(ConfigurationError):
        HarnessConfig(**kwargs)


def test_extension_gets_leading_dot_and_encoding_is_upper_cased():
    config = HarnessConfig(audio_extension="wav", audio_encoding="audio_encoding_linear_16")

    assert config.audio_extension == ".wav"
    assert config.audio_encoding == "AUDIO_ENCODING_LINEAR_16"


def test_require_testing_path():
    with pytest.raises(ConfigurationError):
        HarnessConfig().require_testing_path()
    assert HarnessConfig(testing_path="x").require_testing_path() == Path("x")


def test_model_dump_is_json_friendly(tmp_path):
    dumped = HarnessConfig(testing_path=tmp_path).model_dump()

    assert dumped["testing_path"] == tmp_path.as_posix()
    assert dumped["credentials"] is None
