"""Tests for configuration loading."""

import pytest

from kbn.config import Settings, load_config
from kbn.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for var in ("ANTHROPIC_API_KEY", "KBN_DATA_PATH", "KBN_CHROMA_HOST"):
        monkeypatch.delenv(var, raising=False)
    # keep _find_config_file away from the developer's own config
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


def test_defaults():
    settings = load_config()
    assert settings.chunking.chunk_size == 1000
    assert settings.chunking.chunk_overlap == 200
    assert settings.retrieval.top_k == 15
    assert settings.retrieval.use_multi_query is True
    assert settings.llm.max_tokens == 4000
    assert settings.llm.api_key is None
    assert settings.vector_store.host is None


def test_file_is_merged_over_defaults(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text(
        "data_path: ./notes\n"
        "chunking:\n"
        "  chunk_size: 500\n"
        "reranker:\n"
        "  enabled: false\n"
    )

    settings = load_config(path)

    assert settings.chunking.chunk_size == 500
    assert settings.chunking.chunk_overlap == 200
    assert settings.reranker.enabled is False
    assert settings.data_path == str((tmp_path / "notes").resolve())


def test_config_yaml_in_cwd_is_found(tmp_path):
    (tmp_path / "config.yaml").write_text("retrieval:\n  top_k: 7\n")
    assert load_config().retrieval.top_k == 7


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.setenv("KBN_DATA_PATH", str(tmp_path / "elsewhere"))
    monkeypatch.setenv("KBN_CHROMA_HOST", "chroma.local")

    settings = load_config()

    assert settings.llm.api_key == "sk-test"
    assert settings.data_path == str((tmp_path / "elsewhere").resolve())
    assert settings.vector_store.host == "chroma.local"


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize("body, message", [
    ("chunking:\n  chunk_size: 100\n  chunk_overlap: 100\n", "chunk_overlap"),
    ("chunking:\n  batch_size: 0\n", "batch_size"),
    ("llm:\n  temperature: 1.5\n", "temperature"),
    ("retrieval:\n  top_k: 0\n", "top_k"),
    ("vector_store:\n  timeout: 0\n", "timeout"),
    ("chunking:\n  chunk_sise: 10\n", "chunking"),
    ("extras: true\n", "Unknown config key"),
    ("- just\n- a list\n", "mapping"),
])
def test_invalid_config(tmp_path, body, message):
    path = tmp_path / "bad.yaml"
    path.write_text(body)
    with pytest.raises(ConfigurationError, match=message):
        load_config(path)


def test_from_dict_partial_sections():
    settings = Settings.from_dict({"llm": {"model": "claude-x"}, "logging": None})
    assert settings.llm.model == "claude-x"
    assert settings.logging.level == "WARNING"
