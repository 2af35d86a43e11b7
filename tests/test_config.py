from pathlib import Path

from docchat.config import DEFAULT_COMPLETION_URL, load_settings


def test_defaults(monkeypatch, tmp_path):
    for name in ("COMPLETION_URL", "CHUNK_CHARS", "RETRIEVAL_TOP_K", "LOG_LEVEL", "LOG_DIR"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings(env_file=tmp_path / "missing.env")

    assert settings.completion_url == DEFAULT_COMPLETION_URL
    assert settings.chunk_chars == 450
    assert settings.chunk_overlap == 50
    assert settings.retrieval_top_k == 5
    assert settings.history_messages == 10
    assert settings.log_dir == Path("logs")


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("COMPLETION_URL", "http://llm.internal/chat")
    monkeypatch.setenv("COMPLETION_API_KEY", "token")
    monkeypatch.setenv("CHUNK_CHARS", "300")
    monkeypatch.setenv("COMPLETION_READ_TIMEOUT", "45.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = load_settings(env_file=tmp_path / "missing.env")

    assert settings.completion_url == "http://llm.internal/chat"
    assert settings.completion_api_key == "token"
    assert settings.chunk_chars == 300
    assert settings.completion_read_timeout == 45.5
    assert settings.log_level == "DEBUG"


def test_invalid_numbers_fall_back_to_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("RETRIEVAL_TOP_K", "five")
    monkeypatch.setenv("EXTRACTION_TIMEOUT", "soon")

    settings = load_settings(env_file=tmp_path / "missing.env")

    assert settings.retrieval_top_k == 5
    assert settings.extraction_timeout == 60.0
