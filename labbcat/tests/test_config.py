from labbcat.config import DEFAULT_MAX_UPLOAD_BYTES, DEFAULT_TIMEOUT_SEC, ClientConfig


def test_from_env_reads_labbcat_variables(monkeypatch):
    monkeypatch.setenv("LABBCAT_URL", "https://labbcat.example/demo/")
    monkeypatch.setenv("LABBCAT_USERNAME", "alice")
    monkeypatch.setenv("LABBCAT_PASSWORD", "pw")
    monkeypatch.setenv("LABBCAT_LANGUAGE", "es")
    monkeypatch.setenv("LABBCAT_TIMEOUT_SEC", "30")
    monkeypatch.setenv("LABBCAT_MAX_UPLOAD_BYTES", "1024")
    monkeypatch.setenv("LABBCAT_LOG_LEVEL", "debug")

    cfg = ClientConfig.from_env()

    assert cfg.url == "https://labbcat.example/demo/"
    assert cfg.username == "alice"
    assert cfg.password == "pw"
    assert cfg.language == "es"
    assert cfg.timeout_sec == 30
    assert cfg.max_upload_bytes == 1024
    assert cfg.log_level == "DEBUG"


def test_from_env_defaults_and_bad_integers(monkeypatch):
    for name in ("LABBCAT_URL", "LABBCAT_USERNAME", "LABBCAT_PASSWORD", "LABBCAT_LANGUAGE",
                 "LABBCAT_LOG_LEVEL", "LABBCAT_MAX_UPLOAD_BYTES"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LABBCAT_TIMEOUT_SEC", "soon")

    cfg = ClientConfig.from_env()

    assert cfg.url is None
    assert cfg.username is None
    assert cfg.timeout_sec == DEFAULT_TIMEOUT_SEC
    assert cfg.max_upload_bytes == DEFAULT_MAX_UPLOAD_BYTES
    assert cfg.log_level == "WARNING"
