from config import ControllerConfig, load_config

_VARS = (
    "CTX_TIMEOUT_S",
    "BUILD_MAX_CONCURRENT_RECONCILES",
    "BUILDRUN_MAX_CONCURRENT_RECONCILES",
    "LOG_LEVEL",
    "SERVICE_NAME",
)


def _clear(monkeypatch):
    for v in _VARS:
        monkeypatch.delenv(v, raising=False)


def test_defaults(monkeypatch):
    _clear(monkeypatch)
    assert load_config() == ControllerConfig()
    assert load_config().ctx_timeout_s == 5.0


def test_overrides(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("CTX_TIMEOUT_S", "2.5")
    monkeypatch.setenv("BUILD_MAX_CONCURRENT_RECONCILES", "3")
    monkeypatch.setenv("BUILDRUN_MAX_CONCURRENT_RECONCILES", "8")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("SERVICE_NAME", "cleanup")

    cfg = load_config()
    assert cfg.ctx_timeout_s == 2.5
    assert cfg.build_max_concurrent_reconciles == 3
    assert cfg.buildrun_max_concurrent_reconciles == 8
    assert cfg.log_level == "DEBUG"
    assert cfg.service_name == "cleanup"


def test_invalid_numbers_fall_back(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("CTX_TIMEOUT_S", "fast")
    monkeypatch.setenv("BUILDRUN_MAX_CONCURRENT_RECONCILES", "many")

    cfg = load_config()
    assert cfg.ctx_timeout_s == 5.0
    assert cfg.buildrun_max_concurrent_reconciles == 0
