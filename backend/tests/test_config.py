import logging

import pytest

from config import (
    DEFAULT_EXCLUDED_IDENTIFIERS,
    CompilerSettings,
    configure_logger,
    get_settings,
    reset_settings,
)

ENV_NAMES = (
    "HOST_NAMESPACE",
    "GAMMA_PRIMITIVE",
    "SANITIZE_PREFIX",
    "EXCLUDED_IDENTIFIERS",
    "MAX_TREE_DEPTH",
    "MAX_SOURCE_LENGTH",
    "STRICT_GAMMA",
    "DUMP_DIR",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield monkeypatch
    reset_settings()


class TestCompilerSettings:

    def test_defaults(self, clean_env):
        settings = CompilerSettings.from_env()
        assert settings == CompilerSettings()
        assert settings.host_namespace == "UltraDark"
        assert settings.gamma_primitive == "chargeGamma"
        assert settings.sanitize_prefix == "sanitized_"
        assert settings.excluded_identifiers == frozenset({"constructor", "push"})
        assert settings.max_tree_depth == 256
        assert settings.strict_gamma is False
        assert settings.dump_dir is None

    def test_from_env(self, clean_env):
        clean_env.setenv("HOST_NAMESPACE", "Host")
        clean_env.setenv("MAX_TREE_DEPTH", "64")
        clean_env.setenv("STRICT_GAMMA", "true")
        clean_env.setenv("DUMP_DIR", "/tmp/dumps")
        settings = CompilerSettings.from_env()
        assert settings.host_namespace == "Host"
        assert settings.max_tree_depth == 64
        assert settings.strict_gamma is True
        assert settings.dump_dir == "/tmp/dumps"

    def test_excluded_identifiers_extend_defaults(self, clean_env):
        clean_env.setenv("EXCLUDED_IDENTIFIERS", "length, owner,,")
        excluded = CompilerSettings.from_env().excluded_identifiers
        assert excluded == DEFAULT_EXCLUDED_IDENTIFIERS | {"length", "owner"}

    def test_bad_integer(self, clean_env):
        clean_env.setenv("MAX_SOURCE_LENGTH", "lots")
        with pytest.raises(RuntimeError, match="MAX_SOURCE_LENGTH"):
            CompilerSettings.from_env()

    def test_settings_are_frozen(self):
        with pytest.raises(AttributeError):
            CompilerSettings().host_namespace = "Other"  # type: ignore[misc]

    def test_get_settings_is_cached(self, clean_env):
        first = get_settings()
        clean_env.setenv("HOST_NAMESPACE", "Changed")
        assert get_settings() is first
        reset_settings()
        assert get_settings().host_namespace == "Changed"


def test_configure_logger_attaches_one_handler(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    logger = configure_logger("test_config.logger")
    configure_logger("test_config.logger")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
