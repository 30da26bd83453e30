"""
Unit tests for configuration loading.
"""

import pytest

from schemagraph.config import (
    AppConfig,
    CompilerConfig,
    GraphConfig,
    HttpConfig,
    TupleItemsPolicy,
)
from schemagraph.graph.definitions import DefinitionRemovalPolicy


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "SCHEMAGRAPH_DEFINITION_REMOVAL",
        "SCHEMAGRAPH_STRICT_MATCH_ELSE",
        "SCHEMAGRAPH_EMIT_UNREFERENCED",
        "SCHEMAGRAPH_TUPLE_ITEMS",
        "SCHEMAGRAPH_HOST",
        "SCHEMAGRAPH_PORT",
        "SCHEMAGRAPH_CORS_ORIGINS",
        "SCHEMAGRAPH_MAX_DOCUMENT_BYTES",
        "SCHEMAGRAPH_LOG_LEVEL",
        "SCHEMAGRAPH_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Tests for default values."""

    def test_from_env_defaults(self):
        config = AppConfig.from_env()
        assert config.graph.definition_removal_policy is DefinitionRemovalPolicy.ALLOW
        assert config.compiler.strict_match_else is True
        assert config.compiler.emit_unreferenced_definitions is True
        assert config.compiler.tuple_items is TupleItemsPolicy.REJECT
        assert config.http.port == 8090
        assert config.http.cors_origins == ("*",)
        assert config.observability.log_format == "text"

    def test_dataclass_defaults_match_env_defaults(self):
        assert AppConfig.from_env() == AppConfig()


class TestFromEnv:
    """Tests for environment parsing."""

    def test_policies(self, monkeypatch):
        monkeypatch.setenv("SCHEMAGRAPH_DEFINITION_REMOVAL", "CASCADE")
        monkeypatch.setenv("SCHEMAGRAPH_TUPLE_ITEMS", "first")
        assert GraphConfig.from_env().definition_removal_policy is DefinitionRemovalPolicy.CASCADE
        assert CompilerConfig.from_env().tuple_items is TupleItemsPolicy.FIRST

    def test_invalid_policy(self, monkeypatch):
        monkeypatch.setenv("SCHEMAGRAPH_DEFINITION_REMOVAL", "ignore")
        with pytest.raises(ValueError, match="Invalid definition removal policy"):
            GraphConfig.from_env()

    def test_booleans(self, monkeypatch):
        monkeypatch.setenv("SCHEMAGRAPH_STRICT_MATCH_ELSE", "False")
        assert CompilerConfig.from_env().strict_match_else is False

    def test_cors_origins(self, monkeypatch):
        monkeypatch.setenv("SCHEMAGRAPH_CORS_ORIGINS", "http://a.test, ,http://b.test")
        assert HttpConfig.from_env().cors_origins == ("http://a.test", "http://b.test")

    def test_port_not_a_number(self, monkeypatch):
        monkeypatch.setenv("SCHEMAGRAPH_PORT", "http")
        with pytest.raises(ValueError):
            AppConfig.from_env()


class TestValidate:
    """Tests for AppConfig.validate."""

    def test_port_out_of_range(self, monkeypatch):
        monkeypatch.setenv("SCHEMAGRAPH_PORT", "70000")
        with pytest.raises(ValueError, match="SCHEMAGRAPH_PORT"):
            AppConfig.from_env()

    def test_document_size(self, monkeypatch):
        monkeypatch.setenv("SCHEMAGRAPH_MAX_DOCUMENT_BYTES", "0")
        with pytest.raises(ValueError, match="must be positive"):
            AppConfig.from_env()

    def test_log_format(self, monkeypatch):
        monkeypatch.setenv("SCHEMAGRAPH_LOG_FORMAT", "xml")
        with pytest.raises(ValueError, match="SCHEMAGRAPH_LOG_FORMAT"):
            AppConfig.from_env()


class TestTupleItemsPolicy:
    """Tests for TupleItemsPolicy.from_str."""

    def test_case_insensitive(self):
        assert TupleItemsPolicy.from_str("REJECT") is TupleItemsPolicy.REJECT

    def test_invalid(self):
        with pytest.raises(ValueError, match="Valid policies"):
            TupleItemsPolicy.from_str("merge")
