"""
Configuration management for schemagraph.

All configuration comes from environment variables with a SCHEMAGRAPH_
prefix. This module provides typed configuration classes with
validation.

Invariants:
    - All settings have sensible defaults for local development
    - Policies are parsed into enums at load time, never re-read later

How to change safely:
    - Add new settings with defaults that keep current behaviour
    - Document new settings in README.md
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

from .graph.definitions import DefinitionRemovalPolicy

logger = logging.getLogger(__name__)


class TupleItemsPolicy(Enum):
    """How the decompiler treats tuple-form ``items`` (a list of schemas)."""

    REJECT = "reject"  # Import fails with ImportMalformedError
    FIRST = "first"  # First schema becomes the single item schema, with a warning

    @classmethod
    def from_str(cls, value: str) -> TupleItemsPolicy:
        for policy in cls:
            if policy.value == value.lower():
                return policy
        valid = [p.value for p in cls]
        raise ValueError(f"Invalid tuple items policy '{value}'. Valid policies: {valid}")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class GraphConfig:
    """Graph editing configuration.

    Attributes:
        definition_removal_policy: What happens to references when a
            definition is removed
    """

    definition_removal_policy: DefinitionRemovalPolicy = DefinitionRemovalPolicy.ALLOW

    @classmethod
    def from_env(cls) -> GraphConfig:
        """Load configuration from environment variables."""
        return cls(
            definition_removal_policy=DefinitionRemovalPolicy.from_str(
                os.getenv("SCHEMAGRAPH_DEFINITION_REMOVAL", "allow")
            ),
        )


@dataclass(frozen=True)
class CompilerConfig:
    """Compiler configuration.

    Attributes:
        strict_match_else: Give anyOf/oneOf clauses without an else a
            failing else branch ({"not": {}})
        emit_unreferenced_definitions: Emit definitions that no reference
            points at (needed for lossless round trips)
        tuple_items: Handling of tuple-form array items on import
    """

    strict_match_else: bool = True
    emit_unreferenced_definitions: bool = True
    tuple_items: TupleItemsPolicy = TupleItemsPolicy.REJECT

    @classmethod
    def from_env(cls) -> CompilerConfig:
        """Load configuration from environment variables."""
        return cls(
            strict_match_else=_env_bool("SCHEMAGRAPH_STRICT_MATCH_ELSE", "true"),
            emit_unreferenced_definitions=_env_bool("SCHEMAGRAPH_EMIT_UNREFERENCED", "true"),
            tuple_items=TupleItemsPolicy.from_str(os.getenv("SCHEMAGRAPH_TUPLE_ITEMS", "reject")),
        )


@dataclass(frozen=True)
class HttpConfig:
    """HTTP API configuration.

    Attributes:
        host: Address to bind
        port: Port to bind
        cors_origins: Allowed CORS origins
        max_document_bytes: Largest accepted import body
    """

    host: str = "0.0.0.0"
    port: int = 8090
    cors_origins: tuple[str, ...] = ("*",)
    max_document_bytes: int = 10 * 1024 * 1024  # 10MB

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        origins = os.getenv("SCHEMAGRAPH_CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("SCHEMAGRAPH_HOST", "0.0.0.0"),
            port=int(os.getenv("SCHEMAGRAPH_PORT", "8090")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            max_document_bytes=int(
                os.getenv("SCHEMAGRAPH_MAX_DOCUMENT_BYTES", str(10 * 1024 * 1024))
            ),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (text or json)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("SCHEMAGRAPH_LOG_LEVEL", "INFO"),
            log_format=os.getenv("SCHEMAGRAPH_LOG_FORMAT", "text"),
        )


@dataclass(frozen=True)
class AppConfig:
    """Complete configuration.

    Attributes:
        graph: Graph editing settings
        compiler: Compiler settings
        http: HTTP API settings
        observability: Logging settings
    """

    graph: GraphConfig = field(default_factory=GraphConfig)
    compiler: CompilerConfig = field(default_factory=CompilerConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            graph=GraphConfig.from_env(),
            compiler=CompilerConfig.from_env(),
            http=HttpConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not 0 < self.http.port < 65536:
            raise ValueError(f"SCHEMAGRAPH_PORT must be between 1 and 65535, got {self.http.port}")
        if self.http.max_document_bytes <= 0:
            raise ValueError("SCHEMAGRAPH_MAX_DOCUMENT_BYTES must be positive")
        if self.observability.log_format not in ("text", "json"):
            raise ValueError(
                f"SCHEMAGRAPH_LOG_FORMAT must be 'text' or 'json', got '{self.observability.log_format}'"
            )
        if not self.compiler.emit_unreferenced_definitions:
            logger.warning(
                "Unreferenced definitions are not emitted; they will be lost on round trips"
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Configuration loaded",
            extra={
                "definition_removal_policy": self.graph.definition_removal_policy.value,
                "tuple_items": self.compiler.tuple_items.value,
                "strict_match_else": self.compiler.strict_match_else,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "log_level": self.observability.log_level,
            },
        )
