"""
BallotBox TOML Configuration Loader

Loads all sections of config.toml at startup with environment variable overrides.
Every section is a dataclass with from_dict (TOML) and apply_env (environment).

Environment variable mapping:
    [node] log_level           → BALLOTBOX_LOG_LEVEL
    [database] type            → BALLOTBOX_DB_TYPE
    [database.sqlite] path     → BALLOTBOX_DB_PATH
    [rpc] host / port          → BALLOTBOX_RPC_HOST / BALLOTBOX_RPC_PORT
    [governance] quorum        → BALLOTBOX_QUORUM
    [governance] threshold     → BALLOTBOX_THRESHOLD
    [auth] secret              → BALLOTBOX_AUTH_SECRET (env only)

Sensitive values (the auth secret) MUST come from env vars, never TOML.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..constants import (
    BALLOTBOX_NODE_HOST,
    BALLOTBOX_NODE_PORT,
    BALLOTBOX_RATE_LIMIT,
    GOVERNANCE_MIN_QUORUM,
    GOVERNANCE_OUTCOME_THRESHOLD,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_DATABASE_TYPES = ("sqlite", "memory")


# ---------------------------------------------------------------------------
# Section dataclasses: mirror every [section] of config.example.toml
# ---------------------------------------------------------------------------


@dataclass
class NodeSectionConfig:
    """[node] section."""
    name: str = "ballotbox"
    data_dir: str = "./data"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeSectionConfig":
        return cls(
            name=data.get("name", "ballotbox"),
            data_dir=data.get("data_dir", "./data"),
            log_level=data.get("log_level", "INFO"),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("BALLOTBOX_DATA_DIR"):
            self.data_dir = v
        if v := os.environ.get("BALLOTBOX_LOG_LEVEL"):
            self.log_level = v


# -- Database -----------------------------------------------------------

@dataclass
class SQLiteConfig:
    """[database.sqlite]. A relative path is resolved under [node] data_dir."""
    path: str = "ballotbox.db"
    wal_mode: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SQLiteConfig":
        return cls(
            path=data.get("path", "ballotbox.db"),
            wal_mode=data.get("wal_mode", True),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BALLOTBOX_DB_PATH"):
            self.path = v


@dataclass
class DatabaseConfig:
    """[database] section. type is "sqlite" (durable) or "memory"."""
    type: str = "sqlite"
    sqlite: SQLiteConfig = field(default_factory=SQLiteConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatabaseConfig":
        return cls(
            type=data.get("type", "sqlite"),
            sqlite=SQLiteConfig.from_dict(data.get("sqlite", {})),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BALLOTBOX_DB_TYPE"):
            self.type = v
        self.sqlite.apply_env()

    def sqlite_path(self, data_dir: str = "") -> str:
        """SQLite file location; a relative path is taken under *data_dir*."""
        path = self.sqlite.path
        if not data_dir or os.path.isabs(path):
            return path
        return os.path.join(data_dir, path)


# -- RPC ----------------------------------------------------------------

@dataclass
class RPCSectionConfig:
    """[rpc] section."""
    host: str = str(BALLOTBOX_NODE_HOST)
    port: int = int(BALLOTBOX_NODE_PORT)
    rate_limit: str = str(BALLOTBOX_RATE_LIMIT)
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RPCSectionConfig":
        return cls(
            host=data.get("host", str(BALLOTBOX_NODE_HOST)),
            port=_to_int(data.get("port", int(BALLOTBOX_NODE_PORT)), "rpc.port"),
            rate_limit=data.get("rate_limit", str(BALLOTBOX_RATE_LIMIT)),
            cors_origins=data.get("cors_origins", ["*"]),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BALLOTBOX_RPC_HOST"):
            self.host = v
        if v := os.environ.get("BALLOTBOX_RPC_PORT"):
            self.port = _to_int(v, "BALLOTBOX_RPC_PORT")


# -- Governance ---------------------------------------------------------

@dataclass
class GovernanceConfig:
    """[governance] section."""
    quorum: int = GOVERNANCE_MIN_QUORUM
    threshold: Decimal = GOVERNANCE_OUTCOME_THRESHOLD

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        return cls(
            quorum=_to_int(data.get("quorum", GOVERNANCE_MIN_QUORUM), "governance.quorum"),
            threshold=_to_decimal(data.get("threshold", GOVERNANCE_OUTCOME_THRESHOLD)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BALLOTBOX_QUORUM"):
            self.quorum = _to_int(v, "BALLOTBOX_QUORUM")
        if v := os.environ.get("BALLOTBOX_THRESHOLD"):
            self.threshold = _to_decimal(v)

    def validate(self) -> None:
        if isinstance(self.quorum, bool) or not isinstance(self.quorum, int):
            raise ConfigurationError(f"governance.quorum must be an integer, got {self.quorum!r}")
        if not isinstance(self.threshold, Decimal):
            raise ConfigurationError("governance.threshold must be a Decimal")
        if self.quorum < 1:
            raise ConfigurationError("governance.quorum must be >= 1")
        if not Decimal("0") < self.threshold <= Decimal("100"):
            raise ConfigurationError("governance.threshold must be in (0, 100]")


# -- Auth ---------------------------------------------------------------

@dataclass
class AuthConfig:
    """[auth] section. The secret is read from the environment only."""
    secret: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthConfig":
        if "secret" in data:
            logger.warning("[auth] secret in TOML is ignored; set BALLOTBOX_AUTH_SECRET")
        return cls()

    def apply_env(self) -> None:
        if v := os.environ.get("BALLOTBOX_AUTH_SECRET"):
            self.secret = v

    @property
    def enabled(self) -> bool:
        return bool(self.secret)


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigurationError(f"Invalid decimal value: {value!r}") from e


def _to_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


# -----------------------------------------------------------------------
# Top-level unified config
# -----------------------------------------------------------------------

@dataclass
class NodeConfig:
    """
    Unified node configuration.

    Loads every section of config.toml and applies environment variable
    overrides.  This is the single source of truth at runtime.
    """
    node: NodeSectionConfig = field(default_factory=NodeSectionConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    rpc: RPCSectionConfig = field(default_factory=RPCSectionConfig)
    governance: GovernanceConfig = field(default_factory=GovernanceConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeConfig":
        """Create NodeConfig from a parsed TOML dict."""
        return cls(
            node=NodeSectionConfig.from_dict(data.get("node", {})),
            database=DatabaseConfig.from_dict(data.get("database", {})),
            rpc=RPCSectionConfig.from_dict(data.get("rpc", {})),
            governance=GovernanceConfig.from_dict(data.get("governance", {})),
            auth=AuthConfig.from_dict(data.get("auth", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "NodeConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (with env overrides).
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Malformed config file {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.node.apply_env()
        self.database.apply_env()
        self.rpc.apply_env()
        self.governance.apply_env()
        self.auth.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if self.node.log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log_level: {self.node.log_level}")
        if self.database.type not in _DATABASE_TYPES:
            raise ConfigurationError(
                f"Unsupported database type {self.database.type!r}, "
                f"expected one of {_DATABASE_TYPES}"
            )
        if not 0 < self.rpc.port < 65536:
            raise ConfigurationError(f"Invalid rpc.port: {self.rpc.port}")
        self.governance.validate()
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "node": {
                "name": self.node.name,
                "data_dir": self.node.data_dir,
                "log_level": self.node.log_level,
            },
            "database": {
                "type": self.database.type,
                "sqlite": {
                    "path": self.database.sqlite.path,
                    "wal_mode": self.database.sqlite.wal_mode,
                },
            },
            "rpc": {
                "host": self.rpc.host,
                "port": self.rpc.port,
                "rate_limit": self.rpc.rate_limit,
            },
            "governance": {
                "quorum": self.governance.quorum,
                "threshold": str(self.governance.threshold),
            },
            "auth": {
                "enabled": self.auth.enabled,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> NodeConfig:
    """
    Load node configuration.

    Resolution order:
        1. Explicit *path* argument
        2. BALLOTBOX_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("BALLOTBOX_CONFIG", "config.toml")

    return NodeConfig.from_file(path)
