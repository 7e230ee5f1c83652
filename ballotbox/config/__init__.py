"""
BallotBox Unified Configuration

Loads all sections of config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    NodeConfig,
    NodeSectionConfig,
    DatabaseConfig,
    SQLiteConfig,
    RPCSectionConfig,
    GovernanceConfig,
    AuthConfig,
    load_config,
)

__all__ = [
    "NodeConfig",
    "NodeSectionConfig",
    "DatabaseConfig",
    "SQLiteConfig",
    "RPCSectionConfig",
    "GovernanceConfig",
    "AuthConfig",
    "load_config",
]
