"""
Configuration Test Suite

Coverage:
  - TOML loading into section dataclasses
  - Environment variable overrides
  - Validation failures
"""

import os
import sys
from decimal import Decimal

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from ballotbox.config import NodeConfig, load_config
from ballotbox.exceptions import ConfigurationError


ENV_VARS = (
    "BALLOTBOX_CONFIG",
    "BALLOTBOX_DATA_DIR",
    "BALLOTBOX_LOG_LEVEL",
    "BALLOTBOX_DB_PATH",
    "BALLOTBOX_DB_TYPE",
    "BALLOTBOX_RPC_HOST",
    "BALLOTBOX_RPC_PORT",
    "BALLOTBOX_QUORUM",
    "BALLOTBOX_THRESHOLD",
    "BALLOTBOX_AUTH_SECRET",
)

SAMPLE_TOML = """
[node]
name = "council"
log_level = "DEBUG"

[database]
type = "sqlite"

[database.sqlite]
path = "var/council.db"
wal_mode = false

[rpc]
host = "0.0.0.0"
port = 4000
rate_limit = "10/second"

[governance]
quorum = 7
threshold = "66.6"

[auth]
secret = "must-not-be-read"
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(SAMPLE_TOML)
    return str(path)


class TestLoading:

    def test_defaults(self):
        cfg = NodeConfig()
        assert cfg.database.type == "sqlite"
        assert cfg.governance.quorum == 5
        assert cfg.governance.threshold == Decimal("50")
        assert not cfg.auth.enabled
        assert cfg.validate()

    def test_from_file(self, config_file):
        cfg = NodeConfig.from_file(config_file)
        assert cfg.node.name == "council"
        assert cfg.node.log_level == "DEBUG"
        assert cfg.database.sqlite.path == "var/council.db"
        assert cfg.database.sqlite.wal_mode is False
        assert cfg.rpc.port == 4000
        assert cfg.rpc.rate_limit == "10/second"
        assert cfg.governance.quorum == 7
        assert cfg.governance.threshold == Decimal("66.6")

    def test_secret_never_read_from_toml(self, config_file):
        cfg = NodeConfig.from_file(config_file)
        assert cfg.auth.secret is None

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = NodeConfig.from_file(str(tmp_path / "nope.toml"))
        assert cfg.rpc.port == NodeConfig().rpc.port

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[node\nname = ")
        with pytest.raises(ConfigurationError, match="Malformed"):
            NodeConfig.from_file(str(path))

    def test_load_config_uses_env_path(self, config_file, monkeypatch):
        monkeypatch.setenv("BALLOTBOX_CONFIG", config_file)
        assert load_config().node.name == "council"

    def test_to_dict_hides_secret(self, monkeypatch):
        monkeypatch.setenv("BALLOTBOX_AUTH_SECRET", "hush")
        cfg = load_config("does-not-exist.toml")
        assert cfg.to_dict()["auth"] == {"enabled": True}
        assert "hush" not in repr(cfg)


class TestEnvOverrides:

    def test_overrides(self, config_file, monkeypatch):
        monkeypatch.setenv("BALLOTBOX_DB_TYPE", "memory")
        monkeypatch.setenv("BALLOTBOX_DB_PATH", "/tmp/other.db")
        monkeypatch.setenv("BALLOTBOX_RPC_PORT", "5050")
        monkeypatch.setenv("BALLOTBOX_QUORUM", "3")
        monkeypatch.setenv("BALLOTBOX_THRESHOLD", "75")
        monkeypatch.setenv("BALLOTBOX_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("BALLOTBOX_AUTH_SECRET", "from-env")
        cfg = NodeConfig.from_file(config_file)
        assert cfg.database.type == "memory"
        assert cfg.database.sqlite.path == "/tmp/other.db"
        assert cfg.rpc.port == 5050
        assert cfg.governance.quorum == 3
        assert cfg.governance.threshold == Decimal("75")
        assert cfg.node.log_level == "WARNING"
        assert cfg.auth.secret == "from-env"
        assert cfg.auth.enabled

    @pytest.mark.parametrize("name, value", [
        ("BALLOTBOX_QUORUM", "abc"),
        ("BALLOTBOX_QUORUM", "2.5"),
        ("BALLOTBOX_RPC_PORT", "http"),
    ])
    def test_bad_integer(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError, match="integer"):
            NodeConfig().apply_env()

    def test_bad_threshold(self, monkeypatch):
        monkeypatch.setenv("BALLOTBOX_THRESHOLD", "half")
        with pytest.raises(ConfigurationError):
            NodeConfig().apply_env()


class TestValidation:

    @pytest.mark.parametrize("mutate", [
        lambda c: setattr(c.node, "log_level", "LOUD"),
        lambda c: setattr(c.database, "type", "mongo"),
        lambda c: setattr(c.rpc, "port", 0),
        lambda c: setattr(c.governance, "quorum", 0),
        lambda c: setattr(c.governance, "threshold", Decimal("0")),
        lambda c: setattr(c.governance, "threshold", Decimal("101")),
    ])
    def test_invalid(self, mutate):
        cfg = NodeConfig()
        mutate(cfg)
        with pytest.raises(ConfigurationError):
            cfg.validate()

    @pytest.mark.parametrize("quorum", ['"many"', "2.5", "true"])
    def test_non_integer_quorum_in_toml(self, tmp_path, quorum):
        path = tmp_path / "config.toml"
        path.write_text(f"[governance]\nquorum = {quorum}\n")
        with pytest.raises(ConfigurationError, match="quorum"):
            NodeConfig.from_file(str(path))

    def test_non_integer_quorum_set_directly(self):
        cfg = NodeConfig()
        cfg.governance.quorum = "5"
        with pytest.raises(ConfigurationError, match="quorum"):
            cfg.validate()

    def test_string_quorum_in_toml_is_converted(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('[governance]\nquorum = "3"\n')
        assert NodeConfig.from_file(str(path)).governance.quorum == 3


class TestDatabasePath:

    def test_relative_path_under_data_dir(self):
        cfg = NodeConfig()
        cfg.node.data_dir = "/srv/ballotbox"
        cfg.database.sqlite.path = "ledger.db"
        assert cfg.database.sqlite_path(cfg.node.data_dir) == os.path.join("/srv/ballotbox", "ledger.db")

    def test_absolute_path_kept(self):
        cfg = NodeConfig()
        cfg.database.sqlite.path = "/var/lib/ledger.db"
        assert cfg.database.sqlite_path("/srv/ballotbox") == "/var/lib/ledger.db"

    def test_default_lands_in_data_dir(self):
        cfg = NodeConfig()
        assert cfg.database.sqlite_path(cfg.node.data_dir) == os.path.join("./data", "ballotbox.db")
