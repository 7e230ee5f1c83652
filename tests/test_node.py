"""
Node Test Suite

Coverage:
  - Caller tokens: issue / verify, tampering, malformed caller ids
  - FastAPI node: lifespan, /rpc identity headers, root status
  - Ledger selection from the [database] section
  - ballotbox-auth CLI
"""

import os
import sys

import pytest
from click.testing import CliRunner
from fastapi.testclient import TestClient

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from ballotbox.cli.auth import cli
from ballotbox.config import AuthConfig, DatabaseConfig, NodeConfig, SQLiteConfig
from ballotbox.exceptions import AuthenticationError, ConfigurationError
from ballotbox.governance import Identity
from ballotbox.node import CallerAuthenticator, create_app, open_ledger
from ballotbox.node.identity import CALLER_ID_HEADER, CALLER_TOKEN_HEADER


SECRET = "test-node-secret"
AUTH = CallerAuthenticator(SECRET)


def headers_for(caller_id: str) -> dict:
    return {CALLER_ID_HEADER: caller_id, CALLER_TOKEN_HEADER: AUTH.issue(caller_id)}


def make_config(secret=SECRET, **database) -> NodeConfig:
    return NodeConfig(
        database=DatabaseConfig(**(database or {"type": "memory"})),
        auth=AuthConfig(secret=secret),
    )


def rpc(client, method, params=None, headers=None):
    body = {"jsonrpc": "2.0", "method": method, "params": params or [], "id": 1}
    response = client.post("/rpc", json=body, headers=headers or {})
    assert response.status_code == 200
    return response.json()


@pytest.fixture
def client():
    with TestClient(create_app(make_config())) as test_client:
        yield test_client


# ══════════════════════════════════════════════════════════════════════
#  CALLER TOKENS
# ══════════════════════════════════════════════════════════════════════


class TestCallerAuthenticator:

    def test_issue_is_deterministic(self):
        assert AUTH.issue("alice") == AUTH.issue("alice")
        assert AUTH.issue("alice") != AUTH.issue("bob")
        assert len(AUTH.issue("alice")) == 64

    def test_verify_valid(self):
        assert AUTH.verify("alice", AUTH.issue("alice")) == Identity("alice")

    def test_verify_tolerates_case_and_whitespace(self):
        token = AUTH.issue("alice").upper()
        assert AUTH.verify("alice", f" {token} ") == Identity("alice")

    def test_verify_wrong_token(self):
        assert AUTH.verify("alice", AUTH.issue("bob")) is None

    def test_verify_other_secret(self):
        other = CallerAuthenticator("other-secret")
        assert AUTH.verify("alice", other.issue("alice")) is None

    def test_verify_missing_parts(self):
        assert AUTH.verify(None, "abc") is None
        assert AUTH.verify("alice", None) is None
        assert AUTH.verify("", "") is None

    def test_disabled_without_secret(self):
        auth = CallerAuthenticator(None)
        assert not auth.enabled
        assert auth.verify("alice", "anything") is None
        with pytest.raises(AuthenticationError):
            auth.issue("alice")

    @pytest.mark.parametrize("caller_id", ["", "has space", "x" * 129, "semi;colon"])
    def test_invalid_caller_ids(self, caller_id):
        assert not CallerAuthenticator.is_valid_caller_id(caller_id)
        with pytest.raises(AuthenticationError):
            AUTH.issue(caller_id)

    def test_valid_caller_id_forms(self):
        for caller_id in ("alice", "user@example.org", "svc:gov-bot_1.2"):
            assert CallerAuthenticator.is_valid_caller_id(caller_id)


# ══════════════════════════════════════════════════════════════════════
#  HTTP NODE
# ══════════════════════════════════════════════════════════════════════


class TestNodeApp:

    def test_root_status(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["proposal_count"] == 0
        assert data["durable"] is False
        assert data["node_name"] == "ballotbox"

    def test_authenticated_create_and_vote(self, client):
        created = rpc(client, "gov_createProposal", [1, "Town hall hours"], headers_for("alice"))
        assert created["result"] is None

        voted = rpc(client, "gov_vote", [1, "Approve"], headers_for("bob"))
        assert voted["result"] == {"Ok": None}

        proposal = rpc(client, "gov_getProposal", [1])["result"]
        assert proposal["owner"] == "alice"
        assert proposal["voted"] == ["bob"]
        assert client.get("/").json()["proposal_count"] == 1

    def test_anonymous_mutation_refused(self, client):
        response = rpc(client, "gov_createProposal", [1, "No headers"])
        assert response["error"]["code"] == -32099

    def test_forged_token_is_anonymous(self, client):
        forged = {CALLER_ID_HEADER: "alice", CALLER_TOKEN_HEADER: "0" * 64}
        assert rpc(client, "node_whoami", headers=forged)["result"] is None
        response = rpc(client, "gov_createProposal", [1, "Forged"], forged)
        assert response["error"]["code"] == -32099

    def test_whoami(self, client):
        assert rpc(client, "node_whoami", headers=headers_for("carol"))["result"] == "carol"

    def test_owner_enforced_across_callers(self, client):
        rpc(client, "gov_createProposal", [5, "Alice's"], headers_for("alice"))
        response = rpc(client, "gov_endProposal", [5], headers_for("mallory"))
        assert response["result"] == {"Err": "Unauthorized"}

    def test_notification_returns_204(self, client):
        body = {"jsonrpc": "2.0", "method": "node_clientVersion"}
        response = client.post("/rpc", json=body)
        assert response.status_code == 204

    def test_parse_error_body(self, client):
        response = client.post(
            "/rpc", content=b"{broken", headers={"content-type": "application/json"}
        )
        assert response.status_code == 200
        assert response.json()["error"]["code"] == -32700

    def test_no_secret_means_read_only(self):
        with TestClient(create_app(make_config(secret=None))) as c:
            assert rpc(c, "gov_getProposalCount")["result"] == 0
            response = rpc(c, "gov_createProposal", [1, "x"], headers_for("alice"))
            assert response["error"]["code"] == -32099

    def test_sqlite_node_persists(self, tmp_path):
        db_path = str(tmp_path / "node.db")
        config = make_config(type="sqlite", sqlite=SQLiteConfig(path=db_path))
        with TestClient(create_app(config)) as c:
            rpc(c, "gov_createProposal", [3, "Durable"], headers_for("alice"))
            assert c.get("/").json()["durable"] is True

        with TestClient(create_app(config)) as c:
            assert rpc(c, "gov_getProposal", [3])["result"]["description"] == "Durable"

    def test_sqlite_path_resolved_under_data_dir(self, tmp_path):
        config = make_config(type="sqlite", sqlite=SQLiteConfig(path="ledger.db"))
        config.node.data_dir = str(tmp_path / "data")
        with TestClient(create_app(config)) as c:
            rpc(c, "gov_createProposal", [1, "Where am I"], headers_for("alice"))
        assert (tmp_path / "data" / "ledger.db").exists()

    def test_invalid_config_rejected(self):
        config = make_config(type="postgres")
        with pytest.raises(ConfigurationError):
            create_app(config)


class TestOpenLedger:

    def test_memory(self):
        ledger = open_ledger(DatabaseConfig(type="memory"))
        assert not ledger.is_durable

    def test_sqlite(self, tmp_path):
        ledger = open_ledger(DatabaseConfig(sqlite=SQLiteConfig(path=str(tmp_path / "l.db"))))
        try:
            assert ledger.is_durable
        finally:
            ledger.close()

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError):
            open_ledger(DatabaseConfig(type="redis"))


# ══════════════════════════════════════════════════════════════════════
#  AUTH CLI
# ══════════════════════════════════════════════════════════════════════


class TestAuthCLI:

    def test_issue(self):
        result = CliRunner().invoke(cli, ["issue", "alice", "--secret", SECRET])
        assert result.exit_code == 0
        assert result.output.strip() == AUTH.issue("alice")

    def test_issue_headers(self):
        result = CliRunner().invoke(cli, ["issue", "alice", "--secret", SECRET, "--headers"])
        assert result.exit_code == 0
        assert f"{CALLER_ID_HEADER}: alice" in result.output
        assert f"{CALLER_TOKEN_HEADER}: {AUTH.issue('alice')}" in result.output

    def test_issue_invalid_id(self):
        result = CliRunner().invoke(cli, ["issue", "bad id", "--secret", SECRET])
        assert result.exit_code != 0
        assert "Invalid caller id" in result.output

    def test_verify_ok(self):
        token = AUTH.issue("alice")
        result = CliRunner().invoke(cli, ["verify", "alice", token, "--secret", SECRET])
        assert result.exit_code == 0
        assert "Token valid for alice" in result.output

    def test_verify_rejected(self):
        result = CliRunner().invoke(cli, ["verify", "alice", "deadbeef", "--secret", SECRET])
        assert result.exit_code == 1
        assert "Token rejected" in result.output

    def test_missing_secret(self, monkeypatch, tmp_path):
        monkeypatch.delenv("BALLOTBOX_AUTH_SECRET", raising=False)
        monkeypatch.setenv("BALLOTBOX_CONFIG", str(tmp_path / "absent.toml"))
        result = CliRunner().invoke(cli, ["issue", "alice"])
        assert result.exit_code != 0
        assert "No secret configured" in result.output


# ══════════════════════════════════════════════════════════════════════
#  LAUNCHER
# ══════════════════════════════════════════════════════════════════════


class TestRunNode:

    def test_binds_configured_host_and_port(self, monkeypatch, tmp_path):
        import run_node

        path = tmp_path / "config.toml"
        path.write_text('[rpc]\nhost = "0.0.0.0"\nport = 4123\n')
        monkeypatch.setenv("BALLOTBOX_CONFIG", str(path))
        monkeypatch.delenv("BALLOTBOX_RPC_HOST", raising=False)
        monkeypatch.delenv("BALLOTBOX_RPC_PORT", raising=False)

        calls = []
        monkeypatch.setattr(run_node.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))
        run_node.main()

        app, kwargs = calls[0]
        assert app == "ballotbox.node.main:create_app"
        assert kwargs["factory"] is True
        assert (kwargs["host"], kwargs["port"]) == ("0.0.0.0", 4123)

    def test_env_overrides_config_file(self, monkeypatch, tmp_path):
        import run_node

        monkeypatch.setenv("BALLOTBOX_CONFIG", str(tmp_path / "absent.toml"))
        monkeypatch.setenv("BALLOTBOX_RPC_PORT", "5055")
        calls = []
        monkeypatch.setattr(run_node.uvicorn, "run", lambda app, **kw: calls.append(kw))
        run_node.main()
        assert calls[0]["port"] == 5055
