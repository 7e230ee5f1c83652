"""
BallotBox Node

FastAPI application serving the proposal ledger over JSON-RPC 2.0.

    POST /rpc   JSON-RPC request or batch (rate limited)
    GET  /      node version and proposal count

The ledger is opened once in the lifespan handler and handed to the voting
engine. Serve with `uvicorn --factory ballotbox.node.main:create_app`.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse, Response

from ..config import DatabaseConfig, NodeConfig, load_config
from ..constants import NODE_VERSION
from ..exceptions import ConfigurationError
from ..governance import Identity, Ledger, VotingEngine
from ..logger import get_logger, set_log_level
from ..rpc.modules import GovernanceModule, NodeModule
from ..rpc.server import RPCServer
from .identity import CALLER_ID_HEADER, CALLER_TOKEN_HEADER, CallerAuthenticator

logger = get_logger(__name__)


def open_ledger(database: DatabaseConfig, data_dir: str = "") -> Ledger:
    """Build the Ledger selected by the [database] section."""
    if database.type == "memory":
        logger.warning("Using in-memory ledger: proposals are lost on shutdown")
        return Ledger.memory()
    if database.type == "sqlite":
        return Ledger.sqlite(database.sqlite_path(data_dir), wal_mode=database.sqlite.wal_mode)
    raise ConfigurationError(f"Unsupported database type: {database.type}")


def build_rpc_server(engine: VotingEngine) -> RPCServer:
    rpc_server = RPCServer()
    rpc_server.register_module(GovernanceModule(engine))
    rpc_server.register_module(NodeModule())
    return rpc_server


async def get_verified_caller(request: Request) -> Optional[Identity]:
    """Resolve the caller identity from the auth headers, None if anonymous."""
    authenticator: CallerAuthenticator = request.app.state.authenticator
    return authenticator.verify(
        request.headers.get(CALLER_ID_HEADER),
        request.headers.get(CALLER_TOKEN_HEADER),
    )


def create_app(config: Optional[NodeConfig] = None) -> FastAPI:
    """Create the node application for *config* (loaded from disk if None)."""
    if config is None:
        config = load_config()
    config.validate()
    set_log_level(config.node.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ledger = open_ledger(config.database, config.node.data_dir)
        engine = VotingEngine(
            ledger,
            quorum=config.governance.quorum,
            threshold=config.governance.threshold,
        )
        app.state.ledger = ledger
        app.state.engine = engine
        app.state.rpc_server = build_rpc_server(engine)
        logger.info(f"Node {config.node.name} ready: {engine!r}")
        try:
            yield
        finally:
            ledger.close()
            logger.info("Node stopped")

    app = FastAPI(
        title="BallotBox Node",
        description="Proposal ledger with one-ballot-per-identity voting.",
        version=NODE_VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.authenticator = CallerAuthenticator(config.auth.secret)
    if not config.auth.enabled:
        logger.warning("No BALLOTBOX_AUTH_SECRET set: every request is anonymous and read-only")

    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.rpc.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"ok": False, "error": "Internal Server Error"})

    @app.get("/")
    async def root(request: Request):
        engine: VotingEngine = request.app.state.engine
        return {
            "node_name": request.app.state.config.node.name,
            "node_version": NODE_VERSION,
            "proposal_count": engine.get_proposal_count(),
            "durable": request.app.state.ledger.is_durable,
        }

    @app.post("/rpc")
    @limiter.limit(config.rpc.rate_limit)
    async def rpc_endpoint(
        request: Request,
        caller: Optional[Identity] = Depends(get_verified_caller),
    ):
        """JSON-RPC 2.0 endpoint"""
        body = await request.body()
        result = await request.app.state.rpc_server.handle_request(body, caller=caller)
        if result is None:
            return Response(status_code=204)
        # handle_request returns a JSON string; send it raw to avoid double-encoding
        return Response(content=result, media_type="application/json")

    return app
