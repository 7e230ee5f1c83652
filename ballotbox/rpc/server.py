"""
BallotBox JSON-RPC 2.0 Server

Implements the JSON-RPC 2.0 specification with support for:
- Method registration and namespacing
- Batch requests and notifications
- Error handling with standard codes
- Per-request caller identity supplied by the transport
"""

import asyncio
import inspect
import json
from contextvars import ContextVar
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, Union

from ..governance.proposals import Identity
from ..logger import get_logger

logger = get_logger(__name__)


class RPCErrorCode(IntEnum):
    """Standard JSON-RPC 2.0 error codes."""

    # Standard errors
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Server errors (-32000 to -32099)
    ACTION_NOT_ALLOWED = -32099


@dataclass
class RPCError(Exception):
    """JSON-RPC error."""

    code: int
    message: str
    data: Optional[Any] = None

    def to_dict(self) -> dict:
        result = {
            "code": int(self.code),
            "message": self.message,
        }
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass
class RPCRequest:
    """JSON-RPC request."""

    jsonrpc: str
    method: str
    params: Union[List, Dict, None]
    id: Union[str, int, None]

    @classmethod
    def from_dict(cls, data: dict) -> "RPCRequest":
        return cls(
            jsonrpc=data.get("jsonrpc", "2.0"),
            method=data.get("method", ""),
            params=data.get("params"),
            id=data.get("id"),
        )

    @property
    def is_notification(self) -> bool:
        """Check if this is a notification (no id)."""
        return self.id is None


@dataclass
class RPCResponse:
    """JSON-RPC response."""

    jsonrpc: str = "2.0"
    result: Optional[Any] = None
    error: Optional[Dict] = None
    id: Union[str, int, None] = None

    def to_dict(self) -> dict:
        response = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            response["error"] = self.error
        else:
            response["result"] = self.result
        return response

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# Type for RPC method handlers
RPCMethod = Callable[..., Any]

# Identity of the caller behind the request being handled
current_caller: ContextVar[Optional[Identity]] = ContextVar("current_caller", default=None)


class RPCModule:
    """
    Base class for RPC modules.

    Subclass this to create method namespaces like gov_, node_, etc.
    """

    # Namespace prefix (e.g., "gov", "node")
    namespace: str = ""

    def __init__(self, context: Any = None):
        """
        Initialize module with optional context.

        Args:
            context: Application context (voting engine, config, etc.)
        """
        self.context = context

    @property
    def caller(self) -> Optional[Identity]:
        return current_caller.get()

    def require_caller(self) -> Identity:
        """Identity of the current request, or ACTION_NOT_ALLOWED."""
        caller = current_caller.get()
        if caller is None:
            raise RPCError(RPCErrorCode.ACTION_NOT_ALLOWED, "Authenticated caller required")
        return caller

    def get_methods(self) -> Dict[str, RPCMethod]:
        """
        Get all public methods in this module.

        Methods starting with underscore are private.
        """
        methods = {}
        for name in dir(self):
            if name.startswith("_"):
                continue
            attr = getattr(self, name)
            if callable(attr) and hasattr(attr, "__rpc_method__"):
                full_name = f"{self.namespace}_{name}" if self.namespace else name
                methods[full_name] = attr
        return methods


def rpc_method(func: RPCMethod) -> RPCMethod:
    """
    Decorator to mark a method as an RPC endpoint.

    Usage:
        @rpc_method
        async def getProposalCount(self) -> int:
            return self.context.get_proposal_count()
    """
    func.__rpc_method__ = True
    return func


class RPCServer:
    """
    JSON-RPC 2.0 server.

    Manages method registration and request handling.
    Transport-agnostic: the HTTP node feeds it request bodies.
    """

    def __init__(self):
        self._methods: Dict[str, RPCMethod] = {}

    def register_module(self, module: RPCModule):
        methods = module.get_methods()
        self._methods.update(methods)
        logger.info(f"Registered RPC module: {module.namespace} ({len(methods)} methods)")

    async def handle_request(
        self,
        data: Union[str, bytes, dict, list],
        caller: Optional[Identity] = None,
    ) -> Optional[str]:
        """
        Handle a JSON-RPC request on behalf of *caller*.

        Args:
            data: Request data (JSON string or parsed object)
            caller: Authenticated identity, None for anonymous requests

        Returns:
            JSON response string, or None for notifications
        """
        try:
            if isinstance(data, (str, bytes)):
                parsed = json.loads(data)
            else:
                parsed = data
        except json.JSONDecodeError as e:
            error = RPCError(RPCErrorCode.PARSE_ERROR, f"Parse error: {e}")
            return RPCResponse(error=error.to_dict()).to_json()

        token = current_caller.set(caller)
        try:
            if isinstance(parsed, list):
                if not parsed:
                    error = RPCError(RPCErrorCode.INVALID_REQUEST, "Empty batch")
                    return RPCResponse(error=error.to_dict()).to_json()

                responses = await asyncio.gather(*[
                    self._handle_single(req) for req in parsed
                ])

                # Filter out None responses (notifications)
                responses = [r for r in responses if r is not None]
                if not responses:
                    return None
                return json.dumps(responses)

            response = await self._handle_single(parsed)
            if response is None:
                return None
            return json.dumps(response)
        finally:
            current_caller.reset(token)

    async def _handle_single(self, data: Any) -> Optional[dict]:
        """Handle a single request and return response dict."""
        if not isinstance(data, dict):
            return RPCResponse(
                error=RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid request").to_dict()
            ).to_dict()
        request = RPCRequest.from_dict(data)

        if request.jsonrpc != "2.0":
            return RPCResponse(
                id=request.id,
                error=RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid JSON-RPC version").to_dict()
            ).to_dict()

        if not request.method:
            return RPCResponse(
                id=request.id,
                error=RPCError(RPCErrorCode.INVALID_REQUEST, "Missing method").to_dict()
            ).to_dict()

        handler = self._methods.get(request.method)
        if handler is None:
            if request.is_notification:
                return None
            return RPCResponse(
                id=request.id,
                error=RPCError(
                    RPCErrorCode.METHOD_NOT_FOUND,
                    f"Method not found: {request.method}"
                ).to_dict()
            ).to_dict()

        try:
            bound = self._bind_params(handler, request.params)
            result = await handler(*bound.args, **bound.kwargs)

            if request.is_notification:
                return None

            return RPCResponse(id=request.id, result=result).to_dict()

        except RPCError as e:
            if request.is_notification:
                return None
            return RPCResponse(id=request.id, error=e.to_dict()).to_dict()

        except Exception as e:
            logger.exception(f"Error handling RPC method {request.method}")
            if request.is_notification:
                return None
            return RPCResponse(
                id=request.id,
                error=RPCError(RPCErrorCode.INTERNAL_ERROR, str(e)).to_dict()
            ).to_dict()

    @staticmethod
    def _bind_params(handler: RPCMethod, params: Any) -> inspect.BoundArguments:
        """Match request params to the handler signature."""
        signature = inspect.signature(handler)
        try:
            if params is None:
                return signature.bind()
            if isinstance(params, list):
                return signature.bind(*params)
            if isinstance(params, dict):
                return signature.bind(**params)
        except TypeError as e:
            raise RPCError(RPCErrorCode.INVALID_PARAMS, f"Invalid params: {e}")
        raise RPCError(RPCErrorCode.INVALID_PARAMS, "Invalid params type")
