"""
BallotBox node_* RPC Methods

Utility JSON-RPC methods.
"""

from ..server import RPCError, RPCErrorCode, RPCModule, rpc_method


class NodeModule(RPCModule):
    """
    Node utility methods (node_* namespace).
    """

    namespace = "node"

    @rpc_method
    async def clientVersion(self) -> str:
        """
        Returns the client version string.
        """
        from ...constants import NODE_VERSION
        return f"BallotBox/{NODE_VERSION}/python"

    @rpc_method
    async def greet(self, name: str) -> str:
        if not isinstance(name, str):
            raise RPCError(RPCErrorCode.INVALID_PARAMS, "name must be a string")
        return f"Hello, {name}!"

    @rpc_method
    async def whoami(self):
        """Identity the node resolved for this request, or null."""
        caller = self.caller
        return str(caller) if caller is not None else None
