"""
Bitcoin ABC node JSON-RPC broadcaster.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from ecashtx.backends.base import Broadcaster

# Timeout for RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0


class NodeRpcBroadcaster(Broadcaster):
    """
    Relays transactions through a node's ``sendrawtransaction`` RPC.
    Only non-wallet RPC methods are used.
    """

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:8332",
        rpc_user: str = "",
        rpc_password: str = "",
        timeout: float = DEFAULT_RPC_TIMEOUT,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        auth = (rpc_user, rpc_password) if rpc_user else None
        self.client = httpx.AsyncClient(timeout=timeout, auth=auth)
        self._request_id = 0

    async def _rpc_call(self, method: str, params: list | None = None) -> Any:
        """
        Make an RPC call to the node.

        Raises:
            ValueError: On RPC errors
            httpx.HTTPError: On connection/timeout errors
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            response = await self.client.post(self.rpc_url, json=payload)
            try:
                # RPC errors come back as JSON with a non-2xx status
                data = response.json()
            except ValueError:
                response.raise_for_status()
                raise

            if "error" in data and data["error"]:
                error_info = data["error"]
                error_code = error_info.get("code", "unknown")
                error_msg = error_info.get("message", str(error_info))
                raise ValueError(f"RPC error {error_code}: {error_msg}")

            response.raise_for_status()
            return data.get("result")

        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise

    async def broadcast_transaction(self, tx_hex: str) -> str:
        txid = await self._rpc_call("sendrawtransaction", [tx_hex])
        if not txid:
            raise ValueError("Empty sendrawtransaction response")
        logger.info(f"Broadcast transaction {txid}")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
