"""Typed JSON-RPC client for Bitcoin Core compatible nodes.

Only the read paths needed to fetch transactions and blocks for inscription
parsing are wrapped here. The parser itself never touches the network; this
client just feeds it transaction JSON.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

import requests
from requests import RequestException, Response

from .config import RPCConfig, load_rpc_config

logger = logging.getLogger(__name__)


class RPCError(RuntimeError):
    """Raised when the node responds with an RPC error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def format_rpc_hint(error: RPCError | None) -> str | None:
    """Return a short remediation hint for well-known RPC failures."""

    if error is None:
        return None
    if error.code == -5 and "No such mempool or blockchain transaction" in error.message:
        return (
            "The node does not know this transaction. Unconfirmed or old transactions need "
            "txindex=1 in bitcoin.conf (or a blockhash argument) to be looked up."
        )
    if error.code == -8 and "out of range" in error.message.lower():
        return "The requested block height is above the node's current tip."
    if error.code == -28:
        return "The node is still warming up; retry once it has finished loading."
    return None


class BitcoinRPCClient:
    """Thin JSON-RPC client.

    Each helper maps directly to an RPC method exposed by the node and returns
    the parsed JSON response.
    """

    def __init__(self, config: RPCConfig) -> None:
        self.config = config
        self._session = requests.Session()
        self._url = config.url

    @classmethod
    def from_env(cls) -> "BitcoinRPCClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_rpc_config())

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "1.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self._url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                auth=(self.config.user, self.config.password),
                timeout=30,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure your node is reachable, authentication is valid, "
                "and BITCOIN_RPC_* variables (or ~/.ordpool.yaml) point to the right host and port."
            ) from exc

        # Bitcoin Core reports JSON-RPC errors with HTTP 500 and a JSON body,
        # so try the body before falling back to the HTTP status.
        try:
            result = response.json()
        except ValueError as exc:
            self._raise_for_status(response)
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc

        if isinstance(result, dict) and result.get("error"):
            error = result["error"]
            if not isinstance(error, dict):
                raise RPCError(-1, str(error))
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        self._raise_for_status(response)
        if not isinstance(result, dict):
            raise RPCTransportError("RPC server returned an unexpected payload")
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if response.ok:
            return
        logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
        if response.status_code == 401:
            raise RPCTransportError(
                "Unauthorized (401). Ensure BITCOIN_RPC_USER/BITCOIN_RPC_PASSWORD "
                "(or your .ordpool.yaml) contain valid credentials.",
                status_code=response.status_code,
            )
        raise RPCTransportError(
            f"RPC server returned HTTP {response.status_code}; check the RPC URL.",
            status_code=response.status_code,
        )

    # Convenience wrappers -------------------------------------------------

    def getblockcount(self) -> int:
        return int(self.call("getblockcount"))

    def getblockhash(self, height: int) -> str:
        return self.call("getblockhash", [height])

    def getblock(self, block_hash: str, verbosity: int = 1) -> Dict[str, Any]:
        return self.call("getblock", [block_hash, verbosity])

    def getrawtransaction(self, txid: str, verbose: bool = False) -> Any:
        return self.call("getrawtransaction", [txid, int(verbose)])

    def get_raw_transaction(self, txid: str, verbose: bool = False) -> Any:
        return self.getrawtransaction(txid, verbose=verbose)

    def getblock_by_height(self, height: int) -> Dict[str, Any]:
        """Retrieve a block JSON payload by height using verbosity=2."""

        block_hash = self.getblockhash(height)
        return self.getblock(block_hash, verbosity=2)

    def get_best_height(self) -> int:
        """Return the current best chain height."""

        return self.getblockcount()
