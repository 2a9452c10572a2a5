"""EVM JSON-RPC client bound to a single endpoint."""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..entities import Block, Receipt, hex_to_int
from ..errors import RpcError, RpcResponseError

DEFAULT_TIMEOUT_SEC = 10.0


class ChainClient:
    """Thin JSON-RPC wrapper around one endpoint.

    Every failure (network, timeout, HTTP status, malformed payload) raises
    RpcError. The client never retries or fails over by itself; the caller
    owns endpoint rotation.
    """

    def __init__(self, url: str, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT_SEC) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    def __repr__(self) -> str:
        return f"ChainClient({self.url!r})"

    def _post(self, payload: Any) -> Any:
        try:
            res = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise RpcError(f"Timeout after {self.timeout}s", url=self.url) from e
        except requests.exceptions.RequestException as e:
            raise RpcError(str(e), url=self.url) from e
        if res.status_code != 200:
            raise RpcError(f"HTTP {res.status_code}", url=self.url)
        try:
            return res.json()
        except ValueError as e:
            raise RpcError(f"Invalid JSON response: {e}", url=self.url) from e

    def _unwrap(self, method: str, data: Any) -> Any:
        if not isinstance(data, dict):
            raise RpcError(f"Unexpected {method} response: {data!r}", url=self.url)
        if data.get("error") is not None:
            err = data["error"]
            if isinstance(err, dict):
                raise RpcResponseError(
                    f"{method}: {err.get('message')}", code=err.get("code"), data=err.get("data"), url=self.url
                )
            raise RpcResponseError(f"{method}: {err}", url=self.url)
        if "result" not in data:
            raise RpcError(f"{method}: response without result", url=self.url)
        return data["result"]

    def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        return self._unwrap(method, self._post(payload))

    def latest_block_height(self) -> int:
        res = self._rpc("eth_blockNumber", [])
        try:
            height = hex_to_int(res)
        except ValueError as e:
            raise RpcError(f"eth_blockNumber: bad quantity {res!r}", url=self.url) from e
        if height is None:
            raise RpcError("eth_blockNumber: empty result", url=self.url)
        return height

    def get_block_with_transactions(self, height: int) -> Optional[Block]:
        res = self._rpc("eth_getBlockByNumber", [hex(height), True])
        if res is None:
            return None
        try:
            return Block.from_rpc(res)
        except (KeyError, ValueError, TypeError) as e:
            raise RpcError(f"eth_getBlockByNumber: malformed block {height}: {e}", url=self.url) from e

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        res = self._rpc("eth_getTransactionReceipt", [tx_hash])
        return self._parse_receipt(res)

    def get_transaction_receipts(self, tx_hashes: Sequence[str]) -> List[Optional[Receipt]]:
        """Fetch several receipts in one batched request, in request order."""

        if not tx_hashes:
            return []
        ids: Dict[int, int] = {}
        batch = []
        for pos, h in enumerate(tx_hashes):
            req_id = next(self._ids)
            ids[req_id] = pos
            batch.append({"jsonrpc": "2.0", "id": req_id, "method": "eth_getTransactionReceipt", "params": [h]})
        data = self._post(batch)
        if not isinstance(data, list):
            # Some providers answer a rejected batch with a single error object.
            self._unwrap("eth_getTransactionReceipt", data)
            raise RpcError("Batch request not supported", url=self.url)

        out: List[Optional[Receipt]] = [None] * len(tx_hashes)
        seen = set()
        for item in data:
            pos = ids.get(item.get("id")) if isinstance(item, dict) else None
            if pos is None:
                raise RpcError(f"Unexpected batch item: {item!r}", url=self.url)
            out[pos] = self._parse_receipt(self._unwrap("eth_getTransactionReceipt", item))
            seen.add(pos)
        if len(seen) != len(tx_hashes):
            raise RpcError(f"Batch returned {len(seen)} of {len(tx_hashes)} receipts", url=self.url)
        return out

    def _parse_receipt(self, res: Any) -> Optional[Receipt]:
        if res is None:
            return None
        try:
            return Receipt.from_rpc(res)
        except (KeyError, ValueError, TypeError) as e:
            raise RpcError(f"eth_getTransactionReceipt: malformed receipt: {e}", url=self.url) from e

    def call(self, to: str, data: str) -> str:
        """``eth_call`` against the latest block; returns the raw hex result."""

        res = self._rpc("eth_call", [{"to": to, "data": data}, "latest"])
        if not isinstance(res, str):
            raise RpcError(f"eth_call: unexpected result {res!r}", url=self.url)
        return res

    def get_balance(self, address: str) -> int:
        res = self._rpc("eth_getBalance", [address, "latest"])
        try:
            value = hex_to_int(res)
        except ValueError as e:
            raise RpcError(f"eth_getBalance: bad quantity {res!r}", url=self.url) from e
        if value is None:
            raise RpcError("eth_getBalance: empty result", url=self.url)
        return value
