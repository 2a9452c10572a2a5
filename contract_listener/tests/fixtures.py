from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests

from ..classifier import SEL_DECIMALS, SEL_NAME, SEL_SYMBOL, SEL_TOTAL_SUPPLY
from ..entities import Block, Receipt, Transaction
from ..errors import RpcError, RpcResponseError

DEPLOYER = "0x00000000000000000000000000000000000000d1"


# ---- ABI helpers ----


def abi_uint(n: int) -> str:
    return "0x" + n.to_bytes(32, "big").hex()


def abi_string(s: str) -> str:
    raw = s.encode("utf-8")
    padded = ((len(raw) + 31) // 32) * 32
    return (
        "0x"
        + (32).to_bytes(32, "big").hex()
        + len(raw).to_bytes(32, "big").hex()
        + raw.hex().ljust(padded * 2, "0")
    )


def abi_bytes32(s: str) -> str:
    return "0x" + s.encode("utf-8").hex().ljust(64, "0")


def token_contract(name: str = "Test Token", symbol: str = "TST", decimals: int = 18, supply: int = 10 ** 27) -> Dict[str, Any]:
    return {
        SEL_NAME: abi_string(name),
        SEL_SYMBOL: abi_string(symbol),
        SEL_DECIMALS: abi_uint(decimals),
        SEL_TOTAL_SUPPLY: abi_uint(supply),
    }


# ---- chain data helpers ----


def creation_tx(tx_hash: str, sender: str = DEPLOYER) -> Transaction:
    return Transaction(hash=tx_hash, to=None, from_address=sender)


def transfer_tx(tx_hash: str, to: str = "0x00000000000000000000000000000000000000aa") -> Transaction:
    return Transaction(hash=tx_hash, to=to, from_address=DEPLOYER)


def make_block(number: int, txs: Sequence[Transaction] = ()) -> Block:
    return Block(number=number, hash=f"0xblock{number}", timestamp=1_700_000_000 + number, transactions=tuple(txs))


def make_receipt(tx_hash: str, contract: Optional[str], block_number: int = 0, sender: str = DEPLOYER) -> Receipt:
    raw = {
        "transactionHash": tx_hash,
        "contractAddress": contract,
        "from": sender,
        "blockNumber": hex(block_number),
        "status": "0x1",
    }
    return Receipt.from_rpc(raw)


# ---- scripted chain ----


class FakeChain:
    """Scripted node state shared by every client bound to it.

    heights: successive eth_blockNumber answers (an Exception entry is raised).
    blocks / receipts: lookups by height / tx hash (Exception values are raised).
    contracts: address -> {selector: hex result or Exception}.
    """

    def __init__(
        self,
        heights: Sequence[Any] = (),
        blocks: Optional[Dict[int, Any]] = None,
        receipts: Optional[Dict[str, Any]] = None,
        contracts: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> None:
        self.heights = list(heights)
        self.blocks = dict(blocks or {})
        self.receipts = dict(receipts or {})
        self.contracts = dict(contracts or {})
        self.calls: List[Tuple[str, str, Any]] = []
        self.clients: List["FakeChainClient"] = []

    def client_for(self, url: str) -> "FakeChainClient":
        client = FakeChainClient(url, self)
        self.clients.append(client)
        return client

    def methods(self) -> List[str]:
        return [m for (_, m, _) in self.calls]

    def block_fetches(self) -> List[int]:
        return [arg for (_, m, arg) in self.calls if m == "eth_getBlockByNumber"]


def _value(val: Any) -> Any:
    if isinstance(val, Exception):
        raise val
    return val


class FakeChainClient:
    def __init__(self, url: str, chain: FakeChain) -> None:
        self.url = url
        self.chain = chain

    def latest_block_height(self) -> int:
        self.chain.calls.append((self.url, "eth_blockNumber", None))
        if not self.chain.heights:
            raise RpcError("no scripted height", url=self.url)
        return _value(self.chain.heights.pop(0))

    def get_block_with_transactions(self, height: int) -> Optional[Block]:
        self.chain.calls.append((self.url, "eth_getBlockByNumber", height))
        return _value(self.chain.blocks.get(height))

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        self.chain.calls.append((self.url, "eth_getTransactionReceipt", tx_hash))
        return _value(self.chain.receipts.get(tx_hash))

    def get_transaction_receipts(self, tx_hashes: Sequence[str]) -> List[Optional[Receipt]]:
        self.chain.calls.append((self.url, "batch_eth_getTransactionReceipt", tuple(tx_hashes)))
        return [_value(self.chain.receipts.get(h)) for h in tx_hashes]

    def call(self, to: str, data: str) -> str:
        self.chain.calls.append((self.url, "eth_call", (to, data)))
        contract = self.chain.contracts.get(to)
        if contract is None or data not in contract:
            raise RpcResponseError("execution reverted", code=3, url=self.url)
        return _value(contract[data])


# ---- HTTP fakes ----


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, invalid_json: bool = False) -> None:
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")


Handler = Callable[[str, Any], FakeResponse]


class FakeSession:
    """Stands in for requests.Session; a handler maps (url, json/None) to a response."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.posts: List[Tuple[str, Any, Any]] = []
        self.gets: List[Tuple[str, Any]] = []

    def post(self, url: str, json: Any = None, timeout: Any = None) -> FakeResponse:
        self.posts.append((url, json, timeout))
        return self.handler(url, json)

    def get(self, url: str, timeout: Any = None, **kwargs: Any) -> FakeResponse:
        self.gets.append((url, timeout))
        return self.handler(url, None)


def rpc_result(result: Any, req_id: int = 1) -> FakeResponse:
    return FakeResponse(200, {"jsonrpc": "2.0", "id": req_id, "result": result})


def raising(exc: Exception) -> Handler:
    def _handler(url: str, payload: Any) -> FakeResponse:
        raise exc

    return _handler
