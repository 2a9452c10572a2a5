from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple


def hex_to_int(value: Any) -> Optional[int]:
    """Parse a JSON-RPC quantity (``"0x1a"``) into an int.

    Returns None for missing values. Raises ValueError on malformed input.
    """

    if value is None:
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Not a hex quantity: {value!r}")
    return int(value, 16)


def _lower(addr: Optional[str]) -> Optional[str]:
    return addr.lower() if isinstance(addr, str) and addr else None


@dataclass(frozen=True)
class Transaction:
    """Transaction as returned inside a full block.

    Attributes:
        hash: Transaction hash.
        to: Recipient address; None for contract creation.
        from_address: Sender address.
        block_number: Block height, when the node reports it.
        index: Position in the block.
    """

    hash: str
    to: Optional[str]
    from_address: Optional[str]
    block_number: Optional[int] = None
    index: Optional[int] = None

    @property
    def is_contract_creation(self) -> bool:
        return not self.to

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "Transaction":
        return cls(
            hash=raw["hash"],
            to=_lower(raw.get("to")),
            from_address=_lower(raw.get("from")),
            block_number=hex_to_int(raw.get("blockNumber")),
            index=hex_to_int(raw.get("transactionIndex")),
        )


@dataclass(frozen=True)
class Block:
    number: int
    hash: Optional[str]
    timestamp: Optional[int]
    transactions: Tuple[Transaction, ...] = ()

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "Block":
        txs = []
        for tx in raw.get("transactions") or []:
            # Hash-only lists come back when full objects were not requested.
            if isinstance(tx, dict):
                txs.append(Transaction.from_rpc(tx))
        return cls(
            number=hex_to_int(raw["number"]),
            hash=raw.get("hash"),
            timestamp=hex_to_int(raw.get("timestamp")),
            transactions=tuple(txs),
        )


@dataclass(frozen=True)
class Receipt:
    transaction_hash: str
    contract_address: Optional[str]
    from_address: Optional[str]
    block_number: Optional[int] = None
    status: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def created_contract(self) -> bool:
        return bool(self.contract_address)

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "Receipt":
        return cls(
            transaction_hash=raw["transactionHash"],
            contract_address=_lower(raw.get("contractAddress")),
            from_address=_lower(raw.get("from")),
            block_number=hex_to_int(raw.get("blockNumber")),
            status=hex_to_int(raw.get("status")),
            raw=dict(raw),
        )


@dataclass(frozen=True)
class ReputationResult:
    """Categorized address lists from the reputation service."""

    address: str
    safe: List[str] = field(default_factory=list)
    suspicious: List[str] = field(default_factory=list)
    new: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    source: str = "reputation"


@dataclass(frozen=True)
class BalanceResult:
    """Native balance of an address, in base units and in display units."""

    address: str
    balance_wei: int
    balance: str
    symbol: Optional[str] = None
    source: str = "balance"

    @property
    def display(self) -> str:
        return f"{self.balance} {self.symbol}" if self.symbol else self.balance


@dataclass(frozen=True)
class TokenRecord:
    """A freshly created contract that passed token classification."""

    address: str
    name: str
    symbol: str
    decimals: int
    raw_total_supply: int
    total_supply: int
    deployer: Optional[str]
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None
    chain: Optional[str] = None
    reputation: Optional[ReputationResult] = None
    deployer_balance: Optional[BalanceResult] = None

    @property
    def is_enriched(self) -> bool:
        return self.reputation is not None and self.deployer_balance is not None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        # Supplies and balances can exceed what JSON consumers handle as numbers.
        out["raw_total_supply"] = str(self.raw_total_supply)
        out["total_supply"] = str(self.total_supply)
        if out["deployer_balance"] is not None:
            out["deployer_balance"]["balance_wei"] = str(self.deployer_balance.balance_wei)
        return out


@dataclass(frozen=True)
class TransactionRecord:
    """Display record for one transaction of a processed block."""

    block: int
    tx_hash: str
    receipt: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"block": self.block, "txHash": self.tx_hash, "receipt": self.receipt}
