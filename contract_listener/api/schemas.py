from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..entities import TokenRecord, TransactionRecord


class TransactionOut(BaseModel):
    block: int
    txHash: str
    receipt: Optional[Dict[str, Any]] = None

    @classmethod
    def from_record(cls, rec: TransactionRecord) -> "TransactionOut":
        return cls(**rec.to_dict())


class ReputationOut(BaseModel):
    safe: List[str] = Field(default_factory=list)
    suspicious: List[str] = Field(default_factory=list)
    new: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


class BalanceOut(BaseModel):
    address: str
    balance_wei: str
    balance: str
    symbol: Optional[str] = None


class TokenOut(BaseModel):
    address: str
    name: str
    symbol: str
    decimals: int
    total_supply: str
    raw_total_supply: str
    deployer: Optional[str] = None
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None
    chain: Optional[str] = None
    reputation: Optional[ReputationOut] = None
    deployer_balance: Optional[BalanceOut] = None

    @classmethod
    def from_record(cls, rec: TokenRecord) -> "TokenOut":
        return cls.model_validate(rec.to_dict())


class ListenerStatus(BaseModel):
    chain: Optional[str] = None
    chain_id: Optional[int] = None
    running: bool
    state: str
    last_processed: Optional[int] = None
    endpoint: str
    stats: Dict[str, int] = Field(default_factory=dict)
