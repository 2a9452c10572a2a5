from __future__ import annotations

import logging
from typing import Optional, Protocol

from .entities import Receipt, TokenRecord
from .errors import ClassificationMismatch, RpcError
from .io_connectors.enrichment import EnrichmentClient

# ERC-20 read-only accessors (4-byte selectors)
SEL_NAME = "0x06fdde03"
SEL_SYMBOL = "0x95d89b41"
SEL_DECIMALS = "0x313ce567"
SEL_TOTAL_SUPPLY = "0x18160ddd"

MAX_DECIMALS = 255
WORD = 32


class CallClient(Protocol):
    def call(self, to: str, data: str) -> str:  # pragma: no cover - interface only
        ...


def _hex_bytes(result: str) -> bytes:
    if not isinstance(result, str) or not result.startswith("0x"):
        raise ClassificationMismatch(f"Not a hex result: {result!r}")
    raw = result[2:]
    if not raw:
        raise ClassificationMismatch("Empty return data")
    try:
        return bytes.fromhex(raw)
    except ValueError as e:
        raise ClassificationMismatch(f"Malformed return data: {e}") from e


def decode_uint256(result: str) -> int:
    data = _hex_bytes(result)
    if len(data) < WORD:
        raise ClassificationMismatch(f"Short uint256 return ({len(data)} bytes)")
    return int.from_bytes(data[:WORD], "big")


def decode_string(result: str) -> str:
    """Decode an ABI ``string`` return, falling back to a null-padded ``bytes32``."""

    data = _hex_bytes(result)
    if len(data) >= 2 * WORD:
        offset = int.from_bytes(data[:WORD], "big")
        if offset + WORD <= len(data):
            length = int.from_bytes(data[offset:offset + WORD], "big")
            start = offset + WORD
            if start + length <= len(data):
                return data[start:start + length].decode("utf-8", errors="replace")
    if len(data) == WORD:
        return data.rstrip(b"\x00").decode("utf-8", errors="replace")
    raise ClassificationMismatch(f"Undecodable string return ({len(data)} bytes)")


def adjusted_supply(raw_total_supply: int, decimals: int) -> int:
    """Total supply in whole token units: ``raw // 10 ** decimals``."""

    return raw_total_supply // (10 ** decimals)


class ContractClassifier:
    """Decide whether a freshly created contract exposes the token accessors.

    Contracts that fail any accessor call are rejected silently; this is the
    common case and not an error.
    """

    def __init__(self, enrichment: Optional[EnrichmentClient] = None, chain: Optional[str] = None) -> None:
        self.enrichment = enrichment
        self.chain = chain
        self.logger = logging.getLogger(self.__class__.__name__)

    def _call(self, client: CallClient, address: str, selector: str) -> str:
        try:
            return client.call(address, selector)
        except RpcError as e:
            raise ClassificationMismatch(f"{selector} call failed: {e}") from e

    def read_token_info(self, client: CallClient, address: str) -> tuple[str, str, int, int]:
        """Read (name, symbol, decimals, raw_total_supply).

        Raises:
            ClassificationMismatch: if any accessor is missing or malformed.
        """

        name = decode_string(self._call(client, address, SEL_NAME))
        symbol = decode_string(self._call(client, address, SEL_SYMBOL))
        decimals = decode_uint256(self._call(client, address, SEL_DECIMALS))
        if decimals > MAX_DECIMALS:
            raise ClassificationMismatch(f"decimals out of range: {decimals}")
        total_supply = decode_uint256(self._call(client, address, SEL_TOTAL_SUPPLY))
        return name, symbol, decimals, total_supply

    def classify(self, receipt: Receipt, client: CallClient) -> Optional[TokenRecord]:
        address = receipt.contract_address
        if not address:
            return None
        try:
            name, symbol, decimals, raw_supply = self.read_token_info(client, address)
        except ClassificationMismatch as e:
            self.logger.debug("Contract %s rejected: %s", address, e)
            return None

        reputation = None
        deployer_balance = None
        if self.enrichment is not None:
            reputation = self.enrichment.reputation(address)
            deployer_balance = self.enrichment.balance(receipt.from_address)

        return TokenRecord(
            address=address,
            name=name,
            symbol=symbol,
            decimals=decimals,
            raw_total_supply=raw_supply,
            total_supply=adjusted_supply(raw_supply, decimals),
            deployer=receipt.from_address,
            block_number=receipt.block_number,
            transaction_hash=receipt.transaction_hash,
            chain=self.chain,
            reputation=reputation,
            deployer_balance=deployer_balance,
        )
