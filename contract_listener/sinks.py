"""Reporting sinks for processed transactions and detected tokens.

A sink receives every transaction of a processed block as a
TransactionRecord and every classified contract as a TokenRecord. Records
are handed over once and not stored beyond what a sink keeps itself.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, List, Protocol

from .entities import TokenRecord, TransactionRecord


class RecordSink(Protocol):
    def send_transaction(self, record: TransactionRecord) -> None:  # pragma: no cover - interface only
        ...

    def send_token(self, record: TokenRecord) -> None:  # pragma: no cover - interface only
        ...


class LoggingSink:
    """Default sink: log lines only."""

    def __init__(self, log_transactions: bool = False) -> None:
        self.log_transactions = log_transactions
        self.logger = logging.getLogger(self.__class__.__name__)

    def send_transaction(self, record: TransactionRecord) -> None:
        if self.log_transactions or record.receipt is not None:
            self.logger.debug("Block: %d, Tx Hash: %s", record.block, record.tx_hash)

    def send_token(self, record: TokenRecord) -> None:
        self.logger.info(
            "New token %s (%s) at %s, supply=%d, decimals=%d, deployer=%s",
            record.name,
            record.symbol,
            record.address,
            record.total_supply,
            record.decimals,
            record.deployer,
        )


class MemorySink:
    """Keeps the most recent records in bounded buffers for the display page."""

    def __init__(self, maxlen: int = 500) -> None:
        self._transactions: Deque[TransactionRecord] = deque(maxlen=maxlen)
        self._tokens: Deque[TokenRecord] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def send_transaction(self, record: TransactionRecord) -> None:
        with self._lock:
            self._transactions.append(record)

    def send_token(self, record: TokenRecord) -> None:
        with self._lock:
            self._tokens.append(record)

    def transactions(self) -> List[TransactionRecord]:
        with self._lock:
            return list(self._transactions)

    def tokens(self) -> List[TokenRecord]:
        with self._lock:
            return list(self._tokens)

    def clear(self) -> None:
        with self._lock:
            self._transactions.clear()
            self._tokens.clear()
