"""Block polling loop with endpoint failover.

Each tick reads the latest block height, and when the chain has advanced,
claims that height and processes the block once: every transaction is
reported, receipts of contract-creation transactions are fetched, and the
created contracts are handed to the classifier.

Processing is at-most-once. The height is claimed before the block is
fetched, so a block whose processing fails is skipped for good. Any RPC
failure rotates to the next endpoint and abandons the current tick.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

import requests

from .classifier import ContractClassifier
from .config_schema import ListenerConfig
from .entities import Block, Receipt, TokenRecord, Transaction, TransactionRecord
from .errors import RpcError
from .io_connectors.enrichment import EnrichmentClient
from .io_connectors.evm_rpc import ChainClient
from .io_connectors.rpc_endpoints import EndpointRotator
from .sinks import LoggingSink, RecordSink

ClientFactory = Callable[[str], ChainClient]


class LoopState(str, Enum):
    IDLE = "idle"
    FETCHING_HEIGHT = "fetching_height"
    PROCESSING_BLOCK = "processing_block"


@dataclass
class LoopStats:
    ticks: int = 0
    busy_ticks: int = 0
    blocks_processed: int = 0
    blocks_skipped: int = 0
    rotations: int = 0
    contracts_seen: int = 0
    tokens_found: int = 0


class PollLoop:
    """Single-in-flight block poller for one chain.

    Args:
        rotator: Endpoint set to fail over across.
        classifier: Token classifier for created contracts.
        sink: Receives TransactionRecords and TokenRecords.
        client_factory: Builds a ChainClient for an endpoint URL.
        poll_interval_sec: Tick period of the background driver.
        receipt_workers: Max concurrent receipt requests per block.
        batch_receipts: Fetch receipts in one batched request instead.
        process_first_block: Process the first observed height instead of
            only recording it as the starting point.
        chain: Chain name used in logs.
        chain_id: Numeric chain id, reported in the listener status.
    """

    def __init__(
        self,
        rotator: EndpointRotator,
        classifier: ContractClassifier,
        sink: Optional[RecordSink] = None,
        *,
        client_factory: Optional[ClientFactory] = None,
        poll_interval_sec: float = 1.0,
        receipt_workers: int = 8,
        batch_receipts: bool = False,
        process_first_block: bool = False,
        chain: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> None:
        self.rotator = rotator
        self.classifier = classifier
        self.sink: RecordSink = sink if sink is not None else LoggingSink()
        self._client_factory: ClientFactory = client_factory or ChainClient
        self.poll_interval_sec = poll_interval_sec
        self.receipt_workers = max(1, receipt_workers)
        self.batch_receipts = batch_receipts
        self.process_first_block = process_first_block
        self.chain = chain
        self.chain_id = chain_id

        self.client = self._client_factory(self.rotator.current())
        self._last_processed: Optional[int] = None
        self._state = LoopState.IDLE
        self._stats = LoopStats()
        self._processing = threading.Lock()
        self._stats_lock = threading.Lock()
        self._driver_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(
        cls,
        cfg: ListenerConfig,
        chain_name: str,
        sink: Optional[RecordSink] = None,
        session: Optional[requests.Session] = None,
    ) -> "PollLoop":
        """Wire a loop for one configured chain.

        Raises:
            ConfigurationError: unknown chain or empty endpoint list.
        """

        chain_cfg = cfg.chain(chain_name)
        sess = session or requests.Session()
        enrichment = EnrichmentClient(
            session=sess,
            reputation_url_template=chain_cfg.reputation_url_template,
            balance_rpc_url=chain_cfg.balance_rpc_url,
            native_decimals=chain_cfg.native_decimals,
            native_symbol=chain_cfg.native_symbol,
            timeout=cfg.enrichment_timeout_sec,
            attempts=cfg.enrichment_attempts,
        )
        return cls(
            EndpointRotator(chain_cfg.rpc_endpoints),
            ContractClassifier(enrichment=enrichment, chain=chain_cfg.name),
            sink,
            client_factory=lambda url: ChainClient(url, session=sess, timeout=cfg.rpc_timeout_sec),
            poll_interval_sec=cfg.poll_interval_sec,
            receipt_workers=cfg.receipt_workers,
            batch_receipts=cfg.batch_receipts,
            process_first_block=cfg.process_first_block,
            chain=chain_cfg.name,
            chain_id=chain_cfg.chain_id,
        )

    # ---- state ----

    @property
    def last_processed(self) -> Optional[int]:
        return self._last_processed

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    @property
    def stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return asdict(self._stats)

    def _count(self, field_name: str, n: int = 1) -> None:
        with self._stats_lock:
            setattr(self._stats, field_name, getattr(self._stats, field_name) + n)

    def rotate_endpoint(self, reason: object = None) -> str:
        old = self.client.url
        url = self.rotator.rotate()
        self.client = self._client_factory(url)
        self._count("rotations")
        self.logger.warning("RPC endpoint %s failed (%s); switched to %s", old, reason, url)
        return url

    # ---- tick ----

    def tick(self) -> bool:
        """Run one polling cycle.

        Returns True when a block processing attempt started. A tick that
        finds another one in progress returns False without doing anything.
        """

        if not self._processing.acquire(blocking=False):
            self._count("busy_ticks")
            self.logger.debug("Tick skipped: block processing in progress")
            return False
        try:
            self._count("ticks")
            self._state = LoopState.FETCHING_HEIGHT
            try:
                height = self.client.latest_block_height()
            except RpcError as e:
                self.rotate_endpoint(e)
                return False

            last = self._last_processed
            if last is None and not self.process_first_block:
                self._last_processed = height
                self.logger.info("Listening from block %d on %s", height, self.client.url)
                return False
            if last is not None and height <= last:
                return False

            # Claimed before processing: a failed block is not retried.
            self._last_processed = height
            self._state = LoopState.PROCESSING_BLOCK
            if last is not None and height > last + 1:
                self.logger.debug("Jumped from block %d to %d", last, height)
            self.process_block(height)
            return True
        finally:
            self._state = LoopState.IDLE
            self._processing.release()

    def process_block(self, height: int) -> List[TokenRecord]:
        client = self.client
        try:
            block = client.get_block_with_transactions(height)
        except RpcError as e:
            self._count("blocks_skipped")
            self.logger.warning("Skipping block %d: %s", height, e)
            self.rotate_endpoint(e)
            return []
        if block is None:
            self._count("blocks_skipped")
            self.logger.warning("Skipping block %d: not available on %s", height, client.url)
            return []

        creations = [tx for tx in block.transactions if tx.is_contract_creation]
        try:
            receipts = self._fetch_receipts(client, creations)
        except RpcError as e:
            self._count("blocks_skipped")
            self.logger.warning("Skipping block %d: receipt fetch failed: %s", height, e)
            self.rotate_endpoint(e)
            return []

        by_hash: Dict[str, Optional[Receipt]] = {tx.hash: r for tx, r in zip(creations, receipts)}
        tokens: List[TokenRecord] = []
        for tx in block.transactions:
            receipt = by_hash.get(tx.hash)
            self._emit_transaction(block, tx, receipt)
            if receipt is None or not receipt.created_contract:
                continue
            self._count("contracts_seen")
            token = self.classifier.classify(receipt, client)
            if token is None:
                continue
            self._count("tokens_found")
            tokens.append(token)
            self._emit_token(token)

        self._count("blocks_processed")
        self.logger.debug(
            "Block %d: %d txs, %d creations, %d tokens", height, len(block.transactions), len(creations), len(tokens)
        )
        return tokens

    def _fetch_receipts(self, client: ChainClient, txs: Sequence[Transaction]) -> List[Optional[Receipt]]:
        if not txs:
            return []
        hashes = [tx.hash for tx in txs]
        if self.batch_receipts:
            return client.get_transaction_receipts(hashes)
        if self.receipt_workers == 1 or len(hashes) == 1:
            return [client.get_transaction_receipt(h) for h in hashes]
        with ThreadPoolExecutor(max_workers=min(self.receipt_workers, len(hashes))) as pool:
            return list(pool.map(client.get_transaction_receipt, hashes))

    def _emit_transaction(self, block: Block, tx: Transaction, receipt: Optional[Receipt]) -> None:
        record = TransactionRecord(
            block=block.number,
            tx_hash=tx.hash,
            receipt=receipt.raw if receipt is not None and receipt.created_contract else None,
        )
        try:
            self.sink.send_transaction(record)
        except Exception:  # noqa: BLE001
            self.logger.exception("Sink failed on transaction %s", tx.hash)

    def _emit_token(self, token: TokenRecord) -> None:
        try:
            self.sink.send_token(token)
        except Exception:  # noqa: BLE001
            self.logger.exception("Sink failed on token %s", token.address)

    # ---- driver ----

    def start(self) -> bool:
        """Start the background timer. Returns False if already running."""

        with self._driver_lock:
            if self.running:
                return False
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run, args=(self._stop_event,), name=f"poll-loop-{self.chain or 'evm'}", daemon=True
            )
            self._thread.start()
            self.logger.info("Listener started (%s, every %.2fs)", self.chain or "evm", self.poll_interval_sec)
            return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Disarm the timer; an in-flight tick finishes first."""

        with self._driver_lock:
            self._stop_event.set()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self.logger.info("Listener stopped (%s)", self.chain or "evm")

    def _run(self, stop_event: threading.Event) -> None:
        interval = self.poll_interval_sec
        next_at = time.monotonic()
        while not stop_event.is_set():
            try:
                self.tick()
            except Exception:  # noqa: BLE001
                self.logger.exception("Unexpected error during tick")
            next_at += interval
            now = time.monotonic()
            if next_at < now:
                # Ticks due while a block was processing are dropped, not queued.
                missed = int((now - next_at) // interval) + 1
                self._count("busy_ticks", missed)
                next_at += missed * interval
            if stop_event.wait(next_at - now):
                break
