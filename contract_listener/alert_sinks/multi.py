from __future__ import annotations

"""Fan-out sink delivering every record to several sinks."""

import logging

from ..entities import TokenRecord, TransactionRecord
from ..sinks import RecordSink

logger = logging.getLogger(__name__)


class MultiSink:
    def __init__(self, *sinks: RecordSink) -> None:
        self.sinks = list(sinks)

    def send_transaction(self, record: TransactionRecord) -> None:
        for s in self.sinks:
            try:
                s.send_transaction(record)
            except Exception:  # noqa: BLE001
                # One failing sink must not starve the others.
                logger.exception("Sink %s failed on transaction %s", type(s).__name__, record.tx_hash)

    def send_token(self, record: TokenRecord) -> None:
        for s in self.sinks:
            try:
                s.send_token(record)
            except Exception:  # noqa: BLE001
                logger.exception("Sink %s failed on token %s", type(s).__name__, record.address)
