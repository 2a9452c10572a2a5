from __future__ import annotations

"""Slack webhook sink for detected tokens.

Usage:
    export SLACK_WEBHOOK_URL="https://hooks.slack.com/services/..."
    from contract_listener.alert_sinks.slack import SlackSink
    sink = SlackSink()  # or SlackSink(webhook_url="...")

Only TokenRecords are posted; per-transaction records are ignored.
"""

import logging
import os
from typing import Optional

import requests

from ..entities import TokenRecord, TransactionRecord


def format_token_message(record: TokenRecord) -> str:
    parts = [
        f"[{record.chain or 'evm'}] New token {record.name} ({record.symbol})",
        f"address={record.address}",
        f"supply={record.total_supply}",
        f"deployer={record.deployer}",
    ]
    if record.deployer_balance is not None:
        parts.append(f"deployer_balance={record.deployer_balance.display}")
    if record.reputation is not None:
        rep = record.reputation
        parts.append(
            f"reputation(safe={len(rep.safe)}, suspicious={len(rep.suspicious)}, new={len(rep.new)}, failed={len(rep.failed)})"
        )
    return " | ".join(parts)


class SlackSink:
    """Slack incoming-webhook sink.

    Uses the webhook_url argument or SLACK_WEBHOOK_URL. Without a webhook the
    sink is a no-op. Delivery failures are logged and never interrupt the
    listener.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_sec: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.webhook_url = webhook_url or os.environ.get("SLACK_WEBHOOK_URL", "")
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def send_transaction(self, record: TransactionRecord) -> None:
        return None

    def send_token(self, record: TokenRecord) -> None:
        if not self.webhook_url:
            return
        try:
            resp = self.session.post(self.webhook_url, json={"text": format_token_message(record)}, timeout=self.timeout_sec)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            self.logger.warning("Slack delivery failed for %s: %s", record.address, e)
