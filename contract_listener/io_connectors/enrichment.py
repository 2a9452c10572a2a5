"""Reputation and balance lookups used to decorate detected tokens.

Both lookups are best-effort: any failure is logged and reported as None so
that detection never depends on third-party availability.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..entities import BalanceResult, ReputationResult
from ..errors import EnrichmentError, RpcError
from .evm_rpc import ChainClient

REPUTATION_CATEGORIES = ("safe", "suspicious", "new", "failed")


def format_units(value: int, decimals: int) -> str:
    """Render a base-unit integer as a decimal string, e.g. 1500000000000000000 -> "1.5"."""

    if decimals == 0:
        return str(value)
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10 ** decimals)
    frac_s = f"{frac:0{decimals}d}".rstrip("0")
    return f"{sign}{whole}.{frac_s}" if frac_s else f"{sign}{whole}"


def _address_list(val: Any) -> List[str]:
    if not isinstance(val, list):
        return []
    out = []
    for it in val:
        if isinstance(it, str):
            out.append(it)
        elif isinstance(it, dict) and isinstance(it.get("address"), str):
            out.append(it["address"])
    return out


class EnrichmentClient:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        reputation_url_template: Optional[str] = None,
        balance_rpc_url: Optional[str] = None,
        native_decimals: int = 18,
        native_symbol: Optional[str] = None,
        timeout: float = 10.0,
        attempts: int = 2,
    ) -> None:
        self.session = session or requests.Session()
        self.reputation_url_template = reputation_url_template
        self.native_decimals = native_decimals
        self.native_symbol = native_symbol
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self._balance_client = (
            ChainClient(balance_rpc_url, session=self.session, timeout=timeout) if balance_rpc_url else None
        )
        self.logger = logging.getLogger(self.__class__.__name__)

    def _get_json(self, url: str) -> Dict[str, Any]:
        @retry(
            reraise=True,
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=0.4, min=0.2, max=2.0),
            retry=retry_if_exception_type(EnrichmentError),
        )
        def _get() -> Dict[str, Any]:
            try:
                resp = self.session.get(url, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                raise EnrichmentError(str(e)) from e
            if resp.status_code != 200:
                raise EnrichmentError(f"HTTP {resp.status_code}")
            try:
                data = resp.json()
            except ValueError as e:
                raise EnrichmentError(f"Invalid JSON: {e}") from e
            if not isinstance(data, dict):
                raise EnrichmentError(f"Unexpected payload type {type(data).__name__}")
            return data

        return _get()

    def fetch_reputation(self, address: str) -> ReputationResult:
        """Reputation lookup; raises EnrichmentError on any failure."""

        if not self.reputation_url_template:
            raise EnrichmentError("No reputation service configured")
        try:
            url = self.reputation_url_template.format(address=address)
        except (KeyError, IndexError, ValueError) as e:
            raise EnrichmentError(f"Bad reputation URL template: {e!r}") from e
        data = self._get_json(url)
        results = data.get("results")
        if not isinstance(results, dict):
            raise EnrichmentError("Reputation payload has no 'results'")
        return ReputationResult(
            address=address,
            **{cat: _address_list(results.get(cat)) for cat in REPUTATION_CATEGORIES},
        )

    def fetch_balance(self, address: str) -> BalanceResult:
        """Native balance lookup; raises EnrichmentError on any failure."""

        if self._balance_client is None:
            raise EnrichmentError("No balance RPC configured")
        try:
            wei = self._balance_client.get_balance(address)
        except RpcError as e:
            raise EnrichmentError(f"eth_getBalance failed: {e}") from e
        return BalanceResult(
            address=address,
            balance_wei=wei,
            balance=format_units(wei, self.native_decimals),
            symbol=self.native_symbol,
        )

    def reputation(self, address: str) -> Optional[ReputationResult]:
        if not self.reputation_url_template:
            return None
        try:
            return self.fetch_reputation(address)
        except EnrichmentError as e:
            self.logger.warning("Reputation lookup failed for %s: %s", address, e)
            return None

    def balance(self, address: Optional[str]) -> Optional[BalanceResult]:
        if not address or self._balance_client is None:
            return None
        try:
            return self.fetch_balance(address)
        except EnrichmentError as e:
            self.logger.warning("Balance lookup failed for %s: %s", address, e)
            return None
