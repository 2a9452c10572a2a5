from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError

CONFIG_ENV_VAR = "CONTRACT_LISTENER_CONFIG"


class ChainConfig(BaseModel):
    """Chain-specific settings for one listener instance."""

    name: str
    chain_id: Optional[int] = None
    rpc_endpoints: List[str] = Field(default_factory=list)
    reputation_url_template: Optional[str] = None
    balance_rpc_url: Optional[str] = None
    native_decimals: int = 18
    native_symbol: str = "ETH"

    @field_validator("rpc_endpoints")
    @classmethod
    def validate_endpoints(cls, v: List[str]) -> List[str]:
        urls = [u.strip() for u in v if u and u.strip()]
        if not urls:
            raise ValueError("rpc_endpoints must contain at least one URL")
        return urls

    @field_validator("reputation_url_template")
    @classmethod
    def validate_template(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if "{address}" not in v:
            raise ValueError("reputation_url_template must contain '{address}'")
        try:
            v.format(address="0x0")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"reputation_url_template has an unusable placeholder: {e!r}") from e
        return v

    @field_validator("native_decimals")
    @classmethod
    def validate_decimals(cls, v: int) -> int:
        if v < 0:
            raise ValueError("native_decimals must be >= 0")
        return v


class ListenerConfig(BaseModel):
    """Top-level configuration for the contract listener."""

    poll_interval_sec: float = 1.0
    rpc_timeout_sec: float = 10.0
    receipt_workers: int = 8
    batch_receipts: bool = False
    process_first_block: bool = False
    enrichment_timeout_sec: float = 10.0
    enrichment_attempts: int = 2
    display_buffer_size: int = 500
    chains: Dict[str, ChainConfig] = Field(default_factory=dict)

    @field_validator("poll_interval_sec", "rpc_timeout_sec", "enrichment_timeout_sec")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("receipt_workers", "enrichment_attempts", "display_buffer_size")
    @classmethod
    def validate_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    def chain(self, name: str) -> ChainConfig:
        """Return the config of a named chain.

        Raises:
            ConfigurationError: if the chain is not configured.
        """

        key = name.lower()
        if key not in self.chains:
            known = ", ".join(sorted(self.chains)) or "none"
            raise ConfigurationError(f"Unknown chain '{name}' (configured: {known})")
        return self.chains[key]


def load_config(path: Optional[Path] = None) -> ListenerConfig:
    """Load configuration from a YAML file.

    The file is resolved from ``path``, then the ``CONTRACT_LISTENER_CONFIG``
    environment variable, then the package-local ``config_defaults.yaml``.

    Raises:
        ConfigurationError: unreadable file or values failing validation.
    """

    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else Path(__file__).with_name("config_defaults.yaml")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read config {path}: {e}") from e

    chains = data.get("chains") or {}
    if isinstance(chains, dict):
        # Chain name defaults to its key.
        data["chains"] = {
            str(k).lower(): {"name": str(k).lower(), **(v or {})} for k, v in chains.items()
        }
    try:
        return ListenerConfig(**data)
    except (ValidationError, TypeError) as e:
        raise ConfigurationError(f"Invalid config {path}: {e}") from e


def get_default_config() -> ListenerConfig:
    """Return a ListenerConfig loaded from the default YAML shipped with the package."""

    return load_config()
