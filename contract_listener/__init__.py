"""New token contract listener.

Polls an EVM chain for newly created contracts, keeps the ones that expose
the ERC-20 read accessors (name, symbol, decimals, totalSupply) and decorates
them with reputation and deployer-balance data. It includes:

- Config schema and YAML defaults (one entry per chain)
- Cyclic RPC endpoint failover and a JSON-RPC chain client
- Block polling loop with at-most-once block processing
- Token classification of created contracts
- Best-effort enrichment clients
- Reporting sinks (log, in-memory display buffer, Slack)
- FastAPI display page with an on/off control
"""

__all__ = [
    "config_schema",
    "entities",
    "errors",
    "classifier",
    "poll_loop",
    "sinks",
]
