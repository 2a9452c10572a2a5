from __future__ import annotations

"""
Command-line runner for the contract listener.

Examples (from the repo root):
  python -m contract_listener.cli --chain base
  python -m contract_listener.cli --chain bnb --once
  python -m contract_listener.cli --chain base --serve --port 8080
  python -m contract_listener.cli --config ./my_listener.yaml --chain base --log-level DEBUG

Environment (optional):
- CONTRACT_LISTENER_CONFIG: YAML config path when --config is not given
- SLACK_WEBHOOK_URL: post detected tokens to Slack
"""

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional

from .alert_sinks.multi import MultiSink
from .alert_sinks.slack import SlackSink
from .config_schema import load_config
from .errors import ConfigurationError
from .poll_loop import PollLoop
from .sinks import LoggingSink, MemorySink, RecordSink


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Watch a chain for newly deployed token contracts")
    p.add_argument("--config", type=str, default=None, help="Path to YAML config to override defaults")
    p.add_argument("--chain", type=str, default="base", help="Configured chain name (e.g. base, bnb)")
    p.add_argument("--once", action="store_true", help="Run a single polling cycle and exit")
    p.add_argument("--serve", action="store_true", help="Serve the display page while listening")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level), format="%(asctime)s %(levelname)s %(name)s - %(message)s"
    )
    logger = logging.getLogger("contract_listener")

    try:
        cfg = load_config(Path(args.config) if args.config else None)
        memory = MemorySink(maxlen=cfg.display_buffer_size)
        sinks: List[RecordSink] = [LoggingSink(), memory]
        slack = SlackSink()
        if slack.enabled:
            sinks.append(slack)
        loop = PollLoop.from_config(cfg, args.chain, sink=MultiSink(*sinks))
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2

    if args.once:
        # A single cycle processes the current head block.
        loop.process_first_block = True
        loop.tick()
        logger.info("Done. last_processed=%s stats=%s", loop.last_processed, loop.stats)
        return 0

    if args.serve:
        import uvicorn

        from .api.server import create_app

        loop.start()
        try:
            uvicorn.run(create_app(loop, memory), host=args.host, port=args.port)
        finally:
            loop.stop(timeout=5.0)
        return 0

    loop.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:  # pragma: no cover - interactive
        logger.info("Interrupted")
    finally:
        loop.stop(timeout=5.0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
