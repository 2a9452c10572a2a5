from __future__ import annotations

import html
import json
from typing import List

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from ..poll_loop import PollLoop
from ..sinks import MemorySink
from .schemas import ListenerStatus, TokenOut, TransactionOut


def _status(loop: PollLoop) -> ListenerStatus:
    return ListenerStatus(
        chain=loop.chain,
        chain_id=loop.chain_id,
        running=loop.running,
        state=loop.state.value,
        last_processed=loop.last_processed,
        endpoint=loop.client.url,
        stats=loop.stats,
    )


def render_page(loop: PollLoop, memory: MemorySink) -> str:
    """Plain HTML view: latest block, transaction list and detected tokens."""

    title = f"{(loop.chain or 'EVM').capitalize()} Block Listener"
    latest = (
        f"Latest Block: {loop.last_processed}" if loop.last_processed is not None else "Waiting for new blocks..."
    )
    tx_items: List[str] = []
    for rec in reversed(memory.transactions()):
        item = f"Block: {rec.block}, Tx Hash: {html.escape(rec.tx_hash)}"
        if rec.receipt is not None:
            item += f"<pre>{html.escape(json.dumps(rec.receipt, indent=2))}</pre>"
        tx_items.append(f"<li>{item}</li>")
    token_items = [
        "<li>{name} ({symbol}) {address} supply={supply} deployer={deployer}{balance}</li>".format(
            name=html.escape(t.name),
            symbol=html.escape(t.symbol),
            address=html.escape(t.address),
            supply=t.total_supply,
            deployer=html.escape(t.deployer or "-"),
            balance=html.escape(f" balance={t.deployer_balance.display}") if t.deployer_balance else "",
        )
        for t in reversed(memory.tokens())
    ]
    action = "stop" if loop.running else "start"
    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{html.escape(title)}</title></head>
<body>
<h1>{html.escape(title)}</h1>
<div id="block-container"><p>{latest}</p></div>
<div id="listener-control">
<form method="post" action="/listener/{action}"><button type="submit">Listener: {"on" if loop.running else "off"}</button></form>
</div>
<div id="tokens-container"><h2>Tokens</h2><ul id="tokens-list">{"".join(token_items)}</ul></div>
<div id="transactions-container"><h2>Transactions</h2><ul id="transactions-list">{"".join(tx_items)}</ul></div>
</body>
</html>"""


def create_app(loop: PollLoop, memory: MemorySink) -> FastAPI:
    """Display surface for one listener. ``memory`` must be among the loop's sinks."""

    app = FastAPI(title="Contract Listener")
    app.state.loop = loop
    app.state.memory = memory

    @app.get("/", response_class=HTMLResponse)
    def index(request: Request) -> str:
        return render_page(request.app.state.loop, request.app.state.memory)

    @app.get("/records", response_model=List[TransactionOut])
    def records(request: Request) -> List[TransactionOut]:
        return [TransactionOut.from_record(r) for r in request.app.state.memory.transactions()]

    @app.get("/tokens", response_model=List[TokenOut])
    def tokens(request: Request) -> List[TokenOut]:
        return [TokenOut.from_record(t) for t in request.app.state.memory.tokens()]

    @app.get("/listener", response_model=ListenerStatus)
    def listener_status(request: Request) -> ListenerStatus:
        return _status(request.app.state.loop)

    @app.post("/listener/start", response_model=ListenerStatus)
    def listener_start(request: Request) -> ListenerStatus:
        request.app.state.loop.start()
        return _status(request.app.state.loop)

    @app.post("/listener/stop", response_model=ListenerStatus)
    def listener_stop(request: Request) -> ListenerStatus:
        request.app.state.loop.stop(timeout=5.0)
        return _status(request.app.state.loop)

    return app
