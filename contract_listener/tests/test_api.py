from __future__ import annotations

from fastapi.testclient import TestClient

from contract_listener.api.schemas import TokenOut
from contract_listener.api.server import create_app
from contract_listener.classifier import ContractClassifier
from contract_listener.entities import BalanceResult, ReputationResult, TokenRecord
from contract_listener.io_connectors.rpc_endpoints import EndpointRotator
from contract_listener.poll_loop import PollLoop
from contract_listener.sinks import MemorySink
from .fixtures import (
    FakeChain,
    creation_tx,
    make_block,
    make_receipt,
    token_contract,
    transfer_tx,
)

TOKEN = "0x00000000000000000000000000000000000000c1"


def _app():
    block = make_block(101, [transfer_tx("0xt1"), creation_tx("0xc1")])
    chain = FakeChain(
        heights=[100, 101],
        blocks={101: block},
        receipts={"0xc1": make_receipt("0xc1", TOKEN, 101)},
        contracts={TOKEN: token_contract(name="<Evil>", symbol="EVL", decimals=0, supply=1000)},
    )
    memory = MemorySink()
    loop = PollLoop(
        EndpointRotator(["https://a", "https://b"]),
        ContractClassifier(chain="base"),
        memory,
        client_factory=chain.client_for,
        poll_interval_sec=60.0,
        chain="base",
    )
    loop.tick()
    loop.tick()
    return create_app(loop, memory), loop


def test_records_endpoint():
    app, _ = _app()
    client = TestClient(app)
    r = client.get("/records")
    assert r.status_code == 200
    data = r.json()
    assert [d["txHash"] for d in data] == ["0xt1", "0xc1"]
    assert data[0]["receipt"] is None
    assert data[1]["receipt"]["contractAddress"] == TOKEN
    assert all(d["block"] == 101 for d in data)


def test_tokens_endpoint():
    app, _ = _app()
    client = TestClient(app)
    data = client.get("/tokens").json()
    assert len(data) == 1
    assert data[0]["symbol"] == "EVL"
    assert data[0]["total_supply"] == "1000"
    assert data[0]["reputation"] is None


def test_listener_status():
    app, _ = _app()
    client = TestClient(app)
    data = client.get("/listener").json()
    assert data["chain"] == "base"
    assert data["chain_id"] is None
    assert data["running"] is False
    assert data["state"] == "idle"
    assert data["last_processed"] == 101
    assert data["endpoint"] == "https://a"
    assert data["stats"]["blocks_processed"] == 1


def test_page_renders_and_escapes():
    app, _ = _app()
    client = TestClient(app)
    r = client.get("/")
    assert r.status_code == 200
    assert "Base Block Listener" in r.text
    assert "Latest Block: 101" in r.text
    assert "Block: 101, Tx Hash: 0xt1" in r.text
    assert "&lt;Evil&gt;" in r.text
    assert "<Evil>" not in r.text
    assert 'action="/listener/start"' in r.text


def test_start_and_stop_controls():
    app, loop = _app()
    client = TestClient(app)
    try:
        started = client.post("/listener/start").json()
        assert started["running"] is True
        assert loop.running
        page = client.get("/").text
        assert 'action="/listener/stop"' in page
    finally:
        stopped = client.post("/listener/stop").json()
    assert stopped["running"] is False
    assert not loop.running


def test_token_out_keeps_large_balances_as_strings():
    record = TokenRecord(
        address=TOKEN,
        name="Big",
        symbol="BIG",
        decimals=18,
        raw_total_supply=10 ** 40,
        total_supply=10 ** 22,
        deployer="0xd1",
        reputation=ReputationResult(address=TOKEN, new=["0xn"]),
        deployer_balance=BalanceResult(address="0xd1", balance_wei=10 ** 30, balance="1000000000000", symbol="ETH"),
    )
    out = TokenOut.from_record(record).model_dump()
    assert out["total_supply"] == str(10 ** 22)
    assert out["deployer_balance"] == {
        "address": "0xd1",
        "balance_wei": str(10 ** 30),
        "balance": "1000000000000",
        "symbol": "ETH",
    }
    assert out["reputation"]["new"] == ["0xn"]
