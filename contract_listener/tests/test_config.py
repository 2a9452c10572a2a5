from __future__ import annotations

import pytest

from contract_listener.config_schema import CONFIG_ENV_VAR, ChainConfig, get_default_config, load_config
from contract_listener.errors import ConfigurationError


def test_default_config_has_chains():
    cfg = get_default_config()
    assert set(cfg.chains) >= {"base", "bnb"}
    base = cfg.chain("base")
    assert base.name == "base"
    assert base.chain_id == 8453
    assert len(base.rpc_endpoints) > 1
    assert cfg.chain("BNB").chain_id == 56
    assert cfg.poll_interval_sec > 0


def test_unknown_chain():
    with pytest.raises(ConfigurationError, match="Unknown chain"):
        get_default_config().chain("solana")


def test_load_from_path(tmp_path):
    p = tmp_path / "listener.yaml"
    p.write_text(
        """
poll_interval_sec: 0.5
batch_receipts: true
chains:
  Local:
    chain_id: 31337
    rpc_endpoints: ["http://127.0.0.1:8545", "  "]
    reputation_url_template: "https://rep.example/{address}"
""",
        encoding="utf-8",
    )
    cfg = load_config(p)
    assert cfg.poll_interval_sec == 0.5
    assert cfg.batch_receipts is True
    local = cfg.chain("local")
    assert local.name == "local"
    assert local.rpc_endpoints == ["http://127.0.0.1:8545"]
    assert local.balance_rpc_url is None


def test_env_var_path(tmp_path, monkeypatch):
    p = tmp_path / "env.yaml"
    p.write_text("chains:\n  x:\n    rpc_endpoints: [http://x]\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(p))
    assert list(load_config().chains) == ["x"]


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("chains: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(p)


def test_empty_endpoints_rejected(tmp_path):
    p = tmp_path / "empty.yaml"
    p.write_text("chains:\n  x:\n    rpc_endpoints: []\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(p)


@pytest.mark.parametrize(
    "body",
    [
        "poll_interval_sec: 0\n",
        "receipt_workers: 0\n",
        "enrichment_attempts: 0\n",
    ],
)
def test_out_of_range_values_rejected(tmp_path, body):
    p = tmp_path / "range.yaml"
    p.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(p)


def test_reputation_template_needs_placeholder():
    with pytest.raises(ValueError):
        ChainConfig(name="x", rpc_endpoints=["http://x"], reputation_url_template="https://rep.example/")
    cfg = ChainConfig(name="x", rpc_endpoints=["http://x"], reputation_url_template="")
    assert cfg.reputation_url_template is None


@pytest.mark.parametrize(
    "template",
    [
        "https://rep.example/{address}?chain={chain}",
        "https://rep.example/{address}/{0}",
        "https://rep.example/{address}?q={",
    ],
)
def test_reputation_template_rejects_extra_placeholders(template):
    with pytest.raises(ValueError):
        ChainConfig(name="x", rpc_endpoints=["http://x"], reputation_url_template=template)


def test_bad_reputation_template_fails_at_load(tmp_path):
    p = tmp_path / "rep.yaml"
    p.write_text(
        "chains:\n  x:\n    rpc_endpoints: [http://x]\n"
        '    reputation_url_template: "https://rep.example/{address}?chain={chain}"\n',
        encoding="utf-8",
    )
    with pytest.raises(ConfigurationError):
        load_config(p)
