from __future__ import annotations

import pytest

from ledger_stats.config import (
    NETWORKS,
    XAHAU_NETWORK,
    XRPL_MAINNET,
    ConfigBuilder,
    RefreshMode,
    StatsConfig,
    get_network,
)


def test_defaults() -> None:
    config = StatsConfig()

    assert config.networks == NETWORKS == (XRPL_MAINNET, XAHAU_NETWORK)
    assert config.ledger_count(RefreshMode.HISTORICAL) == 100
    assert config.ledger_count(RefreshMode.LIVE) == 1
    assert config.historical_interval == 300.0
    assert config.scan_timeout is None


@pytest.mark.parametrize("name", ["xrpl", "XRPL", "XRPL Mainnet", " xrpl mainnet "])
def test_get_network_by_short_or_display_name(name: str) -> None:
    assert get_network(name) is XRPL_MAINNET


def test_get_network_rejects_unknown_name() -> None:
    with pytest.raises(ValueError, match="Unknown network"):
        get_network("testnet")


def test_builder_sets_fields() -> None:
    config = (
        ConfigBuilder()
        .historical(ledger_count=20, interval=60)
        .live(2)
        .ledger_retries(3)
        .scan_timeout(30)
        .open_timeout(5)
        .reconnect_delay(1)
        .networks(XAHAU_NETWORK)
        .build()
    )

    assert config.historical_ledger_count == 20
    assert config.historical_interval == 60.0
    assert config.ledger_count(RefreshMode.LIVE) == 2
    assert config.ledger_retries == 3
    assert config.scan_timeout == 30.0
    assert config.open_timeout == 5.0
    assert config.reconnect_delay == 1.0
    assert config.networks == (XAHAU_NETWORK,)


def test_builder_does_not_touch_base_config() -> None:
    base = StatsConfig()
    ConfigBuilder(base).historical(ledger_count=5).build()
    assert base.historical_ledger_count == 100


@pytest.mark.parametrize(
    "configure",
    [
        lambda b: b.historical(ledger_count=0),
        lambda b: b.historical(interval=0),
        lambda b: b.live(0),
        lambda b: b.ledger_retries(-1),
        lambda b: b.scan_timeout(0),
        lambda b: b.open_timeout(-1),
        lambda b: b.networks(),
    ],
)
def test_builder_validation(configure) -> None:
    with pytest.raises(ValueError):
        configure(ConfigBuilder())
