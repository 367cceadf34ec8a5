from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest

from gmgn_sniper.bot import MAX_ALERTS
from gmgn_sniper.client import TokenInfo, TokenInfoResponse
from gmgn_sniper.db import Trade, session_scope
from gmgn_sniper.errors import ConflictError, NotFoundError, ValidationError


def test_toggle_persists_state_and_alerts(bot_service):
    assert bot_service.is_running() is False

    assert bot_service.toggle("start") is True
    assert bot_service.is_running() is True
    assert bot_service.toggle("stop") is False
    assert bot_service.is_running() is False

    titles = [a.title for a in bot_service.alerts()]
    assert titles[:2] == ["Bot Stopped", "Bot Started"]

    with pytest.raises(ValidationError):
        bot_service.toggle("pause")


def test_status_without_wallet(bot_service):
    bot_service.record_trade(token_address="Mint111", amount=0.5, status="pending")
    st = bot_service.status()
    assert st.isRunning is False
    assert st.walletAddress == "Not configured"
    assert st.walletBalance == 0.0
    assert st.activePositions == 1


def test_wallet_balance_from_rpc(bot_service):
    class Resp:
        value = 2_500_000_000

    class FakeRpc:
        def get_balance(self, pubkey):
            self.pubkey = pubkey
            return Resp()

    bot_service.rpc = FakeRpc()
    bot_service.wallet_address = "GxhQ5LTFc4dTxAXt7aQ4uSKvr8ev9T2QXE9zWKA3pjFP"
    assert bot_service.wallet_balance() == 2.5
    assert str(bot_service.rpc.pubkey) == "GxhQ5LTFc4dTxAXt7aQ4uSKvr8ev9T2QXE9zWKA3pjFP"


def test_alerts_are_capped_newest_first(bot_service):
    for i in range(MAX_ALERTS + 5):
        bot_service.add_alert("info", f"alert {i}", "msg")

    alerts = bot_service.alerts()
    assert len(alerts) == MAX_ALERTS
    assert alerts[0].title == f"alert {MAX_ALERTS + 4}"
    assert alerts[-1].title == "alert 5"


def test_mark_alerts_read(bot_service):
    first = bot_service.add_alert("info", "one", "m")
    bot_service.add_alert("warning", "two", "m")

    bot_service.mark_alert_read(first.id)
    read = {a.title: a.is_read for a in bot_service.alerts()}
    assert read == {"one": True, "two": False}

    bot_service.mark_all_alerts_read()
    assert all(a.is_read for a in bot_service.alerts())


def test_watchlist_crud(bot_service):
    tok = bot_service.add_to_watchlist("  Mint111  ", "Test Token")
    assert tok.address == "Mint111"
    assert bot_service.add_to_watchlist("Mint222").name == "Unknown Token"

    with pytest.raises(ConflictError):
        bot_service.add_to_watchlist("Mint111")
    with pytest.raises(ValidationError):
        bot_service.add_to_watchlist("   ")

    bot_service.remove_from_watchlist(tok.id)
    assert [t.address for t in bot_service.watchlist()] == ["Mint222"]
    with pytest.raises(NotFoundError):
        bot_service.remove_from_watchlist(tok.id)


def test_seed_watchlist_skips_duplicates(bot_service):
    bot_service.add_to_watchlist("Mint111")
    added = bot_service.seed_watchlist([{"address": "Mint111"}, {"address": "Mint333", "name": "Three"}])
    assert added == 1
    assert {t.address for t in bot_service.watchlist()} == {"Mint111", "Mint333"}


@pytest.mark.asyncio
async def test_refresh_watchlist_skips_degraded(bot_service):
    class StubClient:
        async def get_token_info(self, address):
            if address == "Good":
                return TokenInfoResponse(
                    success=True,
                    data=TokenInfo(liquidity=500, dev_wallet_percentage=1, price=0.002, holders=42),
                )
            return TokenInfoResponse(success=True, data=TokenInfo(liquidity=900), degraded=True)

    bot_service.client = StubClient()
    bot_service.add_to_watchlist("Good")
    bot_service.add_to_watchlist("Flaky")

    assert await bot_service.refresh_watchlist() == 1
    rows = {t.address: t for t in bot_service.watchlist()}
    assert rows["Good"].liquidity == 500
    assert rows["Good"].holders == 42
    assert rows["Good"].is_eligible is True
    assert rows["Flaky"].liquidity == 0.0
    assert rows["Flaky"].is_eligible is False


def test_config_update_merges_and_validates(bot_service):
    assert bot_service.get_config().min_liquidity == 100.0

    cfg = bot_service.update_config({"min_liquidity": 250, "auto_trade": False})
    assert cfg.min_liquidity == 250
    assert cfg.max_dev_holdings == 5.0

    again = bot_service.get_config()
    assert again.min_liquidity == 250
    assert again.auto_trade is False

    with pytest.raises(ValidationError):
        bot_service.update_config({"max_daily_trades": "lots"})
    assert bot_service.get_config().max_daily_trades == 20


def test_trade_stats_and_metrics_exclude_skipped(bot_service):
    bot_service.record_trade(token_address="A", amount=1.0, status="success", profit=0.5)
    bot_service.record_trade(token_address="B", amount=0.5, status="failed", profit=0.0)
    bot_service.record_trade(token_address="C", amount=0.5, status="skipped")
    with session_scope(bot_service.SessionFactory) as s:
        s.add(
            Trade(
                token_address="Old",
                amount=2.0,
                status="success",
                profit=1.0,
                created_at=datetime.utcnow() - timedelta(days=3),
            )
        )

    day = bot_service.trade_stats("24h")
    assert day.totalTrades == 2
    assert day.successfulTrades == 1
    assert day.winRate == 50.0
    assert day.totalProfit == 0.5

    week = bot_service.trade_stats("7d")
    assert week.totalTrades == 3

    # Unknown period falls back to 24h
    assert bot_service.trade_stats("forever").totalTrades == 2

    m = bot_service.metrics()
    assert m.totalTrades == 3
    assert m.totalVolume == 3.5
    assert m.todayTrades == 2
    assert bot_service.trades_today() == 2


def test_recent_trades_newest_first(bot_service):
    for i in range(5):
        bot_service.record_trade(token_address=f"T{i}", amount=0.1, status="failed")

    recent = bot_service.recent_trades(limit=2)
    assert [t.token_address for t in recent] == ["T4", "T3"]
    assert [t.token_address for t in bot_service.recent_trades(limit=2, offset=2)] == ["T2", "T1"]


@pytest.mark.asyncio
async def test_refresh_watchlist_writes_off_the_event_loop(bot_service, monkeypatch):
    loop_thread = threading.get_ident()
    writers: list[int] = []
    real_store = bot_service._store_token_info

    def store(*args):
        writers.append(threading.get_ident())
        return real_store(*args)

    class StubClient:
        async def get_token_info(self, address):
            return TokenInfoResponse(success=True, data=TokenInfo(liquidity=300, price=0.01))

    monkeypatch.setattr(bot_service, "_store_token_info", store)
    bot_service.client = StubClient()
    bot_service.add_to_watchlist("Mint111")
    bot_service.add_to_watchlist("Mint222")

    assert await bot_service.refresh_watchlist() == 2
    assert len(writers) == 2
    assert loop_thread not in writers
