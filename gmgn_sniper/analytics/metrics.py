from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select

from gmgn_sniper.db import Trade, session_scope

PERIODS = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


@dataclass
class BotMetrics:
    totalTrades: int
    successfulTrades: int
    totalProfit: float
    totalVolume: float
    avgProfitPerTrade: float
    winRate: float
    todayTrades: int
    todayProfit: float


@dataclass
class TradeStats:
    totalTrades: int
    successfulTrades: int
    totalProfit: float
    winRate: float
    avgProfit: float


def _counts(s, since: datetime | None = None) -> tuple[int, int, float, float]:
    where = [Trade.status != "skipped"]
    if since is not None:
        where.append(Trade.created_at >= since)
    total = s.scalar(select(func.count()).select_from(Trade).where(*where)) or 0
    success = (
        s.scalar(select(func.count()).select_from(Trade).where(*where, Trade.status == "success")) or 0
    )
    profit = s.scalar(select(func.coalesce(func.sum(Trade.profit), 0.0)).where(*where)) or 0.0
    volume = s.scalar(select(func.coalesce(func.sum(Trade.amount), 0.0)).where(*where)) or 0.0
    return total, success, float(profit), float(volume)


def get_metrics(SessionFactory, now: datetime | None = None) -> BotMetrics:
    now = now or datetime.utcnow()
    with session_scope(SessionFactory) as s:
        total, success, profit, volume = _counts(s)
        today_total, _, today_profit, _ = _counts(s, since=now - timedelta(hours=24))
        return BotMetrics(
            totalTrades=total,
            successfulTrades=success,
            totalProfit=profit,
            totalVolume=volume,
            avgProfitPerTrade=profit / total if total else 0.0,
            winRate=success / total * 100 if total else 0.0,
            todayTrades=today_total,
            todayProfit=today_profit,
        )


def get_trade_stats(SessionFactory, period: str, now: datetime | None = None) -> TradeStats:
    now = now or datetime.utcnow()
    window = PERIODS.get(period, PERIODS["24h"])
    with session_scope(SessionFactory) as s:
        total, success, profit, _ = _counts(s, since=now - window)
        return TradeStats(
            totalTrades=total,
            successfulTrades=success,
            totalProfit=profit,
            winRate=success / total * 100 if total else 0.0,
            avgProfit=profit / total if total else 0.0,
        )


def trades_since(SessionFactory, since: datetime) -> int:
    """Attempted (non-skipped) trades since ``since``; used for the daily cap."""
    with session_scope(SessionFactory) as s:
        total, _, _, _ = _counts(s, since=since)
        return total
