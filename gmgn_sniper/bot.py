from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

import pydantic
from loguru import logger
from sqlalchemy import delete, func, select, update

from gmgn_sniper.analytics import metrics as trade_metrics
from gmgn_sniper.client import GMGNClient, TokenInfo
from gmgn_sniper.config import LAMPORTS_PER_SOL, AppSettings, BotConfig
from gmgn_sniper.db import Alert, BotState, Trade, WatchedToken, session_scope
from gmgn_sniper.eligibility import evaluate
from gmgn_sniper.errors import ConflictError, NotFoundError, ValidationError

MAX_ALERTS = 50
BOT_STATE_ID = 1


@dataclass
class BotStatus:
    isRunning: bool
    lastActivity: str
    walletAddress: str
    walletBalance: float
    activePositions: int


@dataclass
class BotService:
    """Bot state, trade history, watchlist and alerts, persisted through SQLAlchemy."""

    settings: AppSettings
    SessionFactory: object
    client: GMGNClient | None = None
    rpc: object | None = None  # solana.rpc.api.Client
    wallet_address: str | None = None

    # --- state ---

    def _state(self, s) -> BotState:
        st = s.get(BotState, BOT_STATE_ID)
        if st is None:
            st = BotState(id=BOT_STATE_ID, is_running=False, last_activity=datetime.utcnow(), config=None)
            s.add(st)
            s.flush()
        return st

    def is_running(self) -> bool:
        with session_scope(self.SessionFactory) as s:
            return bool(self._state(s).is_running)

    def wallet_balance(self) -> float:
        if self.rpc is None or not self.wallet_address:
            return 0.0
        try:
            from solders.pubkey import Pubkey

            resp = self.rpc.get_balance(Pubkey.from_string(self.wallet_address))
            return resp.value / LAMPORTS_PER_SOL
        except Exception as e:
            logger.warning("Could not fetch wallet balance: {}", e)
            return 0.0

    def status(self) -> BotStatus:
        with session_scope(self.SessionFactory) as s:
            st = self._state(s)
            running = bool(st.is_running)
            last = st.last_activity
            pending = s.scalar(select(func.count()).select_from(Trade).where(Trade.status == "pending")) or 0
        return BotStatus(
            isRunning=running,
            lastActivity=last.isoformat(),
            walletAddress=self.wallet_address or "Not configured",
            walletBalance=self.wallet_balance(),
            activePositions=pending,
        )

    def metrics(self) -> trade_metrics.BotMetrics:
        return trade_metrics.get_metrics(self.SessionFactory)

    def toggle(self, action: str) -> bool:
        if action not in ("start", "stop"):
            raise ValidationError("Invalid action. Must be 'start' or 'stop'")
        running = action == "start"
        with session_scope(self.SessionFactory) as s:
            st = self._state(s)
            st.is_running = running
            st.last_activity = datetime.utcnow()
        verb = "started" if running else "stopped"
        self.add_alert(
            "info",
            f"Bot {verb.capitalize()}",
            f"Trading bot has been {verb} at {datetime.utcnow().strftime('%H:%M:%S')} UTC",
        )
        logger.info("Bot {}", verb)
        return running

    # --- trades ---

    def recent_trades(self, limit: int = 20, offset: int = 0) -> list[Trade]:
        with session_scope(self.SessionFactory) as s:
            return list(
                s.execute(
                    select(Trade)
                    .order_by(Trade.created_at.desc(), Trade.id.desc())
                    .offset(max(0, offset))
                    .limit(max(0, limit))
                )
                .scalars()
                .all()
            )

    def trade_stats(self, period: str = "24h") -> trade_metrics.TradeStats:
        return trade_metrics.get_trade_stats(self.SessionFactory, period)

    def trades_today(self) -> int:
        return trade_metrics.trades_since(self.SessionFactory, datetime.utcnow() - timedelta(hours=24))

    def record_trade(self, **fields) -> Trade:
        with session_scope(self.SessionFactory) as s:
            t = Trade(**fields)
            s.add(t)
            self._state(s).last_activity = datetime.utcnow()
            s.flush()
            return t

    # --- watchlist ---

    def watchlist(self) -> list[WatchedToken]:
        with session_scope(self.SessionFactory) as s:
            return list(s.execute(select(WatchedToken).order_by(WatchedToken.id.asc())).scalars().all())

    def add_to_watchlist(self, address: str, name: str | None = None) -> WatchedToken:
        address = (address or "").strip()
        if not address:
            raise ValidationError("Token address is required")
        with session_scope(self.SessionFactory) as s:
            exists = s.execute(select(WatchedToken.id).where(WatchedToken.address == address)).first()
            if exists:
                raise ConflictError("Token already in watchlist")
            tok = WatchedToken(address=address, name=name or "Unknown Token")
            s.add(tok)
            s.flush()
            return tok

    def remove_from_watchlist(self, token_id: int) -> None:
        with session_scope(self.SessionFactory) as s:
            res = s.execute(delete(WatchedToken).where(WatchedToken.id == token_id))
            if not res.rowcount:
                raise NotFoundError(f"Watchlist token {token_id} not found")

    def seed_watchlist(self, tokens: list[dict]) -> int:
        added = 0
        for item in tokens:
            try:
                self.add_to_watchlist(item["address"], item.get("name"))
                added += 1
            except ConflictError:
                continue
        if added:
            logger.info("Seeded watchlist with {} token(s)", added)
        return added

    async def refresh_watchlist(self) -> int:
        """Refresh token info for every watched token through the rate-limited client."""
        if self.client is None:
            return 0
        # Session work stays off the event loop
        cfg = await asyncio.to_thread(self.get_config)
        refreshed = 0
        for tok in await asyncio.to_thread(self.watchlist):
            resp = await self.client.get_token_info(tok.address)
            if not resp.success or resp.data is None or resp.degraded:
                logger.debug("Skipping refresh for {}: {}", tok.address, resp.message)
                continue
            d = resp.data
            elig = evaluate(d.liquidity, d.dev_wallet_percentage, d.is_safe, cfg)
            if await asyncio.to_thread(self._store_token_info, tok.id, d, elig.eligible):
                refreshed += 1
        return refreshed

    def _store_token_info(self, token_id: int, info: TokenInfo, eligible: bool) -> bool:
        with session_scope(self.SessionFactory) as s:
            row = s.get(WatchedToken, token_id)
            if row is None:
                return False
            row.price = info.price
            row.liquidity = info.liquidity
            row.market_cap = info.market_cap
            row.holders = info.holders
            row.is_eligible = eligible
            return True

    # --- config ---

    def get_config(self) -> BotConfig:
        with session_scope(self.SessionFactory) as s:
            stored = self._state(s).config or {}
        return BotConfig.model_validate({**self.settings.bot.model_dump(), **stored})

    def update_config(self, partial: dict) -> BotConfig:
        current = self.get_config()
        try:
            cfg = BotConfig.model_validate({**current.model_dump(), **(partial or {})})
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid bot configuration: {e.error_count()} error(s)") from e
        with session_scope(self.SessionFactory) as s:
            self._state(s).config = cfg.model_dump()
        self.add_alert("info", "Configuration Updated", "Bot configuration has been updated successfully")
        return cfg

    # --- alerts ---

    def add_alert(self, type_: str, title: str, message: str) -> Alert:
        with session_scope(self.SessionFactory) as s:
            a = Alert(type=type_, title=title, message=message)
            s.add(a)
            s.flush()
            keep = select(Alert.id).order_by(Alert.created_at.desc(), Alert.id.desc()).limit(MAX_ALERTS)
            s.execute(
                delete(Alert)
                .where(Alert.id.not_in(keep))
                .execution_options(synchronize_session=False)
            )
            return a

    def alerts(self) -> list[Alert]:
        with session_scope(self.SessionFactory) as s:
            return list(
                s.execute(select(Alert).order_by(Alert.created_at.desc(), Alert.id.desc())).scalars().all()
            )

    def mark_alert_read(self, alert_id: int) -> None:
        with session_scope(self.SessionFactory) as s:
            s.execute(update(Alert).where(Alert.id == alert_id).values(is_read=True))

    def mark_all_alerts_read(self) -> None:
        with session_scope(self.SessionFactory) as s:
            s.execute(update(Alert).values(is_read=True))
