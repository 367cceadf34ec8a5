import asyncio
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from gmgn_sniper.analytics.monitoring import MonitoringService
from gmgn_sniper.bot import BotService
from gmgn_sniper.client import GMGNClient
from gmgn_sniper.config import AppSettings
from gmgn_sniper.db import Alert, Trade, WatchedToken, make_session_factory
from gmgn_sniper.errors import AppError, ValidationError
from gmgn_sniper.execution.sniper import SniperExecutor, is_valid_address

settings = AppSettings()
SessionFactory = make_session_factory(settings.database_url)
monitoring = MonitoringService()
gmgn_client = GMGNClient.create(settings, monitoring=monitoring)
bot = BotService(settings=settings, SessionFactory=SessionFactory, client=gmgn_client)
executor = SniperExecutor.create(settings, bot, gmgn_client)
bot.rpc = executor.rpc
bot.wallet_address = str(executor.pubkey) if executor.pubkey else None


@asynccontextmanager
async def lifespan(app: FastAPI):
    await asyncio.to_thread(bot.seed_watchlist, settings.watched_tokens())
    yield
    await gmgn_client.aclose()


app = FastAPI(title="GMGN Sniper API", lifespan=lifespan)


def _now() -> str:
    return datetime.utcnow().isoformat()


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.warning("API error on {}: {}", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "statusCode": exc.status_code, "timestamp": _now()},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled API error on {}: {}", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "timestamp": _now()})


class TradeOut(BaseModel):
    id: int
    tokenName: str | None
    tokenAddress: str
    amount: float
    profit: float
    profitPercent: float
    timestamp: str
    status: str
    txHash: str | None
    entryPrice: float | None
    exitPrice: float | None
    slippage: float | None
    error: str | None

    @classmethod
    def from_model(cls, m: Trade):
        return cls(
            id=m.id,
            tokenName=m.token_name,
            tokenAddress=m.token_address,
            amount=m.amount,
            profit=m.profit,
            profitPercent=m.profit_percent,
            timestamp=m.created_at.isoformat(),
            status=m.status,
            txHash=m.tx_hash,
            entryPrice=m.entry_price,
            exitPrice=m.exit_price,
            slippage=m.slippage,
            error=m.error,
        )


class WatchedTokenOut(BaseModel):
    id: int
    name: str
    address: str
    price: float
    change24h: float
    liquidity: float
    marketCap: float
    holders: int
    isEligible: bool
    addedAt: str

    @classmethod
    def from_model(cls, m: WatchedToken):
        return cls(
            id=m.id,
            name=m.name,
            address=m.address,
            price=m.price,
            change24h=m.change_24h,
            liquidity=m.liquidity,
            marketCap=m.market_cap,
            holders=m.holders,
            isEligible=m.is_eligible,
            addedAt=m.added_at.isoformat(),
        )


class AlertOut(BaseModel):
    id: int
    type: str
    title: str
    message: str
    timestamp: str
    isRead: bool

    @classmethod
    def from_model(cls, m: Alert):
        return cls(
            id=m.id,
            type=m.type,
            title=m.title,
            message=m.message,
            timestamp=m.created_at.isoformat(),
            isRead=m.is_read,
        )


@app.get("/health")
async def health(deep: bool = False):
    env = {
        "walletConfigured": bool(settings.wallet_private_key),
        "rpcConfigured": bool(settings.sol_rpc_url),
        "telegramConfigured": bool(settings.telegram_bot_token),
    }
    out = {
        "status": "healthy" if all(env.values()) else "degraded",
        "timestamp": _now(),
        "services": {
            "environment": env,
            "gmgnQueue": gmgn_client.limiter.stats(),
            "monitoring": monitoring.health_status(),
        },
    }
    if deep:
        out["services"]["gmgnReachable"] = await gmgn_client.health()
    return out


@app.get("/bot/status")
def bot_status():
    return {**asdict(bot.status()), **asdict(bot.metrics()), "timestamp": _now()}


@app.post("/bot/toggle")
def bot_toggle(payload: dict | None = Body(default=None)):
    payload = payload or {}
    action = payload.get("action")
    running = bot.toggle(action)
    return {
        "success": True,
        "action": action,
        "message": f"Bot {'started' if running else 'stopped'} successfully",
        "status": running,
        "timestamp": _now(),
    }


@app.get("/config")
def get_config():
    return {"config": bot.get_config().model_dump(), "timestamp": _now()}


@app.put("/config")
def put_config(payload: dict | None = Body(default=None)):
    payload = payload or {}
    cfg = bot.update_config(payload)
    return {
        "success": True,
        "config": cfg.model_dump(),
        "message": "Bot configuration updated",
        "timestamp": _now(),
    }


@app.get("/trades/recent")
def recent_trades(limit: int = 20, offset: int = 0):
    rows = bot.recent_trades(limit=limit, offset=offset)
    trades = [TradeOut.from_model(r).model_dump() for r in rows]
    return {"trades": trades, "total": len(trades), "timestamp": _now()}


@app.get("/trades/stats")
def trade_stats(period: str = "24h"):
    return {**asdict(bot.trade_stats(period)), "period": period, "timestamp": _now()}


def _positive_number(value, name: str) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not out > 0:
        raise ValidationError(f"{name} must be greater than 0")
    return out


@app.post("/trades/execute")
async def execute_trade(payload: dict | None = Body(default=None)):
    payload = payload or {}
    token_address = payload.get("tokenAddress")
    amount = payload.get("amount")
    if not token_address or not amount:
        raise ValidationError("Token address and amount are required")
    if not is_valid_address(token_address):
        raise ValidationError("Invalid token address")

    amount = _positive_number(amount, "amount")
    slippage = payload.get("slippage")
    if slippage is not None:
        slippage = _positive_number(slippage, "slippage")

    result = await executor.snipe(token_address, amount, slippage)
    elig = result.eligibility
    if elig is not None and not elig.eligible:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Token not eligible for trading",
                "details": {
                    "liquidity": elig.liquidity,
                    "devHoldings": elig.dev_holdings,
                    "reason": elig.reason,
                    "degraded": elig.degraded,
                },
            },
        )
    if result.success:
        return {
            "success": True,
            "signature": result.signature,
            "message": "Trade executed successfully",
            "timestamp": _now(),
        }
    if result.status == "skipped":
        return {"success": False, "status": "skipped", "message": result.error, "timestamp": _now()}
    return JSONResponse(
        status_code=500,
        content={"error": "Trade execution failed", "details": result.error, "signature": result.signature},
    )


@app.get("/watchlist")
def get_watchlist():
    tokens = [WatchedTokenOut.from_model(t).model_dump() for t in bot.watchlist()]
    return {"tokens": tokens, "timestamp": _now()}


@app.post("/watchlist")
def add_watchlist(payload: dict | None = Body(default=None)):
    payload = payload or {}
    token = bot.add_to_watchlist(payload.get("tokenAddress"), payload.get("tokenName"))
    return {
        "success": True,
        "token": WatchedTokenOut.from_model(token).model_dump(),
        "message": "Token added to watchlist",
        "timestamp": _now(),
    }


@app.delete("/watchlist")
def delete_watchlist(id: int | None = None):
    if id is None:
        raise ValidationError("Token ID is required")
    bot.remove_from_watchlist(id)
    return {"success": True, "message": "Token removed from watchlist", "timestamp": _now()}


@app.post("/watchlist/refresh")
async def refresh_watchlist():
    refreshed = await bot.refresh_watchlist()
    return {"success": True, "refreshed": refreshed, "timestamp": _now()}


@app.get("/alerts")
def get_alerts():
    alerts = [AlertOut.from_model(a).model_dump() for a in bot.alerts()]
    return {
        "alerts": alerts,
        "unreadCount": sum(1 for a in alerts if not a["isRead"]),
        "timestamp": _now(),
    }


@app.patch("/alerts")
def patch_alerts(payload: dict | None = Body(default=None)):
    payload = payload or {}
    mark_all = bool(payload.get("markAll"))
    alert_id = payload.get("alertId")
    if mark_all:
        bot.mark_all_alerts_read()
    elif alert_id:
        bot.mark_alert_read(int(alert_id))
    else:
        raise ValidationError("Alert ID or markAll flag is required")
    return {
        "success": True,
        "message": "All alerts marked as read" if mark_all else "Alert marked as read",
        "timestamp": _now(),
    }


@app.get("/tokens/{address}")
async def token_info(address: str):
    if not is_valid_address(address):
        raise ValidationError("Invalid token address")
    resp = await gmgn_client.get_token_info(address)
    if not resp.success or resp.data is None:
        raise AppError(resp.message or "Failed to fetch token data", status_code=502)
    return {
        "address": address,
        **resp.data.model_dump(),
        "degraded": resp.degraded,
        "timestamp": _now(),
    }
