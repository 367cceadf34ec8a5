from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass

from loguru import logger
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from gmgn_sniper.bot import BotService
from gmgn_sniper.client import GMGNClient
from gmgn_sniper.config import LAMPORTS_PER_SOL, SOL_MINT, AppSettings, BotConfig
from gmgn_sniper.eligibility import Eligibility, check_token_eligibility
from gmgn_sniper.execution.limit_orders import LimitOrderPlacer


@dataclass
class SnipeResult:
    status: str  # success|failed|skipped|pending
    signature: str | None = None
    error: str | None = None
    eligibility: Eligibility | None = None

    @property
    def success(self) -> bool:
        return self.status == "success"


def is_valid_address(address: str) -> bool:
    try:
        Pubkey.from_string(address)
        return True
    except (ValueError, TypeError):
        return False


def sign_swap_transaction(swap_tx_b64: str, keypair: Keypair) -> str:
    raw = base64.b64decode(swap_tx_b64)
    vtx = VersionedTransaction.from_bytes(raw)
    # Reconstruct signed transaction using message + signer
    signed = VersionedTransaction(vtx.message, [keypair])
    return base64.b64encode(bytes(signed)).decode()


@dataclass
class SniperExecutor:
    settings: AppSettings
    bot: BotService
    client: GMGNClient
    rpc: Client
    keypair: Keypair | None
    pubkey: Pubkey | None
    limit_orders: LimitOrderPlacer | None = None

    @classmethod
    def create(cls, settings: AppSettings, bot: BotService, client: GMGNClient) -> SniperExecutor:
        rpc = Client(settings.sol_rpc_url)
        kp = None
        pk = None
        if settings.wallet_private_key:
            import base58

            secret = base58.b58decode(settings.wallet_private_key)
            kp = Keypair.from_bytes(secret)
            pk = kp.pubkey()
        elif settings.wallet_address:
            pk = Pubkey.from_string(settings.wallet_address)
        placer = LimitOrderPlacer(
            bot_token=settings.telegram_bot_token,
            chat=settings.gmgn_bot_chat,
            api_url=settings.telegram_api_url,
            expiry_sec=settings.limit_order_expiry_sec,
        )
        return cls(
            settings=settings,
            bot=bot,
            client=client,
            rpc=rpc,
            keypair=kp,
            pubkey=pk,
            limit_orders=placer,
        )

    async def snipe(
        self, token_address: str, amount: float | None = None, slippage: float | None = None
    ) -> SnipeResult:
        cfg = await asyncio.to_thread(self.bot.get_config)
        amount = cfg.default_amount if amount is None else amount
        slippage = cfg.default_slippage if slippage is None else slippage

        if not is_valid_address(token_address):
            logger.error("Invalid token address: {}", token_address)
            return SnipeResult(status="failed", error="Invalid token address")
        if self.pubkey is None:
            return SnipeResult(status="failed", error="Wallet not configured")

        elig = await check_token_eligibility(self.client, token_address, cfg)
        if not elig.eligible:
            logger.warning(
                "Token {} failed eligibility: Liquidity={:.2f}, DevHoldings={:.1f}% ({})",
                token_address,
                elig.liquidity,
                elig.dev_holdings,
                elig.reason,
            )
            return SnipeResult(
                status="skipped",
                error=f"Token not eligible: {elig.reason}",
                eligibility=elig,
            )

        result = await self.execute(token_address, amount, slippage, cfg)
        result.eligibility = elig
        return result

    async def execute(self, token_address: str, amount: float, slippage: float, cfg: BotConfig) -> SnipeResult:
        status = "failed"
        sig = None
        err = None
        try:
            lamports = int(amount * LAMPORTS_PER_SOL)
            route = await self.client.get_swap_route(
                SOL_MINT, token_address, lamports, str(self.pubkey), slippage, cfg.priority_fee
            )
            swap_tx_b64 = route.swap_transaction
            if not swap_tx_b64:
                raise RuntimeError(route.message or "Failed to get swap route")

            if self.settings.dry_run or self.keypair is None:
                status = "skipped"
                err = "dry run: route fetched, transaction not submitted"
            else:
                signed = sign_swap_transaction(swap_tx_b64, self.keypair)
                submitted = await self.client.submit_transaction(signed, cfg.priority_fee)
                if not submitted.success or submitted.data is None:
                    raise RuntimeError(submitted.message or "Transaction submission failed")
                sig = submitted.data.signature
                status = "pending"
                await asyncio.to_thread(
                    self.rpc.confirm_transaction,
                    Signature.from_string(sig),
                    Commitment(self.settings.confirm_commitment),
                )
                status = "success"
        except Exception as e:
            err = str(e) or type(e).__name__
            if status == "pending":
                logger.warning("Confirmation failed for {} ({}): {}", token_address, sig, err)
            else:
                logger.error("Error executing trade for {}: {}", token_address, err)

        await asyncio.to_thread(
            self.bot.record_trade,
            token_address=token_address,
            amount=amount,
            status=status,
            tx_hash=sig,
            slippage=slippage,
            error=err,
        )
        if status == "success":
            logger.info("Bought {} SOL of {}: {}", amount, token_address, sig)
            await asyncio.to_thread(
                self.bot.add_alert, "success", "Trade Executed", f"Bought {amount:g} SOL of {token_address}: {sig}"
            )
            if self.limit_orders is not None:
                await asyncio.to_thread(self.limit_orders.place, token_address, amount, cfg)
        elif status in ("failed", "pending"):
            await asyncio.to_thread(self.bot.add_alert, "error", "Trade Failed", f"{token_address}: {err}")
        return SnipeResult(status=status, signature=sig, error=err)

    async def on_signal(self, token_address: str) -> SnipeResult | None:
        """Auto-trade entry point for signal sources; respects run state and the daily cap."""
        cfg = await asyncio.to_thread(self.bot.get_config)
        running = await asyncio.to_thread(self.bot.is_running)
        if not running or not cfg.auto_trade:
            logger.debug("Ignoring signal for {}: bot idle or auto-trade off", token_address)
            return None
        if await asyncio.to_thread(self.bot.trades_today) >= cfg.max_daily_trades:
            logger.warning("Daily trade cap ({}) reached; ignoring {}", cfg.max_daily_trades, token_address)
            return None
        try:
            return await self.snipe(token_address)
        except Exception as e:
            logger.exception("Error sniping {}: {}", token_address, e)
            return None
