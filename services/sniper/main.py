import asyncio

from loguru import logger

from gmgn_sniper.analytics.monitoring import MonitoringService
from gmgn_sniper.bot import BotService
from gmgn_sniper.client import GMGNClient
from gmgn_sniper.config import AppSettings
from gmgn_sniper.db import make_session_factory
from gmgn_sniper.execution.sniper import SniperExecutor
from gmgn_sniper.signals.solana_logs import SolanaLogsSource
from gmgn_sniper.signals.telegram import TelegramSignalSource


async def telegram_loop(source: TelegramSignalSource, executor: SniperExecutor):
    while True:
        try:
            for addr in await asyncio.to_thread(source.poll_once):
                await executor.on_signal(addr)
        except Exception as e:
            logger.exception("Telegram signal loop error: {}", e)
            await asyncio.sleep(2)


async def refresh_loop(bot: BotService, interval: int):
    while True:
        try:
            n = await bot.refresh_watchlist()
            logger.debug("Refreshed {} watchlist token(s)", n)
        except Exception as e:
            logger.exception("Watchlist refresh failed: {}", e)
        await asyncio.sleep(interval)


async def run(settings: AppSettings):
    SessionFactory = make_session_factory(settings.database_url)
    client = GMGNClient.create(settings, monitoring=MonitoringService())
    bot = BotService(settings=settings, SessionFactory=SessionFactory, client=client)
    executor = SniperExecutor.create(settings, bot, client)
    bot.rpc = executor.rpc
    bot.wallet_address = str(executor.pubkey) if executor.pubkey else None
    await asyncio.to_thread(bot.seed_watchlist, settings.watched_tokens())

    logger.info(
        "Starting GMGN sniper (dry_run={}, wallet={})", settings.dry_run, bot.wallet_address or "none"
    )
    tasks = []
    if settings.enable_telegram_signals and settings.telegram_bot_token:
        source = TelegramSignalSource(bot_token=settings.telegram_bot_token, api_url=settings.telegram_api_url)
        tasks.append(asyncio.create_task(telegram_loop(source, executor)))
    if settings.enable_solana_logs:
        logs = SolanaLogsSource.create(settings)
        tasks.append(asyncio.create_task(logs.run(executor.on_signal)))
    if settings.watchlist_refresh_sec > 0:
        tasks.append(asyncio.create_task(refresh_loop(bot, settings.watchlist_refresh_sec)))
    if not tasks:
        logger.warning("No signal sources enabled; nothing to do.")
        return
    try:
        await asyncio.gather(*tasks)
    finally:
        for t in tasks:
            t.cancel()
        await client.aclose()


def main():
    settings = AppSettings()
    logger.remove()
    logger.add(lambda m: print(m, end=""), level=settings.log_level)
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Sniper interrupted; shutting down.")


if __name__ == "__main__":
    main()
