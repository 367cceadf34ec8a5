from __future__ import annotations

from dataclasses import dataclass

import requests
from loguru import logger

from gmgn_sniper.config import BotConfig


def limit_prices(amount: float, config: BotConfig) -> tuple[float, float]:
    """Return (take_profit, stop_loss) targets in SOL for a position of ``amount`` SOL."""
    take_profit = amount * config.take_profit_percent / 100.0
    stop_loss = amount * (1.0 - config.stop_loss_percent / 100.0)
    return take_profit, stop_loss


@dataclass
class LimitOrderPlacer:
    """Places limit-sell orders by messaging the GMGN Telegram trading bot."""

    bot_token: str | None
    chat: str = "@GMGN_sol_bot"
    api_url: str = "https://api.telegram.org"
    expiry_sec: int = 3600

    def _send(self, text: str) -> bool:
        url = f"{self.api_url.rstrip('/')}/bot{self.bot_token}/sendMessage"
        r = requests.post(url, json={"chat_id": self.chat, "text": text}, timeout=15)
        if not r.ok:
            logger.warning("Telegram sendMessage error: {}", r.text)
        return r.ok

    def place(self, token_address: str, amount: float, config: BotConfig) -> bool:
        if not self.bot_token:
            logger.debug("Telegram bot token not set; skipping limit orders for {}", token_address)
            return False
        take_profit, stop_loss = limit_prices(amount, config)
        try:
            ok_tp = self._send(f"/create limitsell {token_address} {take_profit:g} -exp {self.expiry_sec}")
            ok_sl = self._send(f"/create limitsell {token_address} {stop_loss:g} -exp {self.expiry_sec}")
        except requests.RequestException as e:
            logger.error("Error setting limit orders for {}: {}", token_address, e)
            return False
        if ok_tp and ok_sl:
            logger.info(
                "Set take-profit at {:g} and stop-loss at {:g} for {}", take_profit, stop_loss, token_address
            )
        return ok_tp and ok_sl
