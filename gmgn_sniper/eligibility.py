from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from gmgn_sniper.client import GMGNClient
from gmgn_sniper.config import BotConfig


@dataclass
class Eligibility:
    eligible: bool
    liquidity: float
    dev_holdings: float
    is_safe: bool = False
    degraded: bool = False
    reason: str | None = None


def evaluate(
    liquidity: float,
    dev_holdings: float,
    is_safe: bool,
    config: BotConfig,
    degraded: bool = False,
) -> Eligibility:
    reason = None
    if degraded and not config.allow_degraded:
        reason = "token info unavailable"
    elif liquidity <= config.min_liquidity:
        reason = f"liquidity {liquidity:.2f} <= {config.min_liquidity:g}"
    elif dev_holdings >= config.max_dev_holdings:
        reason = f"dev holdings {dev_holdings:.1f}% >= {config.max_dev_holdings:g}%"
    elif config.require_safe and not is_safe:
        reason = "token flagged unsafe"
    return Eligibility(
        eligible=reason is None,
        liquidity=liquidity,
        dev_holdings=dev_holdings,
        is_safe=is_safe,
        degraded=degraded,
        reason=reason,
    )


async def check_token_eligibility(
    client: GMGNClient, token_address: str, config: BotConfig
) -> Eligibility:
    resp = await client.get_token_info(token_address)
    if not resp.success or resp.data is None:
        logger.warning("Eligibility check for {} failed: {}", token_address, resp.message)
        return Eligibility(
            eligible=False,
            liquidity=0.0,
            dev_holdings=100.0,
            reason=resp.message or "failed to fetch token information",
        )
    d = resp.data
    return evaluate(d.liquidity, d.dev_wallet_percentage, d.is_safe, config, degraded=resp.degraded)
