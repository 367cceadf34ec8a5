from __future__ import annotations

import time
from typing import Any, Callable

import requests
from loguru import logger

from gmgn_sniper.errors import GMGNError

HEADERS = {"User-Agent": "GMGN-Trading-Bot/1.0", "Accept": "application/json"}

SWAP_ROUTE_PATH = "/defi/router/v1/sol/tx/get_swap_route"
SUBMIT_PATH = "/defi/router/v1/sol/tx/submit"
HEALTH_PATH = "/api/health"

# Per-request cap, and total cap across all URL shapes for one lookup
TOKEN_INFO_TIMEOUT_SEC = 10.0
TOKEN_INFO_BUDGET_SEC = 20.0

# URL shapes the public API has served token info from, tried in order
TOKEN_INFO_PATHS = (
    "/defi/sol/{token}/info",
    "/defi/sol/{token}",
    "/api/v1/token/{token}",
)

TOKEN_FIELDS = (
    "liquidity",
    "dev_wallet_percentage",
    "market_cap",
    "holders",
    "is_safe",
    "price",
    "volume_24h",
)


def get_swap_route(
    host: str,
    token_in: str,
    token_out: str,
    in_amount: int,
    from_address: str,
    slippage: float,
    priority_fee: float | None = None,
) -> dict:
    params = {
        "token_in_address": token_in,
        "token_out_address": token_out,
        "in_amount": str(in_amount),
        "from_address": from_address,
        "slippage": str(slippage),
    }
    if priority_fee is not None:
        params["priority_fee"] = str(priority_fee)
    r = requests.get(f"{host.rstrip('/')}{SWAP_ROUTE_PATH}", params=params, headers=HEADERS, timeout=15)
    if not r.ok:
        raise GMGNError(f"HTTP {r.status_code}: {r.reason}")
    return r.json()


def submit_transaction(host: str, signed_tx: str, priority_fee: float = 0.002) -> dict:
    # Upstream reports failures in the body; the payload is returned whatever the status
    r = requests.post(
        f"{host.rstrip('/')}{SUBMIT_PATH}",
        json={"tx": signed_tx, "priorityFee": priority_fee},
        headers={**HEADERS, "Content-Type": "application/json"},
        timeout=20,
    )
    try:
        data = r.json()
    except ValueError as e:
        raise GMGNError(f"HTTP {r.status_code}: non-JSON submit response") from e
    if not isinstance(data, dict):
        raise GMGNError(f"HTTP {r.status_code}: unexpected submit payload")
    return data


def _normalize(row: dict) -> dict:
    return {
        "liquidity": float(row.get("liquidity") or 0.0),
        "dev_wallet_percentage": float(row.get("dev_wallet_percentage") or 0.0),
        "market_cap": float(row.get("market_cap") or 0.0),
        "holders": int(row.get("holders") or 0),
        "is_safe": bool(row.get("is_safe") or False),
        "price": float(row.get("price") or 0.0),
        "volume_24h": float(row.get("volume_24h") or 0.0),
    }


def _looks_like_token(obj: Any) -> bool:
    return isinstance(obj, dict) and any(k in obj for k in TOKEN_FIELDS)


def parse_flat(payload: Any) -> dict | None:
    if _looks_like_token(payload):
        return _normalize(payload)
    return None


def parse_wrapped(payload: Any) -> dict | None:
    inner = payload.get("data") if isinstance(payload, dict) else None
    if _looks_like_token(inner):
        return _normalize(inner)
    return None


TOKEN_INFO_PARSERS: tuple[Callable[[Any], dict | None], ...] = (parse_flat, parse_wrapped)


def parse_token_info(payload: Any) -> dict | None:
    for parser in TOKEN_INFO_PARSERS:
        out = parser(payload)
        if out is not None:
            return out
    return None


def fetch_token_info(
    host: str, token_address: str, budget: float = TOKEN_INFO_BUDGET_SEC
) -> dict | None:
    """Try each known URL shape; return the first payload a parser recognises, else None.

    Connect plus read time over all attempts stays within ``budget`` seconds.
    """
    base = host.rstrip("/")
    deadline = time.monotonic() + budget
    for path in TOKEN_INFO_PATHS:
        url = base + path.format(token=token_address)
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.warning("GMGN token info for {} out of time budget ({}s)", token_address, budget)
            break
        # The scalar timeout applies to connect and read separately
        timeout = min(TOKEN_INFO_TIMEOUT_SEC, remaining / 2)
        try:
            r = requests.get(url, headers=HEADERS, timeout=timeout)
            if not r.ok:
                logger.debug("GMGN token info {} -> HTTP {}", url, r.status_code)
                continue
            info = parse_token_info(r.json())
            if info is None:
                logger.debug("GMGN token info {}: unrecognised payload", url)
                continue
            return info
        except (requests.RequestException, ValueError) as e:
            logger.warning("GMGN endpoint {} failed: {}", url, e)
            continue
    return None


def check_health(host: str) -> bool:
    try:
        r = requests.head(f"{host.rstrip('/')}{HEALTH_PATH}", headers=HEADERS, timeout=10)
        return r.ok
    except requests.RequestException as e:
        logger.warning("GMGN health check failed: {}", e)
        return False
