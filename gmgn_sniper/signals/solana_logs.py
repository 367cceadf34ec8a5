from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger
from solana.rpc.api import Client
from solana.rpc.websocket_api import connect as ws_connect

from gmgn_sniper.config import PUMP_FUN_PROGRAM, SOL_MINT, AppSettings

CREATE_MARKERS = ("instruction: create", "initialize")


def is_create_log(logs: list[str] | None) -> bool:
    return any(m in line.lower() for line in logs or [] for m in CREATE_MARKERS)


def _as_dict(resp: Any) -> dict:
    if isinstance(resp, dict):
        return resp
    to_json = getattr(resp, "to_json", None)
    return json.loads(to_json()) if to_json else {}


def mint_from_transaction(txr: dict) -> str | None:
    """Pick the mint that appears in post token balances but not in pre (the newly created token)."""
    res = txr.get("result") or {}
    meta = res.get("meta") or {}
    pre = {b.get("mint") for b in meta.get("preTokenBalances") or []}
    post = [b.get("mint") for b in meta.get("postTokenBalances") or []]
    candidates = [m for m in post if m and m != SOL_MINT]
    for m in candidates:
        if m not in pre:
            return m
    return candidates[0] if candidates else None


@dataclass
class SolanaLogsSource:
    settings: AppSettings
    client: Client
    program: str = PUMP_FUN_PROGRAM

    @classmethod
    def create(cls, settings: AppSettings) -> SolanaLogsSource:
        return cls(settings=settings, client=Client(settings.sol_rpc_url))

    async def resolve_mint(self, signature: str) -> str | None:
        from solders.signature import Signature

        txr = await asyncio.to_thread(
            self.client.get_transaction,
            Signature.from_string(signature),
            max_supported_transaction_version=0,
        )
        return mint_from_transaction(_as_dict(txr))

    async def handle_notification(self, msg: Any, on_token: Callable[[str], Awaitable[None]]) -> str | None:
        value = getattr(getattr(msg, "result", None), "value", None)
        if value is None:
            return None
        logs = getattr(value, "logs", None)
        sig = getattr(value, "signature", None)
        if not sig or not is_create_log(logs):
            return None
        mint = await self.resolve_mint(str(sig))
        if not mint:
            logger.debug("Create log without a resolvable mint: {}", sig)
            return None
        logger.info("Detected new pool via logs: {}", mint)
        await on_token(mint)
        return mint

    async def run(self, on_token: Callable[[str], Awaitable[None]]):
        from solders.pubkey import Pubkey
        from solders.rpc.config import RpcTransactionLogsFilterMentions

        async with ws_connect(self.settings.ws_url()) as websocket:
            await websocket.logs_subscribe(
                filter_=RpcTransactionLogsFilterMentions(Pubkey.from_string(self.program))
            )
            logger.info("Solana logs subscription established for program {}", self.program)
            try:
                while True:
                    batch = await websocket.recv()
                    for msg in batch if isinstance(batch, list) else [batch]:
                        try:
                            await self.handle_notification(msg, on_token)
                        except Exception as e:
                            logger.exception("Error processing logs: {}", e)
            except asyncio.CancelledError:
                logger.info("Solana logs subscription cancelled")
                raise
