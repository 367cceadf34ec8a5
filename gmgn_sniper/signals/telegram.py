from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field

import requests
from loguru import logger

# GMGN alert channels announce pools with this marker
NEW_POOL_MARKER = "New Pool"
ADDRESS_RE = re.compile(r"[1-9A-HJ-NP-Za-km-z]{32,44}")
MAX_SEEN = 10_000


def extract_token_address(text: str | None) -> str | None:
    if not text or NEW_POOL_MARKER not in text:
        return None
    m = ADDRESS_RE.search(text)
    return m.group(0) if m else None


@dataclass
class TelegramSignalSource:
    """Long-polls the Bot API ``getUpdates`` endpoint for new-pool alerts."""

    bot_token: str
    api_url: str = "https://api.telegram.org"
    poll_timeout: int = 30
    offset: int | None = None
    max_seen: int = MAX_SEEN
    seen: set[str] = field(default_factory=set)
    _seen_order: deque[str] = field(default_factory=deque, init=False, repr=False)

    def __post_init__(self):
        self._seen_order = deque(self.seen, maxlen=self.max_seen)

    def _url(self, method: str) -> str:
        return f"{self.api_url.rstrip('/')}/bot{self.bot_token}/{method}"

    def _remember(self, addr: str) -> None:
        # Forget the oldest address once the window is full
        if self._seen_order and len(self._seen_order) == self._seen_order.maxlen:
            self.seen.discard(self._seen_order[0])
        self._seen_order.append(addr)
        self.seen.add(addr)

    def poll_once(self) -> list[str]:
        params: dict = {"timeout": self.poll_timeout, "allowed_updates": '["message","channel_post"]'}
        if self.offset is not None:
            params["offset"] = self.offset
        r = requests.get(self._url("getUpdates"), params=params, timeout=self.poll_timeout + 10)
        if not r.ok:
            logger.warning("Telegram getUpdates error: {}", r.text)
            return []
        payload = r.json() or {}
        out: list[str] = []
        for upd in payload.get("result") or []:
            uid = upd.get("update_id")
            if isinstance(uid, int):
                self.offset = uid + 1
            msg = upd.get("message") or upd.get("channel_post") or {}
            addr = extract_token_address(msg.get("text"))
            if addr and addr not in self.seen:
                self._remember(addr)
                logger.info("Detected new pool: {}", addr)
                out.append(addr)
        return out
