from __future__ import annotations

from typing import Any

import pytest
import requests


class FakeResp:
    def __init__(self, status: int, payload: Any = None, reason: str = "OK"):
        self.status_code = status
        self.ok = 200 <= status < 300
        self.reason = reason
        self._payload = payload
        self.text = str(payload)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def test_token_info_falls_through_url_shapes(monkeypatch):
    from gmgn_sniper.aggregators import gmgn

    calls: list[str] = []

    def fake_get(url, headers=None, params=None, timeout=None):
        calls.append(url)
        if url.endswith("/info"):
            return FakeResp(404, {}, reason="Not Found")
        if "/defi/sol/" in url:
            raise requests.ConnectionError("reset")
        return FakeResp(200, {"success": True, "data": {"liquidity": "250.5", "holders": 12, "is_safe": True}})

    monkeypatch.setattr("requests.get", fake_get)
    info = gmgn.fetch_token_info("https://gmgn.example", "Mint111")

    assert calls == [
        "https://gmgn.example/defi/sol/Mint111/info",
        "https://gmgn.example/defi/sol/Mint111",
        "https://gmgn.example/api/v1/token/Mint111",
    ]
    assert info["liquidity"] == 250.5
    assert info["holders"] == 12
    assert info["is_safe"] is True
    assert info["dev_wallet_percentage"] == 0.0


def test_token_info_unrecognised_payload_tries_next_url(monkeypatch):
    from gmgn_sniper.aggregators import gmgn

    def fake_get(url, headers=None, params=None, timeout=None):
        if url.endswith("/info"):
            return FakeResp(200, {"code": 0, "msg": "ok"})
        return FakeResp(200, {"liquidity": 120, "dev_wallet_percentage": 2.5})

    monkeypatch.setattr("requests.get", fake_get)
    info = gmgn.fetch_token_info("https://gmgn.example", "Mint111")
    assert info["liquidity"] == 120.0
    assert info["dev_wallet_percentage"] == 2.5


def test_token_info_total_failure_returns_none(monkeypatch):
    from gmgn_sniper.aggregators import gmgn

    def fake_get(url, headers=None, params=None, timeout=None):
        return FakeResp(500, {}, reason="Server Error")

    monkeypatch.setattr("requests.get", fake_get)
    assert gmgn.fetch_token_info("https://gmgn.example", "Mint111") is None


def test_parsers_are_tried_in_order():
    from gmgn_sniper.aggregators import gmgn

    assert gmgn.parse_token_info({"price": 0.1})["price"] == 0.1
    assert gmgn.parse_token_info({"data": {"market_cap": 5}})["market_cap"] == 5.0
    assert gmgn.parse_token_info(["not", "a", "dict"]) is None
    assert gmgn.parse_token_info({"data": None}) is None


def test_swap_route_sends_params_and_raises_on_http_error(monkeypatch):
    from gmgn_sniper.aggregators import gmgn
    from gmgn_sniper.errors import GMGNError

    seen: dict = {}

    def fake_get(url, headers=None, params=None, timeout=None):
        seen["url"] = url
        seen["params"] = params
        return FakeResp(429, {}, reason="Too Many Requests")

    monkeypatch.setattr("requests.get", fake_get)
    with pytest.raises(GMGNError, match="HTTP 429: Too Many Requests"):
        gmgn.get_swap_route("https://gmgn.example/", "SOL", "TOKEN", 500_000_000, "Wallet", 0.5, 0.002)

    assert seen["url"] == "https://gmgn.example/defi/router/v1/sol/tx/get_swap_route"
    assert seen["params"]["in_amount"] == "500000000"
    assert seen["params"]["slippage"] == "0.5"
    assert seen["params"]["priority_fee"] == "0.002"


def test_submit_returns_body_even_on_http_error(monkeypatch):
    from gmgn_sniper.aggregators import gmgn

    seen: dict = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        seen["json"] = json
        return FakeResp(400, {"success": False, "message": "blockhash expired"})

    monkeypatch.setattr("requests.post", fake_post)
    out = gmgn.submit_transaction("https://gmgn.example", "c2lnbmVk", 0.003)
    assert out == {"success": False, "message": "blockhash expired"}
    assert seen["json"] == {"tx": "c2lnbmVk", "priorityFee": 0.003}


def test_health_check_handles_network_error(monkeypatch):
    from gmgn_sniper.aggregators import gmgn

    def fake_head(url, headers=None, timeout=None):
        raise requests.Timeout("slow")

    monkeypatch.setattr("requests.head", fake_head)
    assert gmgn.check_health("https://gmgn.example") is False


def test_token_info_stops_when_time_budget_is_spent(monkeypatch):
    from types import SimpleNamespace

    from gmgn_sniper.aggregators import gmgn

    now = [100.0]
    timeouts: list[float] = []

    def fake_get(url, headers=None, params=None, timeout=None):
        timeouts.append(timeout)
        # Each attempt burns its whole connect + read allowance
        now[0] += 2 * timeout
        return FakeResp(503, {}, reason="Service Unavailable")

    monkeypatch.setattr(gmgn, "time", SimpleNamespace(monotonic=lambda: now[0]))
    monkeypatch.setattr("requests.get", fake_get)

    assert gmgn.fetch_token_info("https://gmgn.example", "Mint111", budget=12.0) is None
    # The first URL may use the whole budget; the others are never tried
    assert timeouts == [6.0]
    assert now[0] - 100.0 <= 12.0
