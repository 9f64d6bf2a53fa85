#!/usr/bin/env python3
"""
Test Suite for live market inputs

Run with: python3 tests/test_market_data.py

Every failure mode must end in a documented fallback, never an exception.
"""

import os
import sys
import time
import unittest

import httpx

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT)

from market_data import (
    APY_INPUT_MAX,
    STRAND3_APY_INPUT_MAX,
    FALLBACK_APY_STRAND1,
    FALLBACK_APY_STRAND2,
    FALLBACK_APY_STRAND3,
    FALLBACK_BTC_PRICE,
    MarketSnapshot,
    fetch_btc_price,
    fetch_pools,
    fetch_strand_apys,
    load_market_snapshot,
)

POOLS = [
    {"project": "lido", "chain": "Ethereum", "symbol": "STETH", "apy": 3.1},
    {"project": "spark", "chain": "Ethereum", "symbol": "USDC", "apy": 4.25},
    {"project": "aave-v3", "chain": "Ethereum", "symbol": "USDC", "apy": 5.0},
    {"project": "aave-v3", "chain": "Polygon", "symbol": "USDC.E", "apy": 6.8},
    {"project": "quickswap-dex", "chain": "Polygon", "symbol": "WETH-USDC", "apy": 18.4},
]


def _client(pools_status=200, pools_body=None, btc_status=200, btc_body=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "yields.llama.fi":
            return httpx.Response(pools_status, json=pools_body if pools_body is not None else {"data": POOLS})
        if request.url.host == "api.coingecko.com":
            return httpx.Response(btc_status, json=btc_body if btc_body is not None else {"bitcoin": {"usd": 101234.5}})
        return httpx.Response(404)

    return httpx.Client(transport=httpx.MockTransport(handler))


def _failing_client():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    return httpx.Client(transport=httpx.MockTransport(handler))


class TestStrandApys(unittest.TestCase):
    """DefiLlama pool matching."""

    def test_matches_each_strand(self):
        out = fetch_strand_apys(_client())
        self.assertEqual(out["apy_strand1"], 4.25)
        self.assertEqual(out["apy_strand2"], 6.8)
        self.assertEqual(out["apy_strand3"], 18.4)
        self.assertFalse(out["used_fallback"])

    def test_missing_pool_uses_that_fallback_only(self):
        pools = [p for p in POOLS if p["project"] != "quickswap-dex"]
        out = fetch_strand_apys(_client(pools_body={"data": pools}))
        self.assertEqual(out["apy_strand1"], 4.25)
        self.assertEqual(out["apy_strand3"], FALLBACK_APY_STRAND3)
        self.assertTrue(out["used_fallback"])

    def test_bad_apy_value_falls_back(self):
        pools = [dict(p) for p in POOLS]
        pools[1]["apy"] = None
        out = fetch_strand_apys(_client(pools_body={"data": pools}))
        self.assertEqual(out["apy_strand1"], FALLBACK_APY_STRAND1)
        self.assertTrue(out["used_fallback"])

    def test_http_error_falls_back(self):
        out = fetch_strand_apys(_client(pools_status=503))
        self.assertEqual(
            (out["apy_strand1"], out["apy_strand2"], out["apy_strand3"]),
            (FALLBACK_APY_STRAND1, FALLBACK_APY_STRAND2, FALLBACK_APY_STRAND3),
        )
        self.assertTrue(out["used_fallback"])

    def test_network_error_falls_back(self):
        out = fetch_strand_apys(_failing_client())
        self.assertEqual(out["apy_strand2"], FALLBACK_APY_STRAND2)
        self.assertTrue(out["used_fallback"])

    def test_fetch_pools_rejects_bad_payload(self):
        with self.assertRaises(ValueError):
            fetch_pools(_client(pools_body={"status": "ok"}))


class TestBtcPrice(unittest.TestCase):
    """CoinGecko spot price."""

    def test_price(self):
        out = fetch_btc_price(_client())
        self.assertEqual(out["btc_price"], 101234.5)
        self.assertFalse(out["used_fallback"])

    def test_malformed_payload(self):
        out = fetch_btc_price(_client(btc_body={"bitcoin": {}}))
        self.assertEqual(out["btc_price"], FALLBACK_BTC_PRICE)
        self.assertTrue(out["used_fallback"])

    def test_zero_price_rejected(self):
        out = fetch_btc_price(_client(btc_body={"bitcoin": {"usd": 0}}))
        self.assertEqual(out["btc_price"], FALLBACK_BTC_PRICE)

    def test_rate_limited(self):
        out = fetch_btc_price(_client(btc_status=429))
        self.assertEqual(out["btc_price"], FALLBACK_BTC_PRICE)
        self.assertTrue(out["used_fallback"])


class TestSnapshot(unittest.TestCase):
    """load_market_snapshot + MarketSnapshot.to_parameters."""

    def test_live_snapshot(self):
        snap = load_market_snapshot(_client())
        self.assertEqual(snap.apy_strand3, 18.4)
        self.assertEqual(snap.btc_price, 101234.5)
        self.assertFalse(snap.used_fallback)

    def test_offline_snapshot_is_all_defaults(self):
        snap = load_market_snapshot(_failing_client())
        self.assertEqual(snap, MarketSnapshot())
        self.assertTrue(snap.used_fallback)

    def test_partial_failure_flags_fallback(self):
        snap = load_market_snapshot(_client(btc_status=500))
        self.assertEqual(snap.apy_strand1, 4.25)
        self.assertEqual(snap.btc_price, FALLBACK_BTC_PRICE)
        self.assertTrue(snap.used_fallback)

    def test_to_parameters_overrides_win(self):
        snap = MarketSnapshot(apy_strand1=4.0, used_fallback=False)
        params = snap.to_parameters(rigor="medium", apy_strand1=6.0)
        self.assertEqual(params.apy_strand1, 6.0)
        self.assertEqual(params.apy_strand2, FALLBACK_APY_STRAND2)
        self.assertEqual(params.rigor, "medium")


class TestInputSeeding(unittest.TestCase):
    """Live rates outside the Future page input ranges."""

    def test_clamped_pulls_rates_into_range(self):
        seed = MarketSnapshot(apy_strand1=140.0, apy_strand2=-1.0, apy_strand3=250.0, used_fallback=False).clamped()
        self.assertEqual(seed.apy_strand1, APY_INPUT_MAX)
        self.assertEqual(seed.apy_strand2, 0.0)
        self.assertEqual(seed.apy_strand3, STRAND3_APY_INPUT_MAX)
        self.assertFalse(seed.used_fallback)

    def test_clamped_keeps_normal_rates(self):
        snap = MarketSnapshot(apy_strand1=4.25, apy_strand2=6.8, apy_strand3=18.4)
        self.assertEqual(snap.clamped(), snap)

    def test_future_page_renders_with_extreme_rates(self):
        from streamlit.testing.v1 import AppTest

        page = os.path.join(ROOT, "pages", "02_Future.py")
        at = AppTest.from_file(page, default_timeout=60)
        at.session_state["_cache_market_snapshot"] = {
            "fetched_at": time.time(),
            "snapshot": MarketSnapshot(apy_strand1=120.0, apy_strand3=250.0, used_fallback=False),
        }
        at.run()
        self.assertFalse(at.exception)
        self.assertEqual(at.number_input[2].value, STRAND3_APY_INPUT_MAX)


# ============================================================
# Run tests
# ============================================================

if __name__ == "__main__":
    unittest.main(verbosity=2)
