#!/usr/bin/env python3
"""
Test Suite for the service layer (auth, db, cache)

Run with: python3 tests/test_services.py

Supabase is never contacted: GoTrue and the wallet edge function are served
by httpx.MockTransport, PostgREST queries by MagicMock chains, and
st.session_state by a plain dict.
"""

import os
import sys
import unittest
from types import SimpleNamespace
from unittest import mock

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import auth
import cache
import db
import supabase_client
from market_data import MarketSnapshot
from projection import SimulationParameters, project
from supabase_client import SupabaseConfigError

CFG = ("dev", "https://example.supabase.co", "anon-key")
SESSION = {
    "access_token": "tok-123",
    "refresh_token": "ref-456",
    "user": {"id": "user-1", "email": "Member@Example.com"},
}


def _gotrue(routes):
    """httpx client answering by URL path; records every request."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        status, body = routes.get(request.url.path, (404, {"msg": "not found"}))
        return httpx.Response(status, json=body)

    return httpx.Client(transport=httpx.MockTransport(handler)), seen


def _query_result(sb, data):
    chain = sb.table.return_value.select.return_value.eq.return_value.maybe_single.return_value
    chain.execute.return_value = SimpleNamespace(data=data)
    return chain


class TestSignIn(unittest.TestCase):
    """sign_in_user()"""

    def setUp(self):
        patcher = mock.patch.object(auth, "_cfg", return_value=CFG)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_existing_wallet_is_reused(self):
        client, seen = _gotrue({"/auth/v1/token": (200, SESSION)})
        with mock.patch.object(db, "fetch_existing_wallet", return_value="0xexisting") as fetch:
            res = auth.sign_in_user("member@example.com", "pw", client=client)
        self.assertTrue(res.success)
        self.assertEqual(res.user_id, "user-1")
        self.assertEqual(res.email, "member@example.com")
        self.assertEqual(res.wallet_address, "0xexisting")
        fetch.assert_called_once()
        self.assertEqual([r.url.path for r in seen], ["/auth/v1/token"])
        self.assertEqual(seen[0].headers["apikey"], "anon-key")

    def test_missing_wallet_is_created(self):
        client, seen = _gotrue({
            "/auth/v1/token": (200, SESSION),
            "/functions/v1/create-turnkey-wallet": (200, {"success": True, "wallet_address": "0xnew", "is_new": True}),
        })
        with mock.patch.object(db, "fetch_existing_wallet", return_value=None):
            res = auth.sign_in_user("member@example.com", "pw", client=client)
        self.assertEqual(res.wallet_address, "0xnew")
        self.assertEqual(seen[1].headers["Authorization"], "Bearer tok-123")

    def test_wallet_lookup_failure_still_signs_in(self):
        client, _ = _gotrue({
            "/auth/v1/token": (200, SESSION),
            "/functions/v1/create-turnkey-wallet": (200, {"success": True, "wallet_address": "0xnew"}),
        })
        with mock.patch.object(db, "fetch_existing_wallet", side_effect=RuntimeError("rls")):
            res = auth.sign_in_user("member@example.com", "pw", client=client)
        self.assertTrue(res.success)
        self.assertEqual(res.wallet_address, "0xnew")

    def test_bad_password(self):
        client, _ = _gotrue({"/auth/v1/token": (400, {"error_description": "Invalid login credentials"})})
        res = auth.sign_in_user("member@example.com", "nope", client=client)
        self.assertFalse(res.success)
        self.assertIn("Invalid login credentials", res.error)

    def test_missing_config_is_a_result_not_an_exception(self):
        with mock.patch.object(auth, "_cfg", side_effect=SupabaseConfigError("no url")):
            res = auth.sign_in_user("member@example.com", "pw")
        self.assertFalse(res.success)
        self.assertIn("no url", res.error)


class TestRegister(unittest.TestCase):
    """register_user()"""

    def setUp(self):
        patcher = mock.patch.object(auth, "_cfg", return_value=CFG)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_email_confirmation_pending(self):
        client, seen = _gotrue({"/auth/v1/signup": (200, {"id": "user-2", "email": "new@example.com"})})
        with mock.patch.object(db, "ensure_profile_exists", return_value=True) as ensure:
            res = auth.register_user("New@Example.com", "pw", client=client)
        self.assertTrue(res.success)
        self.assertTrue(res.requires_email_confirmation)
        self.assertIsNone(res.access_token)
        ensure.assert_called_once()
        self.assertEqual(len(seen), 1)

    def test_auto_confirm_provisions_wallet(self):
        client, _ = _gotrue({
            "/auth/v1/signup": (200, SESSION),
            "/functions/v1/create-turnkey-wallet": (200, {"success": True, "wallet_address": "0xfresh", "is_new": True}),
        })
        with mock.patch.object(db, "ensure_profile_exists", side_effect=RuntimeError("duplicate")):
            res = auth.register_user("member@example.com", "pw", client=client)
        self.assertTrue(res.success)
        self.assertFalse(res.requires_email_confirmation)
        self.assertEqual(res.wallet_address, "0xfresh")

    def test_signup_rejected(self):
        client, _ = _gotrue({"/auth/v1/signup": (422, {"msg": "Password should be at least 6 characters"})})
        res = auth.register_user("member@example.com", "pw", client=client)
        self.assertFalse(res.success)
        self.assertIn("6 characters", res.error)


class TestWalletFunction(unittest.TestCase):
    """trigger_wallet_creation() / sign_out_user()"""

    def setUp(self):
        patcher = mock.patch.object(auth, "_cfg", return_value=CFG)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_function_error(self):
        client, _ = _gotrue({"/functions/v1/create-turnkey-wallet": (500, {"error": "turnkey down"})})
        res = auth.trigger_wallet_creation("tok", client=client)
        self.assertFalse(res.success)
        self.assertEqual(res.error, "turnkey down")

    def test_response_without_address(self):
        client, _ = _gotrue({"/functions/v1/create-turnkey-wallet": (200, {"success": True})})
        res = auth.trigger_wallet_creation("tok", client=client)
        self.assertFalse(res.success)
        self.assertIn("missing address", res.error)

    def test_sign_out(self):
        client, seen = _gotrue({"/auth/v1/logout": (204, None)})
        self.assertTrue(auth.sign_out_user("tok", client=client).success)
        self.assertEqual(seen[0].headers["Authorization"], "Bearer tok")

    def test_sign_out_without_session(self):
        self.assertTrue(auth.sign_out_user(None).success)


class TestDb(unittest.TestCase):
    """PostgREST helpers."""

    def test_retry_then_succeed(self):
        q = mock.MagicMock()
        q.execute.side_effect = [httpx.ConnectError("blip"), SimpleNamespace(data=[])]
        with mock.patch.object(db.time, "sleep") as sleep:
            res = db._execute_with_retry(q)
        self.assertEqual(res.data, [])
        sleep.assert_called_once_with(0.2)

    def test_retry_gives_up(self):
        q = mock.MagicMock()
        q.execute.side_effect = httpx.ReadError("gone")
        with mock.patch.object(db.time, "sleep"):
            with self.assertRaises(httpx.ReadError):
                db._execute_with_retry(q, tries=2)
        self.assertEqual(q.execute.call_count, 2)

    def test_fetch_existing_wallet(self):
        sb = mock.MagicMock()
        _query_result(sb, {"wallet_address": "0xabc"})
        self.assertEqual(db.fetch_existing_wallet("user-1", sb=sb), "0xabc")
        sb.table.assert_called_with("user_wallets")

    def test_fetch_missing_wallet(self):
        sb = mock.MagicMock()
        sb.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = None
        self.assertIsNone(db.fetch_existing_wallet("user-1", sb=sb))
        self.assertIsNone(db.fetch_existing_wallet("", sb=sb))

    def test_profile_already_there(self):
        sb = mock.MagicMock()
        _query_result(sb, {"id": 7})
        self.assertFalse(db.ensure_profile_exists("user-1", "a@b.co", sb=sb))
        sb.table.return_value.insert.assert_not_called()

    def test_profile_created(self):
        sb = mock.MagicMock()
        _query_result(sb, None)
        self.assertTrue(db.ensure_profile_exists("user-1", "Someone@Example.com", sb=sb))
        sb.table.return_value.insert.assert_called_once_with(
            {"user_id": "user-1", "email": "someone@example.com", "name": "someone"}
        )

    def test_profile_duplicate_race(self):
        sb = mock.MagicMock()
        _query_result(sb, None)
        sb.table.return_value.insert.return_value.execute.side_effect = RuntimeError("duplicate key value")
        self.assertFalse(db.ensure_profile_exists("user-1", "a@b.co", sb=sb))


class TestCache(unittest.TestCase):
    """Session-state caches."""

    def setUp(self):
        self.state = {}
        patcher = mock.patch.object(cache.st, "session_state", self.state)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_market_snapshot_refreshes_after_five_minutes(self):
        loader = mock.Mock(side_effect=[MarketSnapshot(apy_strand1=4.0), MarketSnapshot(apy_strand1=5.0)])
        self.assertEqual(cache.get_cached_market_snapshot(loader, now=1000.0).apy_strand1, 4.0)
        self.assertEqual(cache.get_cached_market_snapshot(loader, now=1299.0).apy_strand1, 4.0)
        self.assertEqual(cache.get_cached_market_snapshot(loader, now=1300.0).apy_strand1, 5.0)
        self.assertEqual(loader.call_count, 2)

    def test_market_loader_failure_serves_stale(self):
        cache.get_cached_market_snapshot(lambda: MarketSnapshot(apy_strand2=9.0), now=0.0)
        broken = mock.Mock(side_effect=RuntimeError("down"))
        self.assertEqual(cache.get_cached_market_snapshot(broken, now=10_000.0).apy_strand2, 9.0)

    def test_market_loader_failure_without_cache(self):
        broken = mock.Mock(side_effect=RuntimeError("down"))
        self.assertEqual(cache.get_cached_market_snapshot(broken, now=0.0), MarketSnapshot())

    def test_projection_cache(self):
        runner = mock.Mock(side_effect=project)
        params = SimulationParameters(rigor="medium", simulation_years=3)
        first = cache.get_cached_projection(params, runner)
        second = cache.get_cached_projection(SimulationParameters(rigor="medium", simulation_years=3), runner)
        self.assertIs(first, second)
        runner.assert_called_once()
        cache.get_cached_projection(SimulationParameters(rigor="heavy", simulation_years=3), runner)
        self.assertEqual(runner.call_count, 2)

    def test_projection_cache_is_bounded(self):
        for years in range(cache.PROJECTION_CACHE_MAX + 4):
            cache.get_cached_projection(SimulationParameters(simulation_years=years), lambda p: [])
        self.assertEqual(len(self.state["_cache_projections"]), cache.PROJECTION_CACHE_MAX)

    def test_wallet_cache_cleared_on_sign_out(self):
        loader = mock.Mock(return_value="0xabc")
        self.assertEqual(cache.get_cached_wallet("user-1", loader), "0xabc")
        self.assertEqual(cache.get_cached_wallet("user-1", loader), "0xabc")
        loader.assert_called_once()

        cache.get_cached_market_snapshot(lambda: MarketSnapshot(), now=0.0)
        cache.clear_all_user_caches()
        self.assertNotIn("_cache_wallet_user-1", self.state)
        self.assertIn("_cache_market_snapshot", self.state)

    def test_missing_wallet_not_cached(self):
        loader = mock.Mock(return_value=None)
        self.assertIsNone(cache.get_cached_wallet("user-1", loader))
        self.assertIsNone(cache.get_cached_wallet("user-1", loader))
        self.assertEqual(loader.call_count, 2)


class TestConfig(unittest.TestCase):
    """_cfg() picks the credentials for APP_ENV."""

    def setUp(self):
        patcher = mock.patch.object(supabase_client.st, "secrets", {})
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_dev(self):
        env = {"APP_ENV": "Dev", "SUPABASE_URL_DEV": "https://dev.supabase.co", "SUPABASE_ANON_KEY_DEV": "dev-key"}
        with mock.patch.dict(os.environ, env, clear=True):
            self.assertEqual(supabase_client._cfg(), ("dev", "https://dev.supabase.co", "dev-key"))

    def test_prod_is_default(self):
        env = {"SUPABASE_URL_PROD": "https://prod.supabase.co", "SUPABASE_ANON_KEY_PROD": "prod-key"}
        with mock.patch.dict(os.environ, env, clear=True):
            self.assertEqual(supabase_client._cfg()[0], "prod")

    def test_missing_key(self):
        with mock.patch.dict(os.environ, {"SUPABASE_URL_PROD": "https://prod.supabase.co"}, clear=True):
            with self.assertRaises(SupabaseConfigError) as ctx:
                supabase_client._cfg()
        self.assertIn("SUPABASE_ANON_KEY_PROD", str(ctx.exception))


class TestCurrentWallet(unittest.TestCase):
    """current_wallet() reads through the per-user wallet cache."""

    def setUp(self):
        self.state = {}
        patcher = mock.patch.object(auth.st, "session_state", self.state)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_signed_out(self):
        with mock.patch.object(db, "fetch_existing_wallet") as fetch:
            self.assertIsNone(auth.current_wallet())
        fetch.assert_not_called()

    def test_sign_in_seeds_cache(self):
        self.state.update({"authenticated": True, "user_id": "user-1"})
        cache.set_cached_wallet("user-1", "0xseeded")
        with mock.patch.object(db, "fetch_existing_wallet") as fetch:
            self.assertEqual(auth.current_wallet(), "0xseeded")
        fetch.assert_not_called()

    def test_pending_wallet_is_looked_up_until_found(self):
        self.state.update({"authenticated": True, "user_id": "user-1"})
        with mock.patch.object(db, "fetch_existing_wallet", side_effect=[None, "0xlate"]) as fetch:
            self.assertIsNone(auth.current_wallet())
            self.assertEqual(auth.current_wallet(), "0xlate")
            self.assertEqual(auth.current_wallet(), "0xlate")
        self.assertEqual(fetch.call_count, 2)
        fetch.assert_called_with("user-1")


# ============================================================
# Run tests
# ============================================================

if __name__ == "__main__":
    unittest.main(verbosity=2)
