"""Tests for the per-tenant session cache."""

import pytest

from cindermon.collector.sessions import SessionCache
from cindermon.errors import AuthenticationError, FetchError

from conftest import FakeIdentity, FakeService


def test_second_call_reuses_session(config):
    identity = FakeIdentity({"id-alpha": "alpha"})
    cache = SessionCache(identity.authenticate, lambda s: FakeService())

    first = cache.get_or_create("alpha", config)
    second = cache.get_or_create("alpha", config)

    assert first[0] is second[0]
    assert first[1] is second[1]
    assert identity.logins["alpha"] == 1
    assert "alpha" in cache
    assert len(cache) == 1


def test_failed_login_is_not_cached(config):
    identity = FakeIdentity()
    identity.reject.add("alpha")
    cache = SessionCache(identity.authenticate, lambda s: FakeService())

    with pytest.raises(AuthenticationError):
        cache.get_or_create("alpha", config)
    assert "alpha" not in cache

    identity.reject.clear()
    cache.get_or_create("alpha", config)
    assert identity.logins["alpha"] == 2


def test_new_session_redispatches_service(config):
    identity = FakeIdentity()
    dispatched = []

    def dispatch(session):
        dispatched.append(session.tenant)
        return FakeService()

    cache = SessionCache(identity.authenticate, dispatch)
    _, alpha_service = cache.get_or_create("alpha", config)
    cache.get_or_create("alpha", config)
    _, beta_service = cache.get_or_create("beta", config)

    assert dispatched == ["alpha", "beta"]
    assert beta_service is not alpha_service


def test_each_session_keeps_its_own_service(config):
    services = {"alpha": FakeService(), "beta": FakeService()}
    cache = SessionCache(FakeIdentity().authenticate, lambda s: services[s.tenant])

    alpha_session, _ = cache.get_or_create("alpha", config)
    cache.get_or_create("beta", config)
    session, service = cache.get_or_create("alpha", config)

    assert session is alpha_session
    assert service is services["alpha"]


def test_dispatch_failure_closes_session(config):
    sessions = []

    def authenticate(cfg, tenant):
        session = FakeIdentity().authenticate(cfg, tenant)
        sessions.append(session)
        return session

    def dispatch(session):
        raise FetchError("catalog", "no block storage endpoint")

    cache = SessionCache(authenticate, dispatch)
    with pytest.raises(FetchError):
        cache.get_or_create("alpha", config)

    assert sessions[0].closed
    assert "alpha" not in cache


def test_close_closes_every_session(config):
    cache = SessionCache(FakeIdentity().authenticate, lambda s: FakeService())
    a, _ = cache.get_or_create("alpha", config)
    b, _ = cache.get_or_create("beta", config)
    cache.close()
    assert a.closed and b.closed
    assert len(cache) == 0
