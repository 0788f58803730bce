"""
Unit tests for RedisOAuthStateStore using fakeredis.
"""

from __future__ import annotations

from datetime import timedelta

import fakeredis
import pytest

from idp.infra.redis.redis_state_store import RedisOAuthStateStore


@pytest.fixture
def fake_redis():
    """Provide a fresh FakeRedis instance for each test."""
    r = fakeredis.FakeRedis()
    r.flushall()
    return r


@pytest.fixture
def store(fake_redis):
    return RedisOAuthStateStore(fake_redis)


def test_put_sets_value_with_ttl(store, fake_redis):
    store.put("abc", "http://localhost:3000", timedelta(minutes=10))

    assert fake_redis.get("oauth:state:abc") == b"http://localhost:3000"
    assert 0 < fake_redis.ttl("oauth:state:abc") <= 600


def test_consume_is_single_use(store):
    store.put("abc", "http://localhost:3000/app", timedelta(minutes=10))

    assert store.consume("abc") == "http://localhost:3000/app"
    assert store.consume("abc") is None


def test_consume_unknown_state(store):
    assert store.consume("missing") is None


def test_put_never_overwrites_a_live_state(store):
    store.put("abc", "http://localhost:3000/first", timedelta(minutes=10))
    store.put("abc", "http://localhost:3000/second", timedelta(minutes=10))

    assert store.consume("abc") == "http://localhost:3000/first"


def test_sub_second_ttl_is_rounded_up(store, fake_redis):
    store.put("tiny", "http://localhost:3000", timedelta(milliseconds=10))
    assert fake_redis.ttl("oauth:state:tiny") == 1


def test_custom_prefix_and_decoded_client():
    decoded = fakeredis.FakeRedis(decode_responses=True)
    decoded.flushall()
    store = RedisOAuthStateStore(decoded, prefix="login:")

    store.put("xyz", "http://localhost:5173", timedelta(minutes=1))

    assert decoded.exists("login:xyz") == 1
    assert store.consume("xyz") == "http://localhost:5173"
