"""
Unit tests for the online user registry.
"""

import pytest

from app.chat import ConnectionRegistry


def test_register_and_lookup(make_connection):
    registry = ConnectionRegistry()
    connection = make_connection()

    assert registry.register(1, connection) is None
    assert registry.lookup(1) is connection
    assert 1 in registry
    assert len(registry) == 1
    assert registry.online_users() == [1]


def test_lookup_offline_user():
    registry = ConnectionRegistry()
    assert registry.lookup(42) is None


def test_register_replaces_and_returns_previous(make_connection):
    registry = ConnectionRegistry()
    first, second = make_connection(), make_connection()

    registry.register(1, first)
    previous = registry.register(1, second)

    assert previous is first
    assert registry.lookup(1) is second
    assert len(registry) == 1


def test_register_same_connection_twice(make_connection):
    registry = ConnectionRegistry()
    connection = make_connection()

    registry.register(1, connection)
    assert registry.register(1, connection) is None


def test_unregister_is_noop_for_unknown_identity(make_connection):
    registry = ConnectionRegistry()
    registry.register(1, make_connection())

    assert registry.unregister(2) is False
    assert registry.unregister(None) is False
    assert 1 in registry


def test_unregister_ignores_superseded_connection(make_connection):
    registry = ConnectionRegistry()
    old, new = make_connection(), make_connection()
    registry.register(1, old)
    registry.register(1, new)

    assert registry.unregister(1, old) is False
    assert registry.lookup(1) is new

    assert registry.unregister(1, new) is True
    assert registry.lookup(1) is None


def test_lookup_skips_closed_connection(make_connection):
    registry = ConnectionRegistry()
    connection = make_connection()
    registry.register(1, connection)
    connection.mark_closed()

    assert registry.lookup(1) is None


@pytest.mark.asyncio
async def test_close_all(make_connection):
    registry = ConnectionRegistry()
    a, b = make_connection(), make_connection()
    registry.register(1, a)
    registry.register(2, b)

    await registry.close_all()

    assert len(registry) == 0
    assert a.is_closed and b.is_closed
    assert a.websocket.closed[0] == 1001
