"""Tests for the ``plume.plugins.outcomes`` module."""
from __future__ import annotations

import asyncio

import pytest

from plume.plugins import outcomes


def test_outcome():
    outcome = outcomes.Outcome('label', result=42)

    assert outcome.ok
    assert outcome.result == 42
    assert outcome.error is None


def test_outcome_error():
    error = ValueError('bad')
    outcome = outcomes.Outcome('label', error=error)

    assert not outcome.ok
    assert outcome.result is None
    assert outcome.error is error


def test_invoke():
    def handler(a, b):
        return a + b

    outcome = asyncio.run(outcomes.invoke('add', handler, 1, 2))

    assert outcome == outcomes.Outcome('add', result=3)


def test_invoke_coroutine():
    calls = []

    async def handler(value):
        await asyncio.sleep(0)
        calls.append(value)
        return value * 2

    outcome = asyncio.run(outcomes.invoke('double', handler, 21))

    assert outcome.ok
    assert outcome.result == 42
    assert calls == [21], 'The coroutine must be awaited to completion'


def test_invoke_error():
    def handler():
        raise RuntimeError('boom')

    outcome = asyncio.run(outcomes.invoke('boom', handler))

    assert not outcome.ok
    assert outcome.label == 'boom'
    assert isinstance(outcome.error, RuntimeError)
    assert str(outcome.error) == 'boom'


def test_invoke_coroutine_error():
    async def handler():
        await asyncio.sleep(0)
        raise KeyError('missing')

    outcome = asyncio.run(outcomes.invoke('missing', handler))

    assert not outcome.ok
    assert isinstance(outcome.error, KeyError)


def test_invoke_keyboard_interrupt():
    def handler():
        raise KeyboardInterrupt()

    with pytest.raises(KeyboardInterrupt):
        asyncio.run(outcomes.invoke('interrupt', handler))
