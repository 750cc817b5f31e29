from __future__ import annotations

import asyncio

from discovery.services.debounce import Debouncer


def test_only_last_trigger_fires() -> None:
    calls = []

    async def run() -> None:
        debouncer = Debouncer(calls.append, delay=0.05)
        debouncer.trigger("a")
        debouncer.trigger("b")
        debouncer.trigger("c")
        assert debouncer.pending
        await asyncio.sleep(0.15)
        assert not debouncer.pending

    asyncio.run(run())
    assert calls == ["c"]


def test_cancel_drops_pending_call() -> None:
    calls = []

    async def run() -> None:
        debouncer = Debouncer(calls.append, delay=0.05)
        debouncer.trigger("a")
        debouncer.cancel()
        await asyncio.sleep(0.1)

    asyncio.run(run())
    assert calls == []


def test_flush_fires_immediately_once() -> None:
    calls = []

    async def handler(value) -> None:
        calls.append(value)

    async def run() -> None:
        debouncer = Debouncer(handler, delay=10)
        debouncer.trigger("now")
        await debouncer.flush()
        await debouncer.flush()

    asyncio.run(run())
    assert calls == ["now"]


def test_callback_errors_are_logged_not_raised() -> None:
    def boom() -> None:
        raise RuntimeError("boom")

    async def run() -> None:
        debouncer = Debouncer(boom, delay=0)
        debouncer.trigger()
        await asyncio.sleep(0.05)
        assert not debouncer.pending

    asyncio.run(run())
