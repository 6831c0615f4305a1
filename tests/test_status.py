from __future__ import annotations

import asyncio

from clisense.schema import Status
from clisense.status import StatusPoller


class _Backend:
    def __init__(self, *messages: str) -> None:
        self._messages = list(messages)
        self.calls = 0

    async def get_status(self) -> Status:
        self.calls += 1
        if not self._messages:
            raise RuntimeError("backend gone")
        return Status(message=self._messages.pop(0))


def test_poll_once_publishes_status() -> None:
    published: list[Status] = []
    poller = StatusPoller(_Backend("Pay-As-You-Go"), published.append)
    status = asyncio.run(poller.poll_once())
    assert status.message == "Pay-As-You-Go"
    assert poller.last_status == status
    assert published == [status]


def test_poll_failure_publishes_empty_status() -> None:
    published: list[Status] = []
    poller = StatusPoller(_Backend(), published.append)
    status = asyncio.run(poller.poll_once())
    assert status == Status()
    assert published == [Status()]


def test_poller_runs_until_stopped() -> None:
    messages = [f"status-{index}" for index in range(200)]
    backend = _Backend(*messages)
    published: list[Status] = []
    poller = StatusPoller(backend, published.append, interval=0.01)

    async def _scenario() -> None:
        task = poller.start()
        assert poller.start() is task
        assert poller.running
        await asyncio.sleep(0.05)
        poller.stop()
        assert not poller.running
        await asyncio.sleep(0)
        assert task.cancelled() or task.done()

    asyncio.run(_scenario())
    assert published
    assert [status.message for status in published] == messages[: len(published)]
    assert backend.calls == len(published)


def test_default_interval() -> None:
    poller = StatusPoller(_Backend(), lambda _status: None)
    assert poller.interval == 5.0
    assert not poller.running
