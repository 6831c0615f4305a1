from __future__ import annotations

import asyncio
from typing import Callable

from loguru import logger

from clisense.backend import KnowledgeBackend
from clisense.config import DEFAULT_STATUS_INTERVAL_SECONDS
from clisense.schema import Status


class StatusPoller:
    """Polls the backend status on a fixed cadence.

    The next poll is scheduled only after the previous one resolved, so at
    most one poll is in flight.
    """

    def __init__(
        self,
        backend: KnowledgeBackend,
        publish: Callable[[Status], None],
        *,
        interval: float = DEFAULT_STATUS_INTERVAL_SECONDS,
    ) -> None:
        self._backend = backend
        self._publish = publish
        self.interval = interval
        self.last_status = Status()
        self._task: asyncio.Task[None] | None = None

    async def poll_once(self) -> Status:
        try:
            status = await self._backend.get_status()
        except Exception as exc:  # noqa: BLE001
            logger.error("status poll failed: {}", exc)
            status = Status()
        self.last_status = status
        self._publish(status)
        return status

    async def run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
