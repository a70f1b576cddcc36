import asyncio
from typing import Optional


class ShutdownSignal:
    """Request that one relay worker leave its consume loop.

    Each worker owns its own signal, so a request raised by one relay never
    stops another.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def request(self, reason: str) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_requested(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> Optional[str]:
        await self._event.wait()
        return self.reason
