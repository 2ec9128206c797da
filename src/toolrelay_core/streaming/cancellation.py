"""Turn-wide cancellation token."""

import asyncio


class CancellationToken:
    """Set once to cancel a turn; checked once per stream event.

    Cancelling never aborts work already in flight. Whoever holds the token
    stops awaiting further results.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()
