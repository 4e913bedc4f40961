"""Response recording wrapper for forwarded responses."""

from typing import AsyncIterator, Awaitable, Callable, Optional


class StatusRecorder:
    """
    Captures the status code and number of bytes written for one response.

    The completion callback fires exactly once, after the body has been
    fully streamed (or the stream was abandoned), with the captured status.
    """

    def __init__(
        self,
        on_complete: Optional[Callable[[int], None]] = None,
        status_code: int = 200
    ):
        self.status_code = status_code
        self.written = 0
        self._on_complete = on_complete
        self._completed = False

    @property
    def completed(self) -> bool:
        return self._completed

    def write_header(self, status_code: int) -> None:
        self.status_code = status_code

    async def stream(
        self,
        chunks: AsyncIterator[bytes],
        close: Optional[Callable[[], Awaitable[None]]] = None
    ) -> AsyncIterator[bytes]:
        """Pass chunks through unmodified while counting bytes."""
        try:
            async for chunk in chunks:
                self.written += len(chunk)
                yield chunk
        finally:
            if close is not None:
                await close()
            self.complete()

    def complete(self) -> None:
        if self._completed:
            return
        self._completed = True
        if self._on_complete is not None:
            self._on_complete(self.status_code)
