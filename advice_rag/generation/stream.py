"""
Single-consumption text stream for stage 2 output.
"""

import asyncio
from typing import AsyncIterator, List, Optional

from ..core.errors import GenerationError, StreamReuseError


class SingleUseStream:
    """
    Lazy, finite sequence of text chunks that can be iterated exactly once.

    A second `async for` raises StreamReuseError. Stopping early and calling
    `aclose()` (or letting the iterator be closed) closes the source.
    Source failures and per-chunk timeouts surface as stage 2 GenerationError.
    """

    def __init__(self, source: AsyncIterator[str], chunk_timeout: Optional[float] = None):
        self._source = source
        self._chunk_timeout = chunk_timeout
        self._consumed = False
        self._closed = False
        self._chunks: List[str] = []

    @classmethod
    def of(cls, *chunks: str) -> "SingleUseStream":
        """Stream over fixed chunks."""
        async def _fixed():
            for chunk in chunks:
                yield chunk
        return cls(_fixed())

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def text(self) -> str:
        """Concatenation of the chunks delivered so far."""
        return "".join(self._chunks)

    def __aiter__(self):
        if self._consumed:
            raise StreamReuseError("Stream has already been consumed")
        self._consumed = True
        return self._iterate()

    async def _next_chunk(self) -> str:
        if self._chunk_timeout is None:
            return await self._source.__anext__()
        return await asyncio.wait_for(self._source.__anext__(), timeout=self._chunk_timeout)

    async def _iterate(self):
        try:
            while True:
                try:
                    chunk = await self._next_chunk()
                except StopAsyncIteration:
                    return
                except asyncio.TimeoutError as e:
                    raise GenerationError(
                        f"Stage 2 generation timed out after {self._chunk_timeout}s", stage=2
                    ) from e
                except GenerationError:
                    raise
                except Exception as e:
                    raise GenerationError(f"Stage 2 generation failed: {e}", stage=2) from e

                if chunk:
                    self._chunks.append(chunk)
                    yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Close the source. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        close = getattr(self._source, "aclose", None)
        if close is not None:
            await close()
