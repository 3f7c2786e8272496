"""
Streaming responses with guaranteed cleanup.

A StreamingResponse body generator only runs its `finally` once it has been
iterated. A client that is gone before the first chunk (disconnect, failed
response start) never gets that far, so resources acquired by the endpoint
are released from the response itself.
"""

from typing import AsyncIterator, Awaitable, Callable

import anyio
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send


class ClosingStreamingResponse(StreamingResponse):
    """StreamingResponse that awaits `on_close` however the response ends."""

    def __init__(self, content: AsyncIterator[str], on_close: Callable[[], Awaitable[None]], **kwargs):
        super().__init__(content, **kwargs)
        self.on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            with anyio.CancelScope(shield=True):
                await self.on_close()
