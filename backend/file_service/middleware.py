"""Request deadline middleware.

Runs each HTTP request under asyncio.wait_for. On expiry the handler task is
cancelled, which cancels whatever store, database or provider call it is
awaiting, and the client gets a 504.
"""
import asyncio
import logging

from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


class RequestDeadlineMiddleware:
    def __init__(self, app: ASGIApp, timeout_seconds: float) -> None:
        self.app = app
        self.timeout_seconds = timeout_seconds

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def _send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await asyncio.wait_for(self.app(scope, receive, _send), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"{scope.get('method')} {scope.get('path')} exceeded {self.timeout_seconds}s deadline"
            )
            # Headers already sent (streamed download); the connection just ends
            if response_started:
                return
            resp = JSONResponse(
                status_code=504,
                content={"detail": "The request took too long to complete."},
            )
            await resp(scope, receive, send)
