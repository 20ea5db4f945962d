"""
Correlation ID Middleware

Tags every HTTP request and WebSocket session with a correlation ID so that
log lines written while serving it (including snapshot pushes) can be traced.
"""

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ...utils.logger import set_correlation_id
from ...utils.idgen import generate_correlation_id

HEADER = "X-Correlation-Id"


class CorrelationIdMiddleware:
    """
    Pure ASGI middleware, so WebSocket scopes are covered as well.
    
    - Reuses an incoming X-Correlation-Id header or generates one
    - Sets it in the logging context for the lifetime of the request
    - Echoes it in HTTP response headers
    """
    
    def __init__(self, app: ASGIApp):
        self.app = app
    
    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return
        
        correlation_id = Headers(scope=scope).get(HEADER) or generate_correlation_id()
        set_correlation_id(correlation_id)
        
        async def send_with_header(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[HEADER] = correlation_id
            await send(message)
        
        await self.app(scope, receive, send_with_header)
