"""
Custom middleware for the FastAPI application.
"""
import json
import logging
import time
import uuid
from collections import deque
from typing import Deque, Dict, Iterable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ..config import settings

# Set up logging
logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging request and response information.
    """
    async def dispatch(self, request: Request, call_next):
        """
        Process the request and log information.

        Args:
            request: The incoming request
            call_next: The next middleware or endpoint handler

        Returns:
            Response: The response from the next handler
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Request {request_id} started: {request.method} {request.url.path} from {client_host}")

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"Request {request_id} failed: {request.method} {request.url.path} "
                f"- Error: {str(e)} - Duration: {process_time:.4f}s"
            )
            raise

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            f"Request {request_id} completed: {request.method} {request.url.path} "
            f"- Status: {response.status_code} - Duration: {process_time:.4f}s"
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window rate limiting per client IP on selected path prefixes.

    This is a simple in-memory rate limiter; counters are per process.
    """
    def __init__(
        self,
        app: ASGIApp,
        rate_limit: int = 100,
        window_seconds: int = 15 * 60,
        path_prefixes: Iterable[str] = ("/",),
    ):
        super().__init__(app)
        self.rate_limit = rate_limit
        self.window_seconds = window_seconds
        self.path_prefixes = tuple(path_prefixes)
        self.requests: Dict[str, Deque[float]] = {}
        self.last_sweep = time.time()

    def evict_idle_clients(self, now: float) -> None:
        """Drop clients with no request inside the current window."""
        idle = [
            ip for ip, timestamps in self.requests.items()
            if not timestamps or now - timestamps[-1] >= self.window_seconds
        ]
        for ip in idle:
            del self.requests[ip]
        self.last_sweep = now

    async def dispatch(self, request: Request, call_next):
        """
        Process the request with rate limiting.

        Returns:
            Response: The response from the next handler or a 429 response
        """
        if not request.url.path.startswith(self.path_prefixes):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()

        if now - self.last_sweep >= self.window_seconds:
            self.evict_idle_clients(now)

        timestamps = self.requests.setdefault(client_ip, deque())
        while timestamps and now - timestamps[0] >= self.window_seconds:
            timestamps.popleft()

        if len(timestamps) >= self.rate_limit:
            logger.warning(f"Rate limit exceeded for IP: {client_ip} on {request.url.path}")
            retry_after = int(self.window_seconds - (now - timestamps[0])) + 1
            return Response(
                content=json.dumps({"error": "Too many requests, please try again later", "code": "RATE_LIMITED"}),
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(retry_after)},
            )

        timestamps.append(now)
        return await call_next(request)


def setup_middlewares(app, api_prefix: str = "/api/v1"):
    """
    Set up all custom middlewares for the application.

    Args:
        app: FastAPI application instance
        api_prefix: Prefix under which the rate-limited routers are mounted
    """
    app.add_middleware(
        RateLimitMiddleware,
        rate_limit=settings.auth_rate_limit,
        window_seconds=settings.auth_rate_window_seconds,
        path_prefixes=(f"{api_prefix}/auth", f"{api_prefix}/registration"),
    )
    app.add_middleware(RequestLoggingMiddleware)
