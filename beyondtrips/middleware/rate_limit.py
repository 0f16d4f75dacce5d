"""
Beyond Trips Backend — Public Endpoint Throttling
=================================================

Sliding-window-log limiter keyed by client IP, applied only below
`rate_limit_path_prefix` (the anonymous rider API). Authenticated traffic is
throttled upstream by the gateway.

For each request on a limited path:
    - forget timestamps older than `rate_limit_window` seconds
    - at `rate_limit_requests` or more remaining, answer 429 with Retry-After
      set to when the oldest one expires
    - otherwise remember this request and carry on

Windows live in process memory, so N workers admit up to N × the limit.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from beyondtrips.config import settings
from beyondtrips.exceptions import RateLimitExceededError
from beyondtrips.responses import render_app_error

logger = logging.getLogger(__name__)

# Idle clients are swept every this many admitted requests
SWEEP_INTERVAL = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, path_prefix: Optional[str] = None, **kwargs):
        super().__init__(app, **kwargs)
        self.path_prefix = path_prefix or settings.rate_limit_path_prefix
        self._windows: Dict[str, Deque[float]] = defaultdict(deque)
        self._admitted = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        ip = request.client.host if request.client else "unknown"
        now = time.time()
        horizon = now - settings.rate_limit_window

        window = self._windows[ip]
        while window and window[0] <= horizon:
            window.popleft()

        if len(window) >= settings.rate_limit_requests:
            wait = int(window[0] - horizon) + 1
            logger.warning(
                "Throttled %s: %d requests within %ds",
                ip, len(window), settings.rate_limit_window,
            )
            # Raised exceptions would bypass the app's handlers from here
            return render_app_error(RateLimitExceededError(retry_after=wait))

        window.append(now)
        self._admitted += 1
        if self._admitted % SWEEP_INTERVAL == 0:
            self._sweep(horizon)

        return await call_next(request)

    def _sweep(self, horizon: float) -> None:
        idle = [ip for ip, window in self._windows.items() if not window or window[-1] <= horizon]
        for ip in idle:
            del self._windows[ip]
        if idle:
            logger.debug("Dropped rate-limit state for %d idle clients", len(idle))
