"""
SuperSteaks - FastAPI Application

Tournament draw backend: users join a tournament and get a random team in
a fixed-size lobby.
"""

from collections import deque
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from typing import Deque, Dict
import logging
import math
import threading
import time

from . import config
from .api.routes import router
from .services.errors import AllocationError
from .storage import DatabaseError, get_database, reset_database

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


# ============================================================================
# RATE LIMITING
# ============================================================================

class RateLimiter:
    """Sliding-window rate limiter keyed by caller and operation."""

    # Idle keys are dropped once this many are tracked
    PRUNE_THRESHOLD = 10000

    def __init__(self, max_requests: int = 10, window_seconds: int = 60):
        """
        Initialize rate limiter.

        Args:
            max_requests: Requests allowed per key within the window
            window_seconds: Length of the sliding window
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def try_acquire(self, key: str) -> tuple[bool, int]:
        """
        Try to acquire a slot for key.

        Returns:
            Tuple of (allowed: bool, wait_seconds: int)
            - If allowed, wait_seconds is 0
            - If not allowed, wait_seconds is how long until a slot frees up
        """
        with self._lock:
            now = time.monotonic()
            if len(self._hits) > self.PRUNE_THRESHOLD:
                self._prune(now)

            hits = self._hits.setdefault(key, deque())
            while hits and now - hits[0] >= self.window_seconds:
                hits.popleft()

            if len(hits) < self.max_requests:
                hits.append(now)
                return True, 0

            wait_seconds = max(1, math.ceil(self.window_seconds - (now - hits[0])))
            return False, wait_seconds

    def _prune(self, now: float) -> None:
        """Forget keys with no hits inside the window. Caller holds the lock."""
        stale = [
            key for key, hits in self._hits.items()
            if not hits or now - hits[-1] >= self.window_seconds
        ]
        for key in stale:
            del self._hits[key]

    def reset(self) -> None:
        """Reset the rate limiter (for testing)."""
        with self._lock:
            self._hits.clear()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("[*] Connecting to document store...")
    db = get_database()
    if db.health_check():
        logger.info("[+] Document store is healthy")
    else:
        logger.warning("[!] Document store health check failed")

    logger.info("[*] App is ready.")

    yield

    logger.info("[*] Shutting down...")
    reset_database()


# Initialize FastAPI app with lifespan
app = FastAPI(
    title="SuperSteaks",
    description="Join a tournament, get a random team in a lobby",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiter for join endpoint, owned by the app
app.state.join_rate_limiter = RateLimiter(
    max_requests=config.JOIN_RATE_LIMIT,
    window_seconds=config.JOIN_RATE_WINDOW_SECONDS
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AllocationError)
async def allocation_error_handler(request: Request, exc: AllocationError) -> JSONResponse:
    """Map allocation errors to their HTTP status."""
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(DatabaseError)
async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    """Storage failures that escaped a service."""
    logger.error(f"[API] Storage error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "internal", "detail": "Storage failure, please try again"},
    )


app.include_router(router)


# Run with: uvicorn supersteaks.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
