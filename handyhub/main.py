"""HandyHub: task marketplace with live task chat."""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from handyhub.api.router import api_router
from handyhub.config import settings
from handyhub.database import close_db, init_db
from handyhub.events import broadcaster, connections
from handyhub.rate_limit import limiter

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("handyhub")


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_url = settings.database_url
    if not db_url.startswith("sqlite"):
        Path(db_url).parent.mkdir(parents=True, exist_ok=True)
        db_url = f"sqlite+aiosqlite:///{db_url}"
    await init_db(db_url)
    safe_url = re.sub(r"://[^:]+:[^@]+@", "://***:***@", db_url)
    logger.info("Database connected: %s", safe_url)

    yield

    await broadcaster.drain()
    connections.clear()
    await close_db()
    logger.info("Database closed")


app = FastAPI(
    title="HandyHub",
    description="Requester/fulfiller task marketplace with live task chat",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

app.include_router(api_router)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error(str(exc.detail), exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    message = str(first.get("msg", "Invalid request body")).removeprefix("Value error, ")
    loc = [str(p) for p in first.get("loc", ()) if p != "body"]
    # Messages raised by our own validators are already phrased for the client
    if loc and first.get("type") != "value_error":
        message = f"{'.'.join(loc)}: {message}"
    return _error(message, 400)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return _error(f"Rate limit exceeded: {exc.detail}", 429)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error("Internal server error", 500)


@app.get("/health")
async def health():
    return {"status": "ok", "connections": connections.session_count()}


def main():
    import uvicorn

    uvicorn.run(
        "handyhub.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )


if __name__ == "__main__":
    main()
