"""
Gateway Server

FastAPI app exposing the Retrieval Gateway over HTTP.

Endpoints:
- GET /api/health: liveness
- GET /api/search: allow-listed web search
- GET /api/fetch: allow-listed page fetch + article extraction

Every classified failure is returned as {"error", "code", "url"?} with the
status from the gateway error taxonomy.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..common.config import GatewayConfig, load_config
from ..common.schemas import FetchResponse, HealthResponse, SearchResponse
from .errors import GatewayError
from .service import RetrievalGateway

logger = logging.getLogger("companion.gateway.server")

# .env from the working directory, before CORS settings are read below
load_dotenv(find_dotenv(usecwd=True))

# Global state
gateway: Optional[RetrievalGateway] = None


def configure(config: GatewayConfig, transport=None) -> RetrievalGateway:
    """Install the process-wide gateway instance."""
    global gateway
    gateway = RetrievalGateway(config, transport=transport)
    return gateway


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the gateway on startup unless one was installed already"""
    current = _gateway()
    logger.info(
        "Gateway ready (allow-list: %s, fetch concurrency: %d)",
        ", ".join(current.allow_list.domains) or "<empty>",
        current.limiter.max_concurrent,
    )
    yield
    await shutdown()


async def shutdown() -> None:
    global gateway
    if gateway is not None:
        await gateway.aclose()
        gateway = None


def _cors_origins():
    try:
        config = load_config().gateway
    except Exception as e:
        logger.warning("Could not read CORS settings, allowing all origins: %s", e)
        return ["*"]
    return ["*"] if config.cors_allow_all else config.cors_origins


app = FastAPI(
    title="Companion Retrieval Gateway",
    description="Allow-listed search and article extraction for trusted health sources",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(status_code=exc.status, content=exc.to_dict())


def _gateway() -> RetrievalGateway:
    if gateway is None:
        return configure(load_config().gateway)
    return gateway


@app.get("/api/health", response_model=HealthResponse)
async def health():
    """Health check"""
    return HealthResponse(ok=True, time=datetime.now(timezone.utc).isoformat())


@app.get("/api/search", response_model=SearchResponse)
async def search(
    q: Optional[str] = None,
    count: int = 5,
    offset: int = 0,
    freshness: Optional[str] = None,
    mkt: Optional[str] = None,
):
    """Allow-listed web search"""
    return await _gateway().search(q, count=count, offset=offset, freshness=freshness, mkt=mkt)


@app.get("/api/fetch", response_model=FetchResponse)
async def fetch(url: Optional[str] = None, maxChars: Optional[int] = None):
    """Fetch a trusted page and return its main text"""
    return await _gateway().fetch(url, max_chars=maxChars)


def run_server():
    """Run the gateway server"""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    configure(config.gateway)
    port = config.gateway.port

    logger.info("Starting gateway on http://127.0.0.1:%d", port)
    uvicorn.run(app, host="0.0.0.0", port=port, reload=False)


if __name__ == "__main__":
    run_server()
