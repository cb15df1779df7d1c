"""HTTP API to inspect and mutate the managed record set."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import (
    ConfigError,
    DDNSError,
    ProviderError,
    RecordNotFound,
    TransportError,
    ZoneNotFound,
)
from .ip import ExternalIPState
from .records import DNSRecord, RecordStore
from .syncer import DDNSSyncer

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ConfigError: 400,
    ZoneNotFound: 404,
    RecordNotFound: 404,
    ProviderError: 502,
    TransportError: 502,
}


class RecordRequest(BaseModel):
    """Body of an upsert; name and content come from the path and current IP."""

    ttl: Optional[int] = Field(default=None, gt=0)
    proxied: Optional[bool] = None


def _envelope(
    status_code: int = 200,
    *,
    ip: Optional[str] = None,
    records: Optional[List[DNSRecord]] = None,
    error: Optional[str] = None,
    source: Optional[str] = None,
) -> JSONResponse:
    content = {}
    if ip is not None:
        content["ip"] = ip
    if source is not None:
        content["source"] = source
    if records is not None:
        content["records"] = [r.to_dict() for r in records]
    if error is not None:
        content["error"] = error
    return JSONResponse(content, status_code=status_code)


def _current_ip(request: Request) -> Optional[str]:
    value = request.app.state.ip_state.get()
    return value.ip if value else None


async def ddns_error_handler(request: Request, exc: DDNSError) -> JSONResponse:
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return _envelope(status_code, ip=_current_ip(request), error=str(exc))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return _envelope(400, ip=_current_ip(request), error=f"Invalid request: {messages}")


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    return _envelope(500, ip=_current_ip(request), error=f"Internal error: {exc}")


def create_app(
    record_store: RecordStore,
    ip_state: ExternalIPState,
    syncer: Optional[DDNSSyncer] = None,
) -> FastAPI:
    """Build the API. When a syncer is given it runs for the app's lifetime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if syncer is not None:
            syncer.start()
        yield
        if syncer is not None:
            syncer.stop(timeout=5)

    app = FastAPI(title="cloudflare-ddns", lifespan=lifespan)
    app.state.record_store = record_store
    app.state.ip_state = ip_state
    app.add_exception_handler(DDNSError, ddns_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # Sync handlers run in the threadpool; provider calls block.

    @app.get("/")
    def root() -> JSONResponse:
        value = ip_state.get()
        if value is None:
            return _envelope()
        return _envelope(ip=value.ip, source=value.source)

    @app.get("/{zone}")
    def list_zone(zone: str, request: Request) -> JSONResponse:
        return _envelope(ip=_current_ip(request), records=record_store.list(zone))

    @app.get("/{zone}/{record}")
    def get_record(zone: str, record: str, request: Request) -> JSONResponse:
        return _envelope(ip=_current_ip(request), records=[record_store.get(zone, record)])

    @app.post("/{zone}/{record}")
    def upsert_record(
        zone: str, record: str, request: Request, body: Optional[RecordRequest] = None
    ) -> JSONResponse:
        ip = _current_ip(request)
        if ip is None:
            return _envelope(503, error="External IP is not known yet")

        body = body or RecordRequest()
        desired = DNSRecord(name=record, content=ip, ttl=body.ttl, proxied=body.proxied)
        return _envelope(ip=ip, records=[record_store.upsert(zone, desired)])

    @app.delete("/{zone}/{record}")
    def delete_record(zone: str, record: str, request: Request) -> JSONResponse:
        return _envelope(ip=_current_ip(request), records=[record_store.delete(zone, record)])

    return app
