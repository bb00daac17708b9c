#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
import secrets
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from http import HTTPStatus
from typing import Iterable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import AdapterError, ConfigurationError
from .models import D2CMessage
from .pipeline import RouteHandler
from .route_table import RouteTable
from .transform_cache import TransformCache
from ..bridge.base import BridgeClientFactory
from ..bridge.http_client import BridgeClientConfig, make_bridge_client_factory
from ..lib.constants import MAX_BODY_SIZE

logger = logging.getLogger(__name__)


class RequestLogger(logging.LoggerAdapter):
    """Prefixes every record with the short request id."""

    def process(self, msg, kwargs):
        return "[%s] %s" % (self.extra["request_id"], msg), kwargs


def make_short_id() -> str:
    """Random 8-character hex string."""
    return secrets.token_hex(4)


async def log_requests(request: Request, call_next):
    start_time = time.monotonic()
    request_logger = RequestLogger(logger, {"request_id": make_short_id()})
    request.state.logger = request_logger
    request_logger.info("HTTP request. Path %s", request.url.path)

    # Unhandled errors escape call_next and are answered with 500 further out
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        request_logger.info(
            "HTTP response. Path %s, status %d, duration %.3fs",
            request.url.path,
            status_code,
            time.monotonic() - start_time,
        )


async def adapter_error_handler(request: Request, exc: AdapterError) -> JSONResponse:
    """Expected pipeline failures: JSON {"error": ...} with the mapped status"""
    log = getattr(request.state, "logger", logger)
    log.error("%s %s failed with status %d: %s", request.method, request.url.path, exc.status_code, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = str(uuid.uuid4())
    logger.exception(
        "[%r] Unhandled error on %r %r: %r",
        error_id,
        request.method,
        request.url.path,
        exc,
    )
    return JSONResponse(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        content={"error": f"internal server error (error_id={error_id})"},
    )


def _endpoint(handler: RouteHandler):
    # FastAPI introspects plain functions only
    async def d2c_message(request: Request):
        return await handler(request)

    return d2c_message


def create_app(
    table: RouteTable,
    cache: TransformCache,
    new_bridge_client: BridgeClientFactory,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    max_body_size: int = MAX_BODY_SIZE,
) -> FastAPI:
    """
    Build the FastAPI application serving every route of the table

    One POST handler is registered per route path. http_client, if given,
    is the shared Bridge connection pool and is closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if http_client is not None:
            await http_client.aclose()

    app = FastAPI(
        title="IoT Central Device Bridge transform adapter",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.middleware("http")(log_requests)
    app.add_exception_handler(AdapterError, adapter_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    for route in table:
        handler = RouteHandler(
            route=route,
            cache=cache,
            new_bridge_client=new_bridge_client,
            max_body_size=max_body_size,
        )
        app.add_api_route(
            route.path,
            _endpoint(handler),
            methods=["POST"],
            name=f"d2c:{route.path}",
            include_in_schema=False,
        )

    return app


@dataclass
class Adapter:
    """
    Fully assembled transform adapter

    Fields:
      - app: ASGI application to serve (uvicorn)
      - table: route table built at startup
      - cache: compiled queries of all routes
      - bridge_url: Device Bridge base URL
    """

    app: FastAPI
    table: RouteTable
    cache: TransformCache
    bridge_url: str


def create_adapter(
    messages: Iterable[D2CMessage],
    bridge_url: str,
    *,
    new_bridge_client: Optional[BridgeClientFactory] = None,
    bridge_cfg: Optional[BridgeClientConfig] = None,
) -> Adapter:
    """
    Build a transform adapter for a given configuration

    new_bridge_client replaces the default httpx Bridge client factory
    (used by tests). Raises ConfigurationError on invalid routes or a
    missing Bridge URL.
    """
    logger.info("Initializing adapter for Bridge %s", bridge_url)
    if not bridge_url:
        raise ConfigurationError("missing Bridge URL")

    cache = TransformCache()
    table = RouteTable.build(messages, cache)

    http_client: Optional[httpx.AsyncClient] = None
    if new_bridge_client is None:
        cfg = bridge_cfg or BridgeClientConfig(base_url=bridge_url)
        new_bridge_client, http_client = make_bridge_client_factory(cfg)

    app = create_app(table, cache, new_bridge_client, http_client=http_client)
    return Adapter(app=app, table=table, cache=cache, bridge_url=bridge_url)
