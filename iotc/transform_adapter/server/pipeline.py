#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Any, Awaitable, Dict, FrozenSet

from fastapi import Request
from fastapi.responses import Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from .errors import BridgeError, RequestValidationError, TransformEvaluationError
from .models import (
    AugmentedRoute,
    AuthSource,
    BodyFieldDeviceId,
    BodyQueryDeviceId,
    HeaderAuth,
    PathParamDeviceId,
    QueryParamAuth,
)
from .transform_cache import TransformCache
from ..bridge.base import ApiKeyAuth, BridgeClientFactory
from ..bridge.models import BridgeResponse, MessageBody
from ..lib.constants import CREATION_TIME_FIELD, FORWARD_RETRY_ATTEMPTS, MAX_BODY_SIZE

logger = logging.getLogger(__name__)

# Not a registered status; used when the caller went away before we answered
CLIENT_CLOSED_REQUEST = 499

_PATH_PARAM_RE = re.compile(r"\{([^}:]+)(?::[^}]*)?\}")
_RFC3339_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)


def path_param_names(path: str) -> FrozenSet[str]:
    """
    Names of the parameters declared by a route pattern

    Examples:
        path_param_names("/{id}/message")          -> {"id"}
        path_param_names("/{app}/{dev:path}/data") -> {"app", "dev"}
    """
    return frozenset(_PATH_PARAM_RE.findall(path))


# --- Body ---


async def read_body(request: Request, limit: int = MAX_BODY_SIZE) -> bytes:
    """
    Read the request body, refusing to buffer more than limit bytes
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise RequestValidationError(f"failed to decode JSON body: request body too large (limit {limit} bytes)")

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise RequestValidationError(f"failed to decode JSON body: request body too large (limit {limit} bytes)")
    return bytes(body)


def decode_json_body(raw: bytes) -> Dict[str, Any]:
    try:
        decoded = json.loads(raw)
    except ValueError as e:
        raise RequestValidationError(f"failed to decode JSON body: {e}", cause=e) from e
    if not isinstance(decoded, dict):
        raise RequestValidationError(
            f"failed to decode JSON body: expected a JSON object, got {type(decoded).__name__}"
        )
    return decoded


# --- Timestamp coercion ---


def parse_rfc3339(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp ("2031-09-22T12:42:31Z", "2031-09-22T14:42:31.5+02:00")

    Raises ValueError if the string is not a valid RFC 3339 timestamp.
    """
    m = _RFC3339_RE.match(value)
    if m is None:
        raise ValueError(f"{value!r} is not an RFC 3339 timestamp")

    year, month, day, hour, minute, second = (int(g) for g in m.groups()[:6])
    fraction, offset = m.group(7), m.group(8)
    microsecond = int((fraction[1:] + "000000")[:6]) if fraction else 0

    if offset in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = 1 if offset[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(offset[1:3]), minutes=int(offset[4:6])))

    try:
        return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)
    except ValueError as e:
        raise ValueError(f"{value!r} is not an RFC 3339 timestamp: {e}") from e


def coerce_datetime_field(value: Any, field: str = CREATION_TIME_FIELD) -> None:
    """
    Convert field of a JSON object from an RFC 3339 string to a datetime, in place

    No-op if value is not an object or the field is absent or null.
    """
    if not isinstance(value, dict):
        return
    raw = value.get(field)
    if raw is None:
        return
    if not isinstance(raw, str):
        raise RequestValidationError(
            f'failed to parse "{field}": if provided, field "{field}" must be a timestamp string'
        )
    try:
        value[field] = parse_rfc3339(raw)
    except ValueError as e:
        raise RequestValidationError(f'failed to parse "{field}": {e}', cause=e) from e


def to_message_body(value: Any) -> MessageBody:
    try:
        return MessageBody.model_validate(value)
    except ValidationError as e:
        raise RequestValidationError(
            "failed to transform payload to expected Device Bridge format: %s"
            % "; ".join(
                "%s: %s" % (".".join(str(p) for p in err["loc"]) or "<root>", err["msg"]) for err in e.errors()
            ),
            cause=e,
        ) from e


# --- Auth / device id ---


def resolve_api_key(auth: AuthSource, request: Request) -> str:
    """
    Extract the API key from the configured query parameter or header

    NOTE:
      An absent header yields an empty key that is still forwarded, while an
      absent query parameter is rejected. Kept as is: the Bridge decides
      what an empty key means.
    """
    if isinstance(auth, QueryParamAuth):
        values = request.query_params.getlist(auth.name)
        if not values:
            raise RequestValidationError(f'expected auth query parameter "{auth.name}" to be defined')
        return values[0]
    if isinstance(auth, HeaderAuth):
        return request.headers.get(auth.name, "")
    raise RequestValidationError("no auth method specified")


async def resolve_device_id(
    route: AugmentedRoute,
    cache: TransformCache,
    body: Dict[str, Any],
    request: Request,
) -> str:
    """
    Find the device id with the route's strategy, always using the original body
    """
    source = route.config.device_id

    if isinstance(source, BodyQueryDeviceId) and route.device_id_query_handle is not None:
        try:
            device_id = await run_in_threadpool(cache.execute, route.device_id_query_handle, body)
        except TransformEvaluationError as e:
            raise RequestValidationError(f"device id body query failed: {e}", cause=e) from e
        if not isinstance(device_id, str) or not device_id:
            raise RequestValidationError("expected result from device id body query to be a non-empty string")
        return device_id

    if isinstance(source, BodyFieldDeviceId):
        if source.name not in body:
            raise RequestValidationError(f'expected device id in "{source.name}" body field')
        device_id = body[source.name]
        if not isinstance(device_id, str) or not device_id:
            raise RequestValidationError(
                f'expected device id in "{source.name}" body field to be a non-empty string'
            )
        return device_id

    if isinstance(source, PathParamDeviceId) and source.name in path_param_names(route.path):
        # Convertors ("{id:int}", "{id:uuid}") hand back non-string values
        device_id = request.path_params.get(source.name)
        if device_id is None or device_id == "":
            raise RequestValidationError(f'expected device id in "{source.name}" path parameter')
        return str(device_id)

    raise RequestValidationError("no device id specified")


# --- Handler ---


class ClientDisconnected(Exception):
    pass


async def _until_disconnected(request: Request, call: Awaitable[BridgeResponse], poll_interval: float) -> BridgeResponse:
    """
    Await call, cancelling it if the caller disconnects in the meantime

    Raises ClientDisconnected if the caller went away.
    """
    task = asyncio.ensure_future(call)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


@dataclass(frozen=True)
class RouteHandler:
    """
    HTTP handler of one D2C route

    Holds only immutable route configuration and shared read-only
    collaborators. Per-request state (the Bridge client with its credential)
    is created inside __call__.

    Pipeline:
      decode body -> transform -> coerce creationTimeUtc -> MessageBody
      -> API key -> device id -> forward to Bridge

    jq queries run in the threadpool, so a slow transform does not hold
    up other requests on the event loop.
    """

    route: AugmentedRoute
    cache: TransformCache
    new_bridge_client: BridgeClientFactory
    max_body_size: int = MAX_BODY_SIZE
    disconnect_poll_interval: float = 0.1

    async def __call__(self, request: Request) -> Response:
        log = getattr(request.state, "logger", logger)

        body = decode_json_body(await read_body(request, self.max_body_size))

        # Execute body transformation if one was provided. If not, the route is pass-through.
        if self.route.transform_handle is not None:
            try:
                transformed = await run_in_threadpool(self.cache.execute, self.route.transform_handle, body)
            except TransformEvaluationError as e:
                raise TransformEvaluationError(f"payload transformation failed: {e}", cause=e) from e
        else:
            transformed = body

        coerce_datetime_field(transformed, CREATION_TIME_FIELD)
        message = to_message_body(transformed)

        bridge_client = self.new_bridge_client()
        bridge_client.set_authorization(ApiKeyAuth(resolve_api_key(self.route.config.auth, request)))

        device_id = await resolve_device_id(self.route, self.cache, body, request)

        bridge_client.set_retry_attempts(FORWARD_RETRY_ATTEMPTS)
        log.debug("Forwarding message for device %r to %s", device_id, bridge_client.base_url)
        try:
            await _until_disconnected(
                request,
                bridge_client.send_message(device_id, message),
                self.disconnect_poll_interval,
            )
        except BridgeError as e:
            raise BridgeError(
                f"call to Device Bridge failed: {e}",
                status_code=e.response_status_code,
                cause=e,
            ) from e
        except ClientDisconnected:
            log.warning("Client disconnected, Bridge call for device %r abandoned", device_id)
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        return Response(status_code=HTTPStatus.OK)
