#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

from .errors import ConfigurationError


@dataclass(frozen=True)
class D2CMessage:
    """
    Route definition as it comes out of the configuration file, with
    "transformFile" already resolved into "transform" text.

    Empty strings mean "not set". Nothing is validated yet, see
    RouteConfig.from_message().

    Example (output):
        D2CMessage(
            path="/{id}/message",
            transform="{ data: .telemetry }",
            device_id_path_param="id",
            auth_header="key",
        )
    """

    path: str
    transform: str = ""
    device_id_path_param: str = ""
    device_id_body_field: str = ""
    device_id_body_query: str = ""
    auth_header: str = ""
    auth_query_param: str = ""


# --- Device id sources (exactly one per route) ---


@dataclass(frozen=True)
class PathParamDeviceId:
    """Device id taken from a named path parameter, e.g. "id" in "/{id}/message"."""

    name: str


@dataclass(frozen=True)
class BodyFieldDeviceId:
    """Device id taken from a top-level field of the original request body."""

    name: str


@dataclass(frozen=True)
class BodyQueryDeviceId:
    """Device id computed by a jq query over the original request body."""

    query: str


DeviceIdSource = Union[PathParamDeviceId, BodyFieldDeviceId, BodyQueryDeviceId]


# --- Auth sources (exactly one per route) ---


@dataclass(frozen=True)
class HeaderAuth:
    """API key read from a request header."""

    name: str


@dataclass(frozen=True)
class QueryParamAuth:
    """API key read from a query string parameter."""

    name: str


AuthSource = Union[HeaderAuth, QueryParamAuth]


@dataclass(frozen=True)
class RouteConfig:
    """
    Validated, immutable description of one inbound path.

    Fields:
      - path: route pattern, may declare path parameters ("/{id}/message")
      - transform: jq query for the request body, None for a pass-through route
      - device_id: where the device id comes from
      - auth: where the API key comes from

    Example (output):
        RouteConfig(
            path="/{id}/message",
            transform=None,
            device_id=PathParamDeviceId(name="id"),
            auth=HeaderAuth(name="key"),
        )
    """

    path: str
    transform: Optional[str]
    device_id: DeviceIdSource
    auth: AuthSource

    @classmethod
    def from_message(cls, message: D2CMessage) -> "RouteConfig":
        """
        Validate a raw D2C message definition.

        Raises ConfigurationError if the path is empty or if not exactly one
        auth source and exactly one device id source are set.
        """
        if not message.path:
            raise ConfigurationError("path missing in D2C message definition")

        auth_sources: List[AuthSource] = []
        if message.auth_header:
            auth_sources.append(HeaderAuth(message.auth_header))
        if message.auth_query_param:
            auth_sources.append(QueryParamAuth(message.auth_query_param))
        if len(auth_sources) != 1:
            raise ConfigurationError(
                f"either authHeader or authQueryParam must be defined in D2C message definition {message.path}"
            )

        device_id_sources: List[DeviceIdSource] = []
        if message.device_id_path_param:
            device_id_sources.append(PathParamDeviceId(message.device_id_path_param))
        if message.device_id_body_field:
            device_id_sources.append(BodyFieldDeviceId(message.device_id_body_field))
        if message.device_id_body_query.strip():
            device_id_sources.append(BodyQueryDeviceId(message.device_id_body_query))
        if len(device_id_sources) != 1:
            raise ConfigurationError(
                "exactly one of deviceIdPathParam, deviceIdBodyField or deviceIdBodyQuery "
                f"must be defined in D2C message definition {message.path}"
            )

        return cls(
            path=message.path,
            transform=message.transform if message.transform.strip() else None,
            device_id=device_id_sources[0],
            auth=auth_sources[0],
        )


@dataclass(frozen=True)
class AugmentedRoute:
    """
    RouteConfig plus the Transform Cache handles of its compiled queries.

    Example (output):
        AugmentedRoute(
            config=RouteConfig(path="/message", ...),
            transform_handle="5b0c...",       # None for pass-through routes
            device_id_query_handle=None,      # set only for BodyQueryDeviceId
        )
    """

    config: RouteConfig
    transform_handle: Optional[str] = None
    device_id_query_handle: Optional[str] = None

    @property
    def path(self) -> str:
        return self.config.path
