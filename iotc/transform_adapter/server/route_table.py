#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional

from .errors import CompileError, ConfigurationError
from .models import AugmentedRoute, BodyQueryDeviceId, D2CMessage, RouteConfig
from .transform_cache import TransformCache

logger = logging.getLogger(__name__)

_PATH_PARAM_RE = re.compile(r"\{[^}:]+(?::([^}]*))?\}")


def _new_handle() -> str:
    return str(uuid.uuid4())


def route_shape(path: str) -> str:
    """
    Path pattern with parameter names dropped, so patterns matching the same
    requests compare equal

    Examples:
        route_shape("/{id}/message")      -> "/{}/message"
        route_shape("/{dev:str}/message") -> "/{}/message"
        route_shape("/{id:int}/message")  -> "/{int}/message"
    """

    def _param(m: "re.Match[str]") -> str:
        convertor = m.group(1) or "str"
        return "{}" if convertor == "str" else "{%s}" % convertor

    return _PATH_PARAM_RE.sub(_param, path)


@dataclass(frozen=True)
class RouteTable:
    """
    Maps each configured path to its augmented route.

    Built once at startup and read-only afterwards, so request handlers
    read it without locking.

    Example usage:

      cache = TransformCache()
      table = RouteTable.build([D2CMessage(path="/{id}/message", ...)], cache)
      route = table.get("/{id}/message")
      # route.transform_handle -> handle of the compiled body transform (or None)
    """

    routes: Dict[str, AugmentedRoute]

    @classmethod
    def build(cls, messages: Iterable[D2CMessage], cache: TransformCache) -> "RouteTable":
        """
        Validate route definitions and pre-compile their queries.

        For each message:
          - validate into RouteConfig (exactly one auth / device id source)
          - body transform -> fresh handle added to the cache,
            no transform -> pass-through route
          - body query device id -> second handle added to the cache

        Raises ConfigurationError on invalid definitions, duplicated paths
        (all routes accept POST only) or queries that fail to compile.
        """
        routes: Dict[str, AugmentedRoute] = {}
        shapes: Dict[str, str] = {}

        for message in messages:
            config = RouteConfig.from_message(message)
            logger.info("Initializing route %s", config.path)

            shape = route_shape(config.path)
            if shape in shapes:
                raise ConfigurationError(
                    f"duplicate D2C message definition for POST {config.path} (same as {shapes[shape]})"
                )
            shapes[shape] = config.path

            transform_handle: Optional[str] = None
            if config.transform is not None:
                transform_handle = _new_handle()
                try:
                    cache.add(transform_handle, config.transform)
                except CompileError as e:
                    raise ConfigurationError(
                        f"failed to add request body transform for route {config.path}: {e}", cause=e
                    ) from e
            else:
                logger.warning("Empty transform. Route %s will be set as pass-through", config.path)

            device_id_query_handle: Optional[str] = None
            if isinstance(config.device_id, BodyQueryDeviceId):
                device_id_query_handle = _new_handle()
                try:
                    cache.add(device_id_query_handle, config.device_id.query)
                except CompileError as e:
                    raise ConfigurationError(
                        f"failed to add device id query transform for route {config.path}: {e}", cause=e
                    ) from e

            routes[config.path] = AugmentedRoute(
                config=config,
                transform_handle=transform_handle,
                device_id_query_handle=device_id_query_handle,
            )

        return cls(routes=routes)

    def get(self, path: str) -> Optional[AugmentedRoute]:
        return self.routes.get(path)

    def __iter__(self) -> Iterator[AugmentedRoute]:
        return iter(self.routes.values())

    def __len__(self) -> int:
        return len(self.routes)
