#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Generator

import httpx

from .models import BridgeResponse, MessageBody
from ..lib.constants import BRIDGE_API_KEY_HEADER


class ApiKeyAuth(httpx.Auth):
    """
    API key credential for the Device Bridge (sent as "x-api-key" header)

    The key is never part of repr(), so the object is safe to log.
    """

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers[BRIDGE_API_KEY_HEADER] = self.api_key
        yield request

    def __repr__(self) -> str:
        return f"ApiKeyAuth(api_key=<{len(self.api_key)} chars>)"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ApiKeyAuth) and other.api_key == self.api_key

    def __hash__(self) -> int:
        return hash(self.api_key)


class BridgeClient(ABC):
    """
    Narrow interface of the Device Bridge client used by the request pipeline

    Client responsibilities:
      - set_authorization(auth): credential used by the next calls
      - set_retry_attempts(n): total attempts per call (1 = no retries)
      - send_message(device_id, body): forward one D2C message;
        raises BridgeError on failure, with the Bridge status code if any
      - base_url: Bridge address, for diagnostics

    Notes:
      - a client instance carries per-request state (the credential), so the
        pipeline asks the factory for a fresh instance on every request
    """

    @property
    @abstractmethod
    def base_url(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def set_authorization(self, auth: httpx.Auth) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_retry_attempts(self, attempts: int) -> None:
        raise NotImplementedError

    @abstractmethod
    async def send_message(self, device_id: str, body: MessageBody) -> BridgeResponse:
        raise NotImplementedError


BridgeClientFactory = Callable[[], BridgeClient]
