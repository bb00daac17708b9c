#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .base import BridgeClient, BridgeClientFactory
from .models import BridgeResponse, MessageBody
from ..lib.constants import (
    BRIDGE_RETRY_DELAY,
    BRIDGE_RETRY_MAX_DELAY,
    BRIDGE_RETRY_STATUSES,
    BRIDGE_SEND_MESSAGE_PATH,
    BRIDGE_TIMEOUT,
)
from ..server.errors import BridgeError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BridgeClientConfig:
    base_url: str
    timeout: float = BRIDGE_TIMEOUT
    retry_attempts: int = 3
    retry_delay: float = BRIDGE_RETRY_DELAY


class _RetryableStatus(Exception):
    """Bridge answered with a status worth another attempt."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__("status %d" % response.status_code)
        self.response = response


class HttpBridgeClient(BridgeClient):
    """
    Device Bridge client over httpx

    Notes:
      - the underlying httpx.AsyncClient (connection pool) is shared and owned
        by whoever created it; this object only holds per-request state
      - transport errors and BRIDGE_RETRY_STATUSES are retried with
        exponential backoff until retry_attempts is exhausted
      - in tests we inject an httpx.AsyncClient with a MockTransport
    """

    def __init__(self, *, cfg: BridgeClientConfig, client: httpx.AsyncClient) -> None:
        self._cfg = cfg
        self._client = client
        self._auth: Optional[httpx.Auth] = None
        self._retry_attempts = max(1, cfg.retry_attempts)

    @property
    def base_url(self) -> str:
        return self._cfg.base_url

    def set_authorization(self, auth: httpx.Auth) -> None:
        self._auth = auth

    def set_retry_attempts(self, attempts: int) -> None:
        self._retry_attempts = max(1, attempts)

    async def send_message(self, device_id: str, body: MessageBody) -> BridgeResponse:
        url = self._cfg.base_url.rstrip("/") + BRIDGE_SEND_MESSAGE_PATH.format(device_id=quote(device_id, safe=""))
        payload = body.to_json()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._retry_attempts),
                wait=wait_exponential(multiplier=self._cfg.retry_delay, max=BRIDGE_RETRY_MAX_DELAY),
                retry=retry_if_exception_type((httpx.TransportError, _RetryableStatus)),
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt:
                    r = await self._post(url, payload)
                    if r.status_code in BRIDGE_RETRY_STATUSES:
                        raise _RetryableStatus(r)
        except _RetryableStatus as e:
            r = e.response
        except httpx.HTTPError as e:
            raise BridgeError(str(e) or type(e).__name__, cause=e) from e

        if not r.is_success:
            raise BridgeError(
                "Bridge responded with status %d: %s" % (r.status_code, r.text.strip()),
                status_code=r.status_code,
            )
        return BridgeResponse(status_code=r.status_code)

    async def _post(self, url: str, payload) -> httpx.Response:
        if self._auth is not None:
            return await self._client.post(url, json=payload, auth=self._auth)
        return await self._client.post(url, json=payload)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Bridge call failed (%s), attempt %d/%d, retrying in %.2fs",
            retry_state.outcome.exception(),
            retry_state.attempt_number,
            self._retry_attempts,
            delay,
        )


def make_bridge_client_factory(
    cfg: BridgeClientConfig,
    client: Optional[httpx.AsyncClient] = None,
) -> Tuple[BridgeClientFactory, httpx.AsyncClient]:
    """
    Build a factory of per-request Bridge clients over one shared connection pool.

    Output:
      (factory, shared httpx.AsyncClient); the caller closes the client on shutdown.
    """
    shared = client or httpx.AsyncClient(timeout=cfg.timeout)

    def new_bridge_client() -> BridgeClient:
        return HttpBridgeClient(cfg=cfg, client=shared)

    return new_bridge_client, shared
