#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

from typing import List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from iotc.transform_adapter.bridge.base import BridgeClient
from iotc.transform_adapter.bridge.models import BridgeResponse, MessageBody
from iotc.transform_adapter.server.app import create_adapter
from iotc.transform_adapter.server.errors import BridgeError
from iotc.transform_adapter.server.models import D2CMessage


class FakeBridgeClient(BridgeClient):
    """
    Minimal Bridge client stub:
    - remembers the last credential, retry attempts and sent message
    - send_message() fails with `error` if one is set
    """

    def __init__(self, error: Optional[BridgeError] = None) -> None:
        self.error = error
        self.auth: Optional[httpx.Auth] = None
        self.retry_attempts: Optional[int] = None
        self.sent: List[tuple] = []

    @property
    def base_url(self) -> str:
        return "test"

    def set_authorization(self, auth: httpx.Auth) -> None:
        self.auth = auth

    def set_retry_attempts(self, attempts: int) -> None:
        self.retry_attempts = attempts

    async def send_message(self, device_id: str, body: MessageBody) -> BridgeResponse:
        self.sent.append((device_id, body))
        if self.error is not None:
            raise self.error
        return BridgeResponse(status_code=200)

    @property
    def last_device_id(self) -> Optional[str]:
        return self.sent[-1][0] if self.sent else None

    @property
    def last_body(self) -> Optional[MessageBody]:
        return self.sent[-1][1] if self.sent else None


@pytest.fixture
def bridge() -> FakeBridgeClient:
    return FakeBridgeClient()


@pytest.fixture
def make_bridge():
    """Factory for extra fake clients, e.g. one that fails every call."""
    return FakeBridgeClient


@pytest.fixture
def make_client(bridge: FakeBridgeClient):
    """
    Build a TestClient for the given route definitions.

    The same FakeBridgeClient is handed out for every request, so tests can
    inspect what the adapter forwarded.
    """

    def _make(*messages: D2CMessage, bridge_client: Optional[BridgeClient] = None) -> TestClient:
        client = bridge_client or bridge
        adapter = create_adapter(list(messages), "localhost:1000", new_bridge_client=lambda: client)
        return TestClient(adapter.app)

    return _make


@pytest.fixture
def path_param_route() -> D2CMessage:
    return D2CMessage(path="/{id}/message", device_id_path_param="id", auth_header="key")
