#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import re

import pytest

from iotc.transform_adapter.server.errors import ConfigurationError
from iotc.transform_adapter.server.models import (
    BodyFieldDeviceId,
    BodyQueryDeviceId,
    D2CMessage,
    HeaderAuth,
    PathParamDeviceId,
    QueryParamAuth,
    RouteConfig,
)
from iotc.transform_adapter.server.route_table import RouteTable, route_shape
from iotc.transform_adapter.server.transform_cache import TransformCache


def test_route_config_from_message():
    config = RouteConfig.from_message(
        D2CMessage(path="/message", transform="{ data: . }", device_id_body_field="deviceId", auth_query_param="apk")
    )

    assert config.path == "/message"
    assert config.transform == "{ data: . }"
    assert config.device_id == BodyFieldDeviceId("deviceId")
    assert config.auth == QueryParamAuth("apk")


def test_blank_transform_means_pass_through():
    config = RouteConfig.from_message(
        D2CMessage(path="/{id}/message", transform="  \n", device_id_path_param="id", auth_header="key")
    )

    assert config.transform is None
    assert config.device_id == PathParamDeviceId("id")
    assert config.auth == HeaderAuth("key")


@pytest.mark.parametrize(
    "message, error",
    [
        (
            D2CMessage(path="", device_id_path_param="id", auth_header="key"),
            "path missing",
        ),
        (
            D2CMessage(path="/a", device_id_path_param="id", auth_header="key", auth_query_param="key"),
            "either authHeader or authQueryParam must be defined in D2C message definition /a",
        ),
        (
            D2CMessage(path="/a", device_id_path_param="id"),
            "either authHeader or authQueryParam must be defined in D2C message definition /a",
        ),
        (
            D2CMessage(path="/a", device_id_path_param="id", device_id_body_query=".id", auth_header="key"),
            "exactly one of deviceIdPathParam, deviceIdBodyField or deviceIdBodyQuery",
        ),
        (
            D2CMessage(path="/a", auth_header="key"),
            "exactly one of deviceIdPathParam, deviceIdBodyField or deviceIdBodyQuery",
        ),
    ],
)
def test_invalid_definitions(message, error):
    with pytest.raises(ConfigurationError, match=error):
        RouteTable.build([message], TransformCache())


def test_build_registers_queries_in_cache():
    """
    - a route with a transform and a device id body query owns 2 handles
    - a pass-through route with a path param device id owns none
    """
    cache = TransformCache()
    table = RouteTable.build(
        [
            D2CMessage(
                path="/message",
                transform="{ data: .dd }",
                device_id_body_query=".Device.Id",
                auth_query_param="apk",
            ),
            D2CMessage(path="/{id}/cde", device_id_path_param="id", auth_header="key"),
        ],
        cache,
    )

    assert len(table) == 2
    assert len(cache) == 2

    with_queries = table.get("/message")
    assert with_queries is not None
    assert isinstance(with_queries.config.device_id, BodyQueryDeviceId)
    assert with_queries.transform_handle in cache
    assert with_queries.device_id_query_handle in cache
    assert with_queries.transform_handle != with_queries.device_id_query_handle
    assert cache.execute(with_queries.device_id_query_handle, {"Device": {"Id": "dev1"}}) == "dev1"

    pass_through = table.get("/{id}/cde")
    assert pass_through is not None
    assert pass_through.transform_handle is None
    assert pass_through.device_id_query_handle is None

    assert table.get("/unknown") is None
    assert [r.path for r in table] == ["/message", "/{id}/cde"]


def test_duplicate_path_raises():
    message = D2CMessage(path="/{id}/cde", device_id_path_param="id", auth_header="key")

    with pytest.raises(ConfigurationError, match=re.escape("duplicate D2C message definition for POST /{id}/cde")):
        RouteTable.build([message, message], TransformCache())


def test_bad_transform_raises():
    with pytest.raises(ConfigurationError, match="failed to add request body transform for route /a"):
        RouteTable.build(
            [D2CMessage(path="/a", transform=".{a, b}", device_id_path_param="id", auth_header="key")],
            TransformCache(),
        )


def test_bad_device_id_query_raises():
    with pytest.raises(ConfigurationError, match="failed to add device id query transform for route /a"):
        RouteTable.build(
            [D2CMessage(path="/a", device_id_body_query=".{a", auth_header="key")],
            TransformCache(),
        )


def test_paths_differing_only_in_param_names_are_duplicates():
    messages = [
        D2CMessage(path="/{id}/message", device_id_path_param="id", auth_header="key"),
        D2CMessage(path="/{dev}/message", device_id_path_param="dev", auth_header="key"),
    ]

    with pytest.raises(ConfigurationError, match=re.escape("POST /{dev}/message (same as /{id}/message)")):
        RouteTable.build(messages, TransformCache())


def test_paths_with_different_convertors_are_distinct():
    table = RouteTable.build(
        [
            D2CMessage(path="/{id:int}/message", device_id_path_param="id", auth_header="key"),
            D2CMessage(path="/{id}/message", device_id_path_param="id", auth_header="key"),
        ],
        TransformCache(),
    )

    assert len(table) == 2


@pytest.mark.parametrize(
    "path, shape",
    [
        ("/message", "/message"),
        ("/{id}/message", "/{}/message"),
        ("/{dev:str}/message", "/{}/message"),
        ("/{id:int}/{rest:path}", "/{int}/{path}"),
    ],
)
def test_route_shape(path, shape):
    assert route_shape(path) == shape
