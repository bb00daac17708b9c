#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import json
from pathlib import Path

import pytest

from iotc.transform_adapter.lib.load_config import ConfigRaw, D2CMessageRaw, load_config, validate
from iotc.transform_adapter.server.errors import ConfigurationError

CONFIGS_DIR = Path(__file__).parent / "configs"


def test_load_config_from_file():
    """
    Integration-style test:
      - load JSON from tests/configs/config_example.json
      - verify camelCase keys are mapped onto D2CMessage fields
      - verify transformFile is read relative to the config directory
    """
    messages = load_config(CONFIGS_DIR / "config_example.json")

    assert [m.path for m in messages] == ["/{id}/cde", "/message", "/telemetry/{deviceId}"]

    path_param = messages[0]
    assert path_param.device_id_path_param == "id"
    assert path_param.auth_header == "key"
    assert path_param.transform == ""

    body_query = messages[1]
    assert body_query.transform == "{ data: .dd, properties, componentName, creationTimeUtc }"
    assert body_query.device_id_body_query == ".Device.Id"
    assert body_query.auth_query_param == "apk"

    from_file = messages[2]
    assert from_file.transform == (CONFIGS_DIR / "transform.jq").read_text(encoding="utf-8")
    assert from_file.device_id_path_param == "deviceId"
    assert from_file.auth_header == "api-key"


def test_missing_file_raises():
    with pytest.raises(ConfigurationError, match="unable to load config"):
        load_config(CONFIGS_DIR / "does_not_exist.json")


def test_malformed_json_raises():
    with pytest.raises(ConfigurationError, match="unable to load config"):
        load_config(CONFIGS_DIR / "config_malformed.json")


def test_wrong_field_type_raises(tmp_path: Path):
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text(json.dumps({"d2cMessages": {"path": "/a"}}), encoding="utf-8")

    with pytest.raises(ConfigurationError, match="unable to load config"):
        load_config(cfg_path)


def test_missing_transform_file_raises(tmp_path: Path):
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text(
        json.dumps(
            {
                "d2cMessages": [
                    {"path": "/a", "transformFile": "missing.jq", "deviceIdPathParam": "id", "authHeader": "key"}
                ]
            }
        ),
        encoding="utf-8",
    )

    with pytest.raises(ConfigurationError, match="unable to read transform file"):
        load_config(cfg_path)


def test_empty_config_has_no_routes(tmp_path: Path):
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text("{}", encoding="utf-8")

    assert load_config(cfg_path) == []


@pytest.mark.parametrize(
    "raw, message",
    [
        (
            {"deviceIdPathParam": "id", "authHeader": "key"},
            "path missing in D2C message definition",
        ),
        (
            {"path": "/a", "transform": ".", "transformFile": "t.jq", "deviceIdPathParam": "id", "authHeader": "key"},
            "either transform or transformFile may be defined, not both",
        ),
        (
            {"path": "/a", "deviceIdPathParam": "id"},
            "either authHeader or authQueryParam must be defined",
        ),
        (
            {"path": "/a", "deviceIdPathParam": "id", "authHeader": "key", "authQueryParam": "key"},
            "either authHeader or authQueryParam must be defined",
        ),
        (
            {"path": "/a", "authHeader": "key"},
            "exactly one of deviceIdPathParam, deviceIdBodyField or deviceIdBodyQuery",
        ),
        (
            {"path": "/a", "deviceIdPathParam": "id", "deviceIdBodyField": "id", "authHeader": "key"},
            "exactly one of deviceIdPathParam, deviceIdBodyField or deviceIdBodyQuery",
        ),
    ],
)
def test_validate_rejects_invalid_definitions(raw, message):
    config = ConfigRaw(d2c_messages=[D2CMessageRaw.model_validate(raw)])

    with pytest.raises(ConfigurationError, match=message):
        validate(config)
