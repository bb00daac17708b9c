#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

from pathlib import Path

import pytest

from iotc.transform_adapter.cli.main import ExitCode, build_parser, main, parse_port

CONFIGS_DIR = Path(__file__).parent / "configs"


def test_check_config_ok(capsys):
    code = main(["check-config", "--config", str(CONFIGS_DIR / "config_example.json")])

    assert code == ExitCode.GEN_SUCCESS
    out = capsys.readouterr().out
    assert "Config OK: 3 route(s)" in out
    assert "POST /telemetry/{deviceId}" in out


def test_check_config_malformed(capsys):
    code = main(["check-config", "--config", str(CONFIGS_DIR / "config_malformed.json")])

    assert code == ExitCode.CONFIG_INVALID
    assert "Config check failed" in capsys.readouterr().out


def test_check_config_without_path(monkeypatch):
    monkeypatch.delenv("CONFIG_PATH", raising=False)

    assert main(["check-config"]) == ExitCode.INIT_ERROR


def test_serve_requires_bridge_url(monkeypatch):
    monkeypatch.delenv("BRIDGE_URL", raising=False)

    code = main(["serve", "--port", "3000", "--config", str(CONFIGS_DIR / "config_example.json")])

    assert code == ExitCode.INIT_ERROR


def test_options_before_and_after_command():
    args = build_parser().parse_args(["--config", "a.json", "serve", "--port", "3000"])

    assert args.command == "serve"
    assert args.config == "a.json"
    assert args.port == "3000"


@pytest.mark.parametrize("value", ["abc", "0", "70000", None])
def test_parse_port_invalid(value):
    with pytest.raises(ValueError):
        parse_port(value)


def test_parse_port():
    assert parse_port("3000") == 3000
