"""Tests for DecoderConfig."""

import json

import pytest

from photontap.config import DEFAULT_PORTS, DecoderConfig


def test_defaults():
    config = DecoderConfig()
    assert config.max_depth == 64
    assert config.max_fragment_slots == 256
    assert config.fragment_max_age == 10.0
    assert config.udp_ports == DEFAULT_PORTS
    assert config.custom_type_codes is None


def test_default_ports_not_shared():
    a, b = DecoderConfig(), DecoderConfig()
    a.udp_ports.append(1)
    assert b.udp_ports == DEFAULT_PORTS


@pytest.mark.parametrize("field,value", [
    ("max_depth", 0),
    ("max_fragment_slots", -1),
    ("max_fragment_bytes", 0),
    ("packet_queue_size", 0),
    ("fragment_max_age", 0.0),
    ("udp_ports", []),
])
def test_invalid_values(field, value):
    with pytest.raises(ValueError):
        DecoderConfig(**{field: value})


def test_load_json(tmp_path):
    path = tmp_path / "photontap.json"
    path.write_text(json.dumps({"max_depth": 16, "udp_ports": [5056]}))
    config = DecoderConfig.load(path)
    assert config.max_depth == 16
    assert config.udp_ports == [5056]
    assert config.max_fragment_slots == 256


def test_unknown_key_rejected():
    with pytest.raises(ValueError, match="max_deep"):
        DecoderConfig.from_dict({"max_deep": 3})


def test_replace_ignores_none():
    config = DecoderConfig(max_depth=10).replace(max_depth=None, fragment_max_age=3.0)
    assert config.max_depth == 10
    assert config.fragment_max_age == 3.0


def test_round_trip_dict():
    config = DecoderConfig(custom_type_codes=[1, 2])
    assert DecoderConfig.from_dict(config.to_dict()) == config
