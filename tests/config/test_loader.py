"""
Tests for loading, validating and bridging the engine settings file.
"""

import logging
from decimal import Decimal

import pytest
import yaml

from procurement_config import (
    DEFAULT_CONFIG_PATH,
    build_reporting_policy,
    compute_checksum,
    get_active_config,
    get_active_policy,
    load_engine_config,
    log_level_for,
    parse_engine_config,
    validate_engine_config,
)
from procurement_kernel.domain.policy import DEFAULT_POLICY
from procurement_kernel.domain.values import Currency, Quantity
from procurement_kernel.exceptions import ConfigurationError


def _write(tmp_path, data, name="settings.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


class TestShippedDefaults:
    """The packaged defaults.yaml."""

    def test_defaults_load(self):
        config = get_active_config()

        assert config.config_id == "fpo-procurement-defaults"
        assert config.version == 1
        assert config.reporting.currency == "INR"
        assert config.reporting.min_dispatch_lot_quantity == Decimal("20")
        assert config.source == str(DEFAULT_CONFIG_PATH)
        assert len(config.checksum) == 64

    def test_default_policy_matches_kernel_default(self):
        assert get_active_policy() == DEFAULT_POLICY

    def test_policy_values(self):
        policy = get_active_policy()

        assert policy.currency == Currency("INR")
        assert policy.quantity_unit == "ton"
        assert policy.min_dispatch_lot == Quantity.of("20")
        assert policy.unknown_name_placeholder == "Unknown"

    def test_config_trace_logged(self, captured_logs):
        get_active_policy()
        traces = [r for r in captured_logs() if r["message"] == "ENGINE_CONFIG_TRACE"]

        assert len(traces) == 1
        assert traces[0]["config_id"] == "fpo-procurement-defaults"
        assert traces[0]["currency"] == "INR"
        assert traces[0]["checksum"] == get_active_config().checksum

    def test_log_level(self):
        assert log_level_for(get_active_config()) == logging.INFO


class TestValidation:
    """Schema validation collects every problem."""

    def test_minimal_document_valid(self):
        assert validate_engine_config({"config_id": "x"}) == []

    def test_not_a_mapping(self):
        errors = validate_engine_config(["config_id"])
        assert errors == ["settings document must be a mapping, got list"]

    def test_every_error_listed(self):
        errors = validate_engine_config({
            "version": 0,
            "colour": "blue",
            "reporting": {
                "currency": "XYZ",
                "quantity_decimal_places": -1,
                "min_dispatch_lot_quantity": "lots",
            },
            "logging": {"level": "LOUD"},
        })

        assert "config_id is required" in errors
        assert "unknown key: colour" in errors
        assert any(e.startswith("version must be") for e in errors)
        assert any(e.startswith("reporting.currency") for e in errors)
        assert any(e.startswith("reporting.quantity_decimal_places") for e in errors)
        assert any(e.startswith("reporting.min_dispatch_lot_quantity") for e in errors)
        assert any(e.startswith("logging.level") for e in errors)
        assert len(errors) == 7

    def test_unknown_nested_key(self):
        errors = validate_engine_config({"config_id": "x", "reporting": {"curency": "INR"}})
        assert errors == ["unknown key: reporting.curency"]

    def test_negative_lot_rejected(self):
        errors = validate_engine_config({
            "config_id": "x", "reporting": {"min_dispatch_lot_quantity": -5},
        })
        assert len(errors) == 1

    def test_bool_version_rejected(self):
        assert validate_engine_config({"config_id": "x", "version": True})

    def test_parse_raises_with_errors(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_engine_config({"reporting": {"currency": "XYZ"}}, source="inline")

        assert exc_info.value.code == "INVALID_CONFIGURATION"
        assert exc_info.value.source == "inline"
        assert len(exc_info.value.errors) == 2


class TestLoadFromFile:
    """Loading settings files from disk."""

    def test_custom_file(self, tmp_path):
        path = _write(tmp_path, {
            "config_id": "pilot",
            "version": 3,
            "reporting": {
                "currency": "inr",
                "unknown_name_placeholder": "(unnamed)",
                "min_dispatch_lot_quantity": 12.5,
            },
            "logging": {"level": "debug"},
        })
        config = load_engine_config(path)
        policy = build_reporting_policy(config)

        assert config.version == 3
        assert config.reporting.currency == "INR"
        assert config.logging.level == "DEBUG"
        assert policy.unknown_name_placeholder == "(unnamed)"
        assert policy.min_dispatch_lot == Quantity.of("12.5")
        assert log_level_for(config) == logging.DEBUG

    def test_get_active_policy_with_path(self, tmp_path):
        path = _write(tmp_path, {"config_id": "usd-pilot", "reporting": {"currency": "USD"}})
        assert get_active_policy(path).currency == Currency("USD")

    def test_empty_sections_use_defaults(self, tmp_path):
        path = tmp_path / "sparse.yaml"
        path.write_text("config_id: sparse\nreporting:\nlogging:\n")
        config = load_engine_config(path)

        assert config.reporting.currency == "INR"
        assert config.logging.level == "INFO"

    def test_invalid_file_raises(self, tmp_path):
        path = _write(tmp_path, {"config_id": "bad", "logging": {"level": "LOUD"}})
        with pytest.raises(ConfigurationError) as exc_info:
            load_engine_config(path)
        assert exc_info.value.source == str(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("config_id: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_engine_config(path)


class TestChecksum:
    """Checksum identity."""

    def test_key_order_irrelevant(self):
        assert compute_checksum({"a": 1, "b": {"c": 2}}) == compute_checksum({"b": {"c": 2}, "a": 1})

    def test_changes_with_content(self):
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_same_file_same_checksum(self, tmp_path):
        data = {"config_id": "x", "reporting": {"currency": "INR"}}
        first = load_engine_config(_write(tmp_path, data, "one.yaml"))
        second = load_engine_config(_write(tmp_path, data, "two.yaml"))
        assert first.checksum == second.checksum
