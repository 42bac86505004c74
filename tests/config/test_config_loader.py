"""Tests for YAML configuration loading (billsplit_config)."""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from textwrap import dedent

import pytest
import yaml

from billsplit_config import (
    DEFAULT_CONFIG_PATH,
    ExactAmountsBasis,
    PaymentSettings,
    SplitSettings,
    get_active_config,
)
from billsplit_config.loader import compute_checksum, load_config, parse_config


def _write(tmp_path, body: str):
    path = tmp_path / "billsplit.yaml"
    path.write_text(dedent(body))
    return path


class TestPackagedDefaults:

    def test_defaults_match_dataclass_defaults(self):
        config = load_config(DEFAULT_CONFIG_PATH)
        assert config.config_version == 1
        assert config.split == SplitSettings()
        assert config.payments == PaymentSettings()

    def test_percentage_tolerance_is_exact_decimal(self):
        config = load_config(DEFAULT_CONFIG_PATH)
        assert config.split.percentage_tolerance == Decimal("0.01")
        assert isinstance(config.split.percentage_tolerance, Decimal)

    def test_get_active_config_emits_trace(self, captured_logs):
        config = get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "BILLSPLIT_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["rounding"] == ROUND_HALF_UP
        assert traces[0]["config_path"] == str(DEFAULT_CONFIG_PATH)


class TestOverrides:

    def test_partial_file_keeps_other_defaults(self, tmp_path):
        path = _write(tmp_path, """
            split:
              rounding: ROUND_HALF_EVEN
              exact_amounts_basis: subtotal
        """)
        config = get_active_config(path)
        assert config.split.rounding == ROUND_HALF_EVEN
        assert config.split.exact_amounts_basis is ExactAmountsBasis.SUBTOTAL
        assert config.split.default_currency == "USD"
        assert config.payments.default_payment_method == "manual"

    def test_float_tolerance_read_through_str(self, tmp_path):
        path = _write(tmp_path, """
            split:
              percentage_tolerance: 0.1
        """)
        assert load_config(path).split.percentage_tolerance == Decimal("0.1")

    def test_payment_methods_become_tuple(self, tmp_path):
        path = _write(tmp_path, """
            payments:
              default_payment_method: venmo
              payment_methods: [venmo, cash]
        """)
        payments = load_config(path).payments
        assert payments.payment_methods == ("venmo", "cash")

    def test_empty_file_is_all_defaults(self, tmp_path):
        path = _write(tmp_path, "")
        config = load_config(path)
        assert config.split == SplitSettings()


class TestValidation:

    @pytest.mark.parametrize("body", [
        "surprise: true\n",
        "split:\n  rounding_mode: ROUND_HALF_UP\n",
        "payments:\n  currency: USD\n",
    ])
    def test_unknown_keys_rejected(self, tmp_path, body):
        with pytest.raises(ValueError, match="Unknown keys"):
            load_config(_write(tmp_path, body))

    def test_unsupported_rounding_rejected(self):
        with pytest.raises(ValueError, match="rounding"):
            parse_config({"split": {"rounding": "ROUND_DOWN"}})

    def test_unknown_currency_rejected(self):
        with pytest.raises(ValueError, match="XYZ"):
            parse_config({"split": {"default_currency": "XYZ"}})

    def test_unknown_basis_rejected(self):
        with pytest.raises(ValueError):
            parse_config({"split": {"exact_amounts_basis": "gross"}})

    def test_negative_tolerance_rejected(self):
        with pytest.raises(ValueError, match="percentage_tolerance"):
            parse_config({"split": {"percentage_tolerance": "-1"}})

    def test_default_method_must_be_listed(self):
        with pytest.raises(ValueError, match="default_payment_method"):
            parse_config({"payments": {"payment_methods": ["venmo"]}})

    def test_template_may_only_reference_merchant(self):
        with pytest.raises(ValueError, match="merchant"):
            PaymentSettings(description_template="Owed to {payee}")

    def test_non_mapping_document_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="mapping"):
            load_config(_write(tmp_path, "- just\n- a list\n"))

    def test_malformed_yaml_propagates(self, tmp_path):
        with pytest.raises(yaml.YAMLError):
            load_config(_write(tmp_path, "split: [unclosed\n"))

    def test_missing_file_propagates(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestPaymentSettings:

    def test_describe_uses_merchant(self):
        assert PaymentSettings().describe("Taco Stand") == "Payment for bill split: Taco Stand"

    def test_describe_without_merchant(self):
        assert PaymentSettings().describe(None) == "Payment for bill split: bill"


class TestChecksum:

    def test_independent_of_key_order(self):
        a = {"split": {"rounding": ROUND_HALF_UP, "default_currency": "USD"}}
        b = {"split": {"default_currency": "USD", "rounding": ROUND_HALF_UP}}
        assert compute_checksum(a) == compute_checksum(b)

    def test_changes_with_content(self):
        assert compute_checksum({"config_version": 1}) != compute_checksum({"config_version": 2})
