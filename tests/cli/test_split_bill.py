"""End-to-end tests for scripts/split_bill.py."""

import json
import logging
from decimal import Decimal

import pytest
import yaml

from billsplit_kernel.db.engine import reset_engine
from billsplit_kernel.logging_config import configure_logging, reset_logging
from scripts.split_bill import load_bill_file, main

TACOS = {
    "id": "bill-tacos",
    "creatorId": "alice",
    "merchant": "Taco Stand",
    "currency": "USD",
    "items": [
        {
            "name": "Taco platter",
            "unitPrice": "12.00",
            "quantity": 1,
            "taxPercentage": "10",
            "splitEqually": ["alice", "bob", "carol"],
        },
    ],
}


@pytest.fixture(autouse=True)
def _restore_suite_state():
    yield
    reset_engine()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def bill_yaml(tmp_path):
    path = tmp_path / "tacos.yaml"
    path.write_text(yaml.safe_dump(TACOS))
    return path


def _stderr_lines(capsys) -> tuple[str, list[str]]:
    captured = capsys.readouterr()
    return captured.out, captured.err.splitlines()


class TestLoadBillFile:

    def test_json_numbers_become_decimals(self, tmp_path):
        path = tmp_path / "bill.json"
        path.write_text('{"creatorId": "alice", "items": [{"unitPrice": 4.10}]}')
        record = load_bill_file(path)
        assert record["items"][0]["unitPrice"] == Decimal("4.10")
        assert isinstance(record["items"][0]["unitPrice"], Decimal)

    def test_empty_yaml_is_empty_mapping(self, tmp_path):
        path = tmp_path / "bill.yml"
        path.write_text("")
        assert load_bill_file(path) == {}


class TestAggregateMode:

    def test_prints_allocation(self, bill_yaml, capsys):
        assert main([str(bill_yaml)]) == 0
        out, _ = _stderr_lines(capsys)
        result = json.loads(out)
        assert result["billId"] == "bill-tacos"
        assert result["total"] == "13.20"
        assert {pid: p["total"] for pid, p in result["participants"].items()} == {
            "alice": "4.40",
            "bob": "4.40",
            "carol": "4.40",
        }
        assert "paymentRequests" not in result

    def test_json_bill(self, tmp_path, capsys):
        path = tmp_path / "tacos.json"
        path.write_text(json.dumps(TACOS))
        assert main([str(path), "--rounding", "ROUND_HALF_EVEN"]) == 0
        out, _ = _stderr_lines(capsys)
        assert json.loads(out)["subtotal"] == "12.00"

    def test_rejected_bill_exits_1_with_code(self, tmp_path, capsys):
        record = dict(TACOS, items=[{
            "name": "Wine",
            "unitPrice": "30.00",
            "splitByPercentages": [
                {"participantId": "alice", "percentage": "50"},
                {"participantId": "bob", "percentage": "40"},
            ],
        }])
        path = tmp_path / "wine.yaml"
        path.write_text(yaml.safe_dump(record))

        assert main([str(path)]) == 1
        out, err = _stderr_lines(capsys)
        assert out == ""
        assert "STRATEGY_MISMATCH" in err

    def test_unparseable_bill_exits_1(self, tmp_path, capsys):
        path = tmp_path / "nosplit.yaml"
        path.write_text(yaml.safe_dump(dict(TACOS, items=[{"name": "Soda", "unitPrice": "2"}])))
        assert main([str(path)]) == 1
        _, err = _stderr_lines(capsys)
        assert "INVALID_STRATEGY" in err

    def test_missing_file_exits_2(self, tmp_path, capsys):
        assert main([str(tmp_path / "absent.yaml")]) == 2
        _, err = _stderr_lines(capsys)
        assert any(line.startswith("error:") for line in err)

    def test_malformed_yaml_exits_2(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("items: [unclosed\n")
        assert main([str(path)]) == 2

    def test_bad_config_exits_2(self, bill_yaml, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("split:\n  rounding: ROUND_DOWN\n")
        assert main([str(bill_yaml), "--config", str(config)]) == 2


class TestFinalizeMode:

    def test_opens_requests_for_debtors(self, bill_yaml, capsys):
        assert main([str(bill_yaml), "--finalize"]) == 0
        out, _ = _stderr_lines(capsys)
        requests = json.loads(out)["paymentRequests"]

        assert sorted(r["payerId"] for r in requests) == ["bob", "carol"]
        for r in requests:
            assert r["payeeId"] == "alice"
            assert r["amount"] == "4.40"
            assert r["status"] == "sent"
            assert r["description"] == "Payment for bill split: Taco Stand"
