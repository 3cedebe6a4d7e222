from __future__ import annotations

from decimal import Decimal

from src.edu_billing.edu_billing.billing.model import ActivityConfig, BillingRuleSet, status_label
from src.edu_billing.edu_billing.common.money import (
    apply_discount,
    format_currency,
    percent_of,
    round2,
    to_decimal,
)


def test_round2_rounds_half_away_from_zero():
    assert round2("2.675") == Decimal("2.68")
    assert round2(2.675) == Decimal("2.68")
    assert round2("-0.005") == Decimal("-0.01")
    assert round2(None) == Decimal("0.00")


def test_to_decimal_rejects_garbage():
    assert to_decimal("12,5") == Decimal("12.5")
    assert to_decimal("  ") is None
    assert to_decimal("abc") is None
    assert to_decimal("NaN") is None
    assert to_decimal(True) is None


def test_discount_and_percent_helpers():
    assert apply_discount(500, 10) == Decimal("450.00")
    assert apply_discount(500, None) == Decimal("500.00")
    assert percent_of(300, 50) == Decimal("150.00")


def test_format_currency_groups_thousands():
    assert format_currency(12500) == "12 500 ₴"
    assert format_currency("99.5", "UAH") == "100 UAH"


def test_rule_set_keeps_two_custom_statuses_at_most():
    rules = BillingRuleSet.from_dict(
        {
            "present": {"type": "fixed", "rate": 100},
            "custom_statuses": [
                {"id": "a", "name": "Trial", "rate": 50, "type": "fixed"},
                {"id": "b", "name": "Bonus", "rate": -20, "type": "fixed"},
                {"id": "c", "name": "Extra", "rate": 10, "type": "fixed"},
            ],
        }
    )

    assert [c.id for c in rules.custom_statuses] == ["a", "b"]
    assert rules.rule_for("c") is None
    assert rules.rule_for("b").is_custom
    assert rules.to_dict()["present"] == {"type": "fixed", "rate": 100.0}


def test_empty_rules_parse_to_none():
    assert BillingRuleSet.from_dict(None) is None
    assert BillingRuleSet.from_dict({}) is None


def test_status_labels():
    rules = BillingRuleSet.from_dict({"custom_statuses": [{"id": "t", "name": "trial", "rate": 1, "type": "fixed"}]})

    assert status_label("present") == "П"
    assert status_label("vacation") == "О"
    assert status_label("t", rules.custom_statuses) == "TR"
    assert status_label(None) == ""


def test_controller_config_needs_a_base_tariff():
    assert ActivityConfig.from_dict({"base_tariff_ids": ["t"], "food_tariff_ids": []}).is_controller
    assert not ActivityConfig.from_dict({"food_tariff_ids": ["f"]}).is_controller
    assert ActivityConfig.from_dict(None) is None
