from __future__ import annotations

from datetime import date
from decimal import Decimal

from src.edu_billing.edu_billing.billing.calculator import (
    charge_for_mark,
    display_price,
    hourly_charge_for_value,
    price_value,
)
from src.edu_billing.edu_billing.billing.model import Activity, BillingRuleSet, PriceHistoryEntry
from src.edu_billing.edu_billing.common.datetime_utils import days_in_month

OCT_15 = date(2026, 10, 15)

RULES = BillingRuleSet.from_dict(
    {
        "present": {"type": "fixed", "rate": 500},
        "sick": {"type": "fixed", "rate": 0},
        "absent": {"type": "fixed", "rate": -100},
        "vacation": {"type": "weekly", "rate": 300},
        "value": {"type": "hourly", "rate": 150},
        "custom_statuses": [
            {"id": "makeup", "name": "Make-up", "rate": -500, "type": "fixed"},
            {"id": "old", "name": "Old", "rate": 200, "type": "fixed", "is_active": False},
        ],
    }
)

SUBSCRIPTION = BillingRuleSet.from_dict({"present": {"type": "subscription", "rate": 4400}})


def test_fixed_rate_with_discount():
    assert charge_for_mark(OCT_15, "present", None, None, 10, RULES) == Decimal("450.00")


def test_subscription_rate_is_split_over_weekdays():
    # October 2026 has 22 weekdays
    assert charge_for_mark(OCT_15, "present", None, None, 0, SUBSCRIPTION) == Decimal("200.00")


def test_hourly_rate_uses_the_typed_value():
    hourly = BillingRuleSet.from_dict({"present": {"type": "hourly", "rate": 150}})

    assert charge_for_mark(OCT_15, "present", "2.5", None, 0, hourly) == Decimal("375.00")
    assert charge_for_mark(OCT_15, "present", None, None, 0, hourly) is None
    assert charge_for_mark(OCT_15, "present", 0, None, 0, hourly) is None


def test_custom_price_overrides_rules_even_when_zero():
    assert charge_for_mark(OCT_15, "present", None, 0, 0, RULES) == Decimal("0.00")
    assert charge_for_mark(OCT_15, "sick", None, "320", 25, RULES) == Decimal("240.00")
    assert charge_for_mark(OCT_15, "present", None, 300, 0, None) == Decimal("300.00")


def test_cleared_mark_never_charges():
    assert charge_for_mark(OCT_15, None, None, None, 0, RULES) is None
    assert charge_for_mark(OCT_15, "", None, 300, 0, RULES) is None


def test_zero_or_negative_base_rates_do_not_charge():
    assert charge_for_mark(OCT_15, "sick", None, None, 0, RULES) is None
    assert charge_for_mark(OCT_15, "absent", None, None, 0, RULES) is None


def test_custom_status_may_charge_negative():
    assert charge_for_mark(OCT_15, "makeup", None, None, 0, RULES) == Decimal("-500.00")


def test_inactive_or_unknown_status_does_not_charge():
    assert charge_for_mark(OCT_15, "old", None, None, 0, RULES) is None
    assert charge_for_mark(OCT_15, "nope", None, None, 0, RULES) is None
    assert charge_for_mark(OCT_15, "present", None, None, 0, None) is None


def test_unknown_rule_type_does_not_charge():
    assert charge_for_mark(OCT_15, "vacation", None, None, 0, RULES) is None


def test_bare_value_uses_the_value_rule():
    assert charge_for_mark(OCT_15, None, 2, None, 0, RULES) == Decimal("300.00")
    assert hourly_charge_for_value(OCT_15, "1,5", None, 10, RULES) == Decimal("202.50")
    assert hourly_charge_for_value(OCT_15, None, None, 0, RULES) is None


def test_bigger_discount_never_charges_more():
    charges = [charge_for_mark(OCT_15, "present", None, None, d, RULES) for d in range(0, 101, 5)]

    assert charges == sorted(charges, reverse=True)
    assert charges[-1] == Decimal("0.00")


def test_subscription_charges_sum_to_the_monthly_rate():
    weekdays = [d for d in days_in_month(2026, 10) if d.weekday() < 5]
    rules = BillingRuleSet.from_dict({"present": {"type": "subscription", "rate": 1000}})

    total = sum(charge_for_mark(d, "present", None, None, 0, rules) for d in weekdays)

    assert abs(total - Decimal("1000")) <= Decimal("0.005") * len(weekdays)


def test_same_inputs_same_charge():
    first = charge_for_mark(OCT_15, "present", None, None, "7.5", SUBSCRIPTION)
    second = charge_for_mark(OCT_15, "present", None, None, "7.5", SUBSCRIPTION)

    assert first == second


def test_price_value_and_display_follow_price_history():
    activity = Activity(id="math", name="Math", billing_rules=SUBSCRIPTION)
    history = [
        PriceHistoryEntry(
            id="ph1",
            activity_id="math",
            billing_rules=BillingRuleSet.from_dict({"present": {"type": "hourly", "rate": 120}}),
            effective_from=date(2026, 1, 1),
            effective_to=date(2026, 9, 1),
        )
    ]

    assert price_value(activity, history, OCT_15) == Decimal("4400")
    assert display_price(activity, history, OCT_15) == "4 400 ₴"
    assert display_price(activity, history, date(2026, 3, 1)) == "120 ₴/unit"
    assert price_value(activity, history, OCT_15, custom_price="3000") == Decimal("3000")
    assert display_price(activity, history, OCT_15, custom_price=3000, discount_percent=10) == "2 700 ₴"
    assert display_price(None, history, OCT_15) is None


def test_price_value_without_a_positive_present_rate():
    activity = Activity(id="x", name="X", billing_rules=BillingRuleSet.from_dict({"sick": {"type": "fixed", "rate": 5}}))

    assert price_value(activity, [], OCT_15) is None
    assert display_price(activity, [], OCT_15) is None
