from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal

import pytest

from src.edu_billing.edu_billing.attendance.model import AffectedMonth
from src.edu_billing.edu_billing.attendance.service import parse_mark_value
from src.edu_billing.edu_billing.billing.model import BillingRuleSet
from src.edu_billing.edu_billing.core.constants import DEFAULT_INCOME_CATEGORY
from src.edu_billing.edu_billing.core.enums import TransactionType
from src.edu_billing.edu_billing.core.exceptions import ValidationError

DAY = date(2026, 10, 14)


def _income(world, student_id="s1"):
    return [t for t in world.transactions.for_student(student_id) if t.type == TransactionType.INCOME]


def test_present_mark_charges_and_books_income(world):
    result = world.attendance_service().set_mark("e1", DAY, "present")

    assert result.charged_amount == Decimal("450.00")
    assert result.transactions_synced
    assert result.affected == frozenset({AffectedMonth("s1", "dance", "2026-10")})

    mark = world.attendance.get("e1", DAY)
    assert mark.status == "present"
    assert mark.value == Decimal("450.00")
    assert not mark.manual_value_edit

    [income] = _income(world)
    assert income.amount == Decimal("450.00")
    assert income.description == "Dance: П"
    assert income.category == DEFAULT_INCOME_CATEGORY


def test_re_marking_keeps_a_single_income_row(world):
    service = world.attendance_service()

    service.set_mark("e1", DAY, "present")
    service.set_mark("e1", DAY, "present")
    service.set_mark("e1", DAY, "makeup")

    [income] = _income(world)
    assert income.amount == Decimal("-450.00")
    assert income.description == "Dance: MA"


def test_status_without_a_rate_removes_the_income(world):
    service = world.attendance_service()
    service.set_mark("e1", DAY, "present")

    result = service.set_mark("e1", DAY, "sick")

    assert result.charged_amount is None
    assert world.attendance.get("e1", DAY).status == "sick"
    assert _income(world) == []


def test_bare_value_is_billed_per_unit(world):
    result = world.attendance_service().set_mark("e1", DAY, None, "2")

    assert result.charged_amount == Decimal("270.00")
    mark = world.attendance.get("e1", DAY)
    assert mark.status is None
    assert mark.value == Decimal("2")


def test_typed_value_that_differs_from_the_charge_is_a_manual_edit(world):
    service = world.attendance_service()

    service.set_mark("e2", DAY, "present", "400")
    mark = world.attendance.get("e2", DAY)
    assert mark.value == Decimal("400")
    assert mark.charged_amount == Decimal("400.00")
    assert mark.manual_value_edit
    assert _income(world, "s2")[0].amount == Decimal("400.00")

    service.set_mark("e2", DAY, "present")
    assert world.attendance.get("e2", DAY).manual_value_edit


def test_typed_value_on_a_status_is_the_charge(world):
    result = world.attendance_service().set_mark("e1", DAY, "present", "300")

    assert result.charged_amount == Decimal("300.00")
    assert world.attendance.get("e1", DAY).charged_amount == Decimal("300.00")
    [income] = _income(world)
    assert income.amount == Decimal("300.00")


def test_typed_value_on_an_hourly_status_is_a_quantity(world):
    dance = world.activities.get_by_id("dance")
    world.activities.by_id["dance"] = dataclasses.replace(
        dance, billing_rules=BillingRuleSet.from_dict({"present": {"type": "hourly", "rate": 150}})
    )

    result = world.attendance_service().set_mark("e1", DAY, "present", "2")

    # 2 x 150, less the 10% discount
    assert result.charged_amount == Decimal("270.00")
    assert world.attendance.get("e1", DAY).value == Decimal("2")
    assert not world.attendance.get("e1", DAY).manual_value_edit
    assert _income(world)[0].amount == Decimal("270.00")


def test_clear_removes_mark_and_income(world):
    service = world.attendance_service()
    service.set_mark("e3", DAY, "present")
    assert _income(world)[0].amount == Decimal("200.00")

    result = service.clear_mark("e3", DAY)

    assert result.mark is None
    assert world.attendance.get("e3", DAY) is None
    assert _income(world) == []


def test_no_status_and_zero_value_clears(world):
    service = world.attendance_service()
    service.set_mark("e2", DAY, "present")

    assert service.set_mark("e2", DAY, None, "0").mark is None
    assert world.attendance.get("e2", DAY) is None


def test_transaction_failure_is_reported_not_raised(world):
    world.transactions.fail_writes = True

    result = world.attendance_service().set_mark("e2", DAY, "present")

    assert result.transactions_synced is False
    assert world.attendance.get("e2", DAY).charged_amount == Decimal("500.00")


def test_unknown_status_is_rejected(world):
    with pytest.raises(ValidationError):
        world.attendance_service().set_mark("e1", DAY, "late")


def test_unknown_enrollment_is_rejected(world):
    with pytest.raises(ValidationError):
        world.attendance_service().set_mark("missing", DAY, "present")


@pytest.mark.parametrize("raw", ["abc", "-1", -0.5])
def test_bad_values_are_rejected(raw):
    with pytest.raises(ValidationError):
        parse_mark_value(raw)


def test_blank_value_is_no_value():
    assert parse_mark_value("  ") is None
    assert parse_mark_value(None) is None
    assert parse_mark_value("2,5") == Decimal("2.5")
