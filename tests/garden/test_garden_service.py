from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal

import pytest

from src.edu_billing.edu_billing.attendance.model import AffectedMonth
from src.edu_billing.edu_billing.core.enums import Role, TransactionType
from src.edu_billing.edu_billing.core.exceptions import AuthorizationError, ControllerConfigError, ValidationError

DAY = date(2027, 2, 10)


def _summary(world):
    return [(t.type, t.activity_id, t.amount) for t in world.transactions.for_student("s1")]


def test_present_then_absent_then_present(world):
    service = world.garden_service()

    result = service.set_mark("e6", DAY, "present")
    assert result.charged_amount == Decimal("200.00")
    assert world.attendance.get("e6", DAY).value == Decimal("200.00")
    assert _summary(world) == [(TransactionType.INCOME, "tuition", Decimal("200.00"))]

    result = service.set_mark("e6", DAY, "absent")
    assert result.charged_amount == Decimal("150.00")
    assert _summary(world) == [
        (TransactionType.EXPENSE, "food", Decimal("50.00")),
        (TransactionType.INCOME, "tuition", Decimal("200.00")),
    ]

    service.set_mark("e6", DAY, "present")
    assert _summary(world) == [(TransactionType.INCOME, "tuition", Decimal("200.00"))]


def test_mark_reports_every_touched_activity(world):
    result = world.garden_service().set_mark("e6", DAY, "sick")

    assert {a.activity_id for a in result.affected} == {"garden", "tuition", "food"}
    assert AffectedMonth("s1", "garden", "2027-02") in result.affected


def test_clear_removes_the_mark_and_the_day_transactions(world):
    service = world.garden_service()
    service.set_mark("e6", DAY, "absent")

    result = service.clear_mark("e6", DAY)

    assert result.mark is None
    assert world.attendance.get("e6", DAY) is None
    assert world.transactions.for_student("s1") == []


def test_clear_keeps_other_activities_income(world):
    world.attendance_service().set_mark("e1", DAY, "present")
    service = world.garden_service()
    service.set_mark("e6", DAY, "present")

    service.clear_mark("e6", DAY)

    assert _summary(world) == [(TransactionType.INCOME, "dance", Decimal("450.00"))]


def test_mark_without_an_accrual_drops_the_day_transactions(world):
    service = world.garden_service()
    service.set_mark("e6", DAY, "absent")
    world.enrollments.by_id["e4"] = dataclasses.replace(world.enrollments.by_id["e4"], is_active=False)

    result = service.set_mark("e6", DAY, "present")

    assert result.charged_amount is None
    assert result.transactions_synced
    assert world.attendance.get("e6", DAY).status == "present"
    assert _summary(world) == []


def test_empty_status_clears(world):
    service = world.garden_service()
    service.set_mark("e6", DAY, "present")

    assert service.set_mark("e6", DAY, "").mark is None
    assert world.transactions.for_student("s1") == []


def test_only_base_statuses_are_allowed(world):
    with pytest.raises(ValidationError):
        world.garden_service().set_mark("e6", DAY, "makeup")


def test_regular_enrollment_is_not_a_garden_journal(world):
    with pytest.raises(ValidationError):
        world.garden_service().set_mark("e1", DAY, "present")


def test_transaction_failure_keeps_the_mark(world):
    world.transactions.fail_writes = True

    result = world.garden_service().set_mark("e6", DAY, "present")

    assert result.transactions_synced is False
    assert world.attendance.get("e6", DAY).charged_amount == Decimal("200.00")


def test_preview_does_not_write(world):
    accrual = world.garden_service().accrual_for("e6", DAY, "vacation")

    assert accrual.amount == Decimal("150.00")
    assert world.attendance.get("e6", DAY) is None


def test_update_config_checks_role_and_references(world):
    service = world.garden_service()

    with pytest.raises(AuthorizationError):
        service.update_config(current_role=Role.TEACHER, controller_id="garden", config={"base_tariff_ids": ["math"]})
    with pytest.raises(ControllerConfigError):
        service.update_config(current_role=Role.ADMIN, controller_id="garden", config={"base_tariff_ids": ["garden"]})
    with pytest.raises(ValidationError):
        service.update_config(current_role=Role.ADMIN, controller_id="garden", config={"base_tariff_ids": ["nope"]})
    with pytest.raises(ValidationError):
        service.update_config(current_role=Role.ADMIN, controller_id="nope", config={})


def test_update_config_saves_and_detaches(world):
    service = world.garden_service()

    saved = service.update_config(
        current_role=Role.MANAGER,
        controller_id="garden",
        config={"base_tariff_ids": ["tuition", "math"], "food_tariff_ids": ["food"]},
    )
    assert saved.base_tariff_ids == ("tuition", "math")
    assert world.activities.get_by_id("garden").is_controller

    assert service.update_config(current_role=Role.ADMIN, controller_id="garden", config={"food_tariff_ids": ["food"]}) is None
    assert world.activities.get_by_id("garden").config is None
