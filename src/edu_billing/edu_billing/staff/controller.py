from __future__ import annotations

from flask import Flask

from ..common.web import api_errors, current_role, date_arg, editor_required, json_body, login_required, ok
from ..container import Container
from ..core.exceptions import ValidationError


def _year_month(value: str) -> tuple[int, int]:
    try:
        year, month = (int(part) for part in value.split("-"))
    except ValueError:
        raise ValidationError("Month must be YYYY-MM")
    if not 1 <= month <= 12:
        raise ValidationError("Month must be YYYY-MM")
    return year, month


def register(app: Flask, container: Container) -> None:
    @app.route("/api/staff/<staff_id>/rules", methods=["POST"], endpoint="staff_add_rule")
    @editor_required
    @api_errors
    def add_rule(staff_id: str):
        data = json_body()
        rule = container.staff_rule_service.add_billing_rule(
            current_role=current_role(),
            staff_id=staff_id,
            activity_id=data.get("activity_id") or None,
            rate_type=data.get("rate_type"),
            rate=data.get("rate"),
            effective_from=date_arg(data.get("effective_from")),
            lesson_limit=data.get("lesson_limit"),
            penalty_trigger_percent=data.get("penalty_trigger_percent"),
            penalty_percent=data.get("penalty_percent"),
            extra_lesson_rate=data.get("extra_lesson_rate"),
        )
        return ok(rule, 201)

    @app.route("/api/staff/<staff_id>/manual-rates", methods=["POST"], endpoint="staff_add_manual_rate")
    @editor_required
    @api_errors
    def add_manual_rate(staff_id: str):
        data = json_body()
        rate = container.staff_rule_service.add_manual_rate(
            current_role=current_role(),
            staff_id=staff_id,
            activity_id=data.get("activity_id") or None,
            manual_rate_type=data.get("manual_rate_type"),
            manual_rate_value=data.get("manual_rate_value"),
            effective_from=date_arg(data.get("effective_from")),
        )
        return ok(rate, 201)

    @app.route("/api/staff/<staff_id>/journal/<day>", methods=["PUT"], endpoint="staff_manual_entry")
    @editor_required
    @api_errors
    def manual_entry(staff_id: str, day: str):
        data = json_body()
        entry = container.payroll_service.record_manual_entry(
            current_role=current_role(),
            staff_id=staff_id,
            activity_id=data.get("activity_id") or None,
            on_date=date_arg(day),
            quantity=data.get("quantity"),
        )
        return ok(entry)

    @app.route(
        "/api/staff/<staff_id>/payroll/<activity_id>/<month>",
        methods=["POST"],
        endpoint="staff_recompute_payroll",
    )
    @editor_required
    @api_errors
    def recompute(staff_id: str, activity_id: str, month: str):
        year, month_no = _year_month(month)
        result = container.payroll_service.recompute_month(staff_id, activity_id, year, month_no)
        return ok({"month": result.month, "total": result.total, "entries": result.entries, "removed": result.removed})

    @app.route("/api/staff/<staff_id>/journal/<activity_id>/<month>", methods=["GET"], endpoint="staff_journal_month")
    @login_required
    @api_errors
    def journal_month(staff_id: str, activity_id: str, month: str):
        year, month_no = _year_month(month)
        entries = container.staff_journal_repo.list_for_month(staff_id, activity_id, year, month_no)
        return ok(list(entries))
