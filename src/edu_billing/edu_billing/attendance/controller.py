from __future__ import annotations

import logging

from flask import Flask, request

from ..common.web import api_errors, date_arg, editor_required, json_body, login_required, ok
from ..container import Container
from .model import MarkResult

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    def _respond(result: MarkResult):
        payload = {
            "mark": result.mark,
            "charged_amount": result.charged_amount,
            "transactions_synced": result.transactions_synced,
            "affected": sorted(result.affected),
            "payroll": None,
        }
        try:
            payroll = container.payroll_service.recompute_affected(result.affected)
            payload["payroll"] = [
                {"staff_id": p.staff_id, "activity_id": p.activity_id, "month": p.month, "total": p.total}
                for p in payroll
            ]
        except Exception:
            logger.exception("Mark saved but staff payroll was not recomputed")
        return ok(payload)

    @app.route("/api/attendance/<enrollment_id>/<day>", methods=["PUT"], endpoint="attendance_set_mark")
    @editor_required
    @api_errors
    def set_mark(enrollment_id: str, day: str):
        data = json_body()
        result = container.attendance_service.set_mark(
            enrollment_id,
            date_arg(day),
            data.get("status"),
            data.get("value"),
            notes=data.get("notes"),
        )
        return _respond(result)

    @app.route("/api/attendance/<enrollment_id>/<day>", methods=["DELETE"], endpoint="attendance_clear_mark")
    @editor_required
    @api_errors
    def clear_mark(enrollment_id: str, day: str):
        return _respond(container.attendance_service.clear_mark(enrollment_id, date_arg(day)))

    @app.route("/api/garden/<enrollment_id>/<day>", methods=["PUT"], endpoint="garden_set_mark")
    @editor_required
    @api_errors
    def garden_set_mark(enrollment_id: str, day: str):
        data = json_body()
        return _respond(container.garden_service.set_mark(enrollment_id, date_arg(day), data.get("status")))

    @app.route("/api/garden/<enrollment_id>/<day>", methods=["DELETE"], endpoint="garden_clear_mark")
    @editor_required
    @api_errors
    def garden_clear_mark(enrollment_id: str, day: str):
        return _respond(container.garden_service.clear_mark(enrollment_id, date_arg(day)))

    @app.route("/api/garden/<enrollment_id>/<day>/preview", methods=["GET"], endpoint="garden_preview")
    @login_required
    @api_errors
    def garden_preview(enrollment_id: str, day: str):
        accrual = container.garden_service.accrual_for(enrollment_id, date_arg(day), request.args.get("status"))
        return ok(accrual)
