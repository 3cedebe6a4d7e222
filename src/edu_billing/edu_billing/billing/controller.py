from __future__ import annotations

from flask import Flask, request

from ..common.web import api_errors, current_role, date_arg, editor_required, json_body, login_required, ok
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/activities/<activity_id>/prices", methods=["POST"], endpoint="activity_change_prices")
    @editor_required
    @api_errors
    def change_prices(activity_id: str):
        data = json_body()
        entry = container.price_history_service.change_prices(
            current_role=current_role(),
            activity_id=activity_id,
            billing_rules=data.get("billing_rules") or {},
            effective_from=date_arg(data.get("effective_from")),
        )
        return ok(
            {
                "id": entry.id,
                "activity_id": entry.activity_id,
                "billing_rules": entry.billing_rules.to_dict() if entry.billing_rules else None,
                "effective_from": entry.effective_from,
                "effective_to": entry.effective_to,
            },
            201,
        )

    @app.route("/api/activities/<activity_id>/price", methods=["GET"], endpoint="activity_price_on")
    @login_required
    @api_errors
    def price_on(activity_id: str):
        day = date_arg(request.args.get("date"))
        return ok(container.price_history_service.price_on(activity_id, day, request.args.get("custom_price")))

    @app.route("/api/activities/<activity_id>/controller", methods=["PUT"], endpoint="activity_controller_config")
    @editor_required
    @api_errors
    def controller_config(activity_id: str):
        config = container.garden_service.update_config(
            current_role=current_role(),
            controller_id=activity_id,
            config=json_body(),
        )
        return ok(config.to_dict() if config else None)
