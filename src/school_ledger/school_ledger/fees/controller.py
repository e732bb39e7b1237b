from __future__ import annotations

from flask import Flask, jsonify

from ..common.datetime_utils import parse_iso_date
from ..common.http import json_body, require_field
from ..container import Container
from ..core.enums import PaymentType
from ..core.exceptions import RecordNotFound


def register(app: Flask, container: Container) -> None:
    ledger = container.fee_ledger

    @app.route("/api/fees", methods=["POST"], endpoint="fees_create")
    def fees_create():
        data = json_body()
        record = ledger.create_record(
            str(require_field(data, "student_id")),
            require_field(data, "total_amount"),
            parse_iso_date(require_field(data, "due_date")),
            grace_month=data.get("grace_month"),
            grace_fee_amount=data.get("grace_fee_amount"),
            initial_payment=data.get("initial_payment"),
        )
        return jsonify({"fee": record.to_dict()}), 201

    @app.route("/api/fees", methods=["GET"], endpoint="fees_list")
    def fees_list():
        return jsonify({"fees": [r.to_dict() for r in ledger.list_records()]})

    @app.route("/api/fees/<fee_id>", methods=["GET"], endpoint="fees_get")
    def fees_get(fee_id: str):
        return jsonify({"fee": ledger.get_record(fee_id).to_dict()})

    @app.route("/api/fees/<fee_id>/status", methods=["GET"], endpoint="fees_status")
    def fees_status(fee_id: str):
        return jsonify({"fee_id": fee_id, "status": ledger.get_status(fee_id).value})

    @app.route("/api/students/<student_id>/fee", methods=["GET"], endpoint="fees_for_student")
    def fees_for_student(student_id: str):
        record = ledger.get_for_student(student_id)
        if record is None:
            raise RecordNotFound("Fee record not found", entity="fee", entity_id=student_id)
        return jsonify({"fee": record.to_dict()})

    @app.route("/api/fees/<fee_id>/payments", methods=["POST"], endpoint="fees_record_payment")
    def fees_record_payment(fee_id: str):
        data = json_body()
        paid_on = data.get("date")
        record = ledger.record_payment(
            fee_id,
            require_field(data, "amount"),
            require_field(data, "method"),
            data.get("reference"),
            data.get("slip_url"),
            data.get("type") or PaymentType.REGULAR,
            paid_on=parse_iso_date(paid_on) if paid_on else None,
        )
        return jsonify({"fee": record.to_dict()}), 201

    @app.route("/api/fees/<fee_id>/grace-fee", methods=["POST"], endpoint="fees_apply_grace_fee")
    def fees_apply_grace_fee(fee_id: str):
        as_of = json_body().get("as_of")
        record = ledger.apply_grace_fee(fee_id, parse_iso_date(as_of) if as_of else None)
        return jsonify({"fee": record.to_dict()})

    @app.route("/api/fees/grace-fees/apply", methods=["POST"], endpoint="fees_apply_grace_fees")
    def fees_apply_grace_fees():
        as_of = json_body().get("as_of")
        changed = ledger.apply_grace_fees(parse_iso_date(as_of) if as_of else None)
        return jsonify({"applied": [r.to_dict() for r in changed]})
