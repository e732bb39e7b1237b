from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import int_arg, int_field, json_body, require_field
from ..container import Container
from .model import HourlyAttendanceEntry


def register(app: Flask, container: Container) -> None:
    ledger = container.attendance_ledger

    @app.route("/api/attendance/<student_id>/<work_date>", methods=["GET"], endpoint="attendance_get")
    def attendance_get(student_id: str, work_date: str):
        record = ledger.get_record(student_id, parse_iso_date(work_date))
        return jsonify({"record": record.to_dict() if record else None})

    @app.route("/api/attendance/<student_id>/<work_date>/hours/<int:hour>", methods=["PUT"], endpoint="attendance_upsert_hour")
    def attendance_upsert_hour(student_id: str, work_date: str, hour: int):
        data = json_body()
        entry = HourlyAttendanceEntry.from_dict({**data, "hour": hour})
        record = ledger.upsert_hour(
            student_id,
            parse_iso_date(work_date),
            entry,
            int_field(data, "expected_version"),
        )
        return jsonify({"record": record.to_dict()})

    @app.route("/api/attendance/<student_id>/<work_date>/hours/<int:hour>", methods=["DELETE"], endpoint="attendance_clear_hour")
    def attendance_clear_hour(student_id: str, work_date: str, hour: int):
        record = ledger.clear_hour(student_id, parse_iso_date(work_date), hour, int_arg("expected_version"))
        return jsonify({"record": record.to_dict()})

    @app.route("/api/attendance/<student_id>/<work_date>", methods=["DELETE"], endpoint="attendance_clear_day")
    def attendance_clear_day(student_id: str, work_date: str):
        record = ledger.clear_day(student_id, parse_iso_date(work_date), int_arg("expected_version"))
        return jsonify({"record": record.to_dict()})

    @app.route("/api/attendance/by-date/<work_date>/hours/<int:hour>/reset", methods=["POST"], endpoint="attendance_reset_hour")
    def attendance_reset_hour(work_date: str, hour: int):
        touched = ledger.reset_hour_for_date(parse_iso_date(work_date), hour)
        return jsonify({"records_updated": touched})

    @app.route("/api/attendance/<student_id>/<work_date>/slots", methods=["GET", "PUT"], endpoint="attendance_slots")
    def attendance_slots(student_id: str, work_date: str):
        day = parse_iso_date(work_date)
        if request.method == "PUT":
            hours = require_field(json_body(), "hours")
            selected = ledger.set_selected_hours(student_id, day, hours)
        else:
            selected = ledger.get_selected_hours(student_id, day)
        return jsonify({"student_id": student_id, "date": day.isoformat(), "selected_hours": list(selected)})

    @app.route("/api/attendance/<student_id>/summary", methods=["GET"], endpoint="attendance_summary")
    def attendance_summary(student_id: str):
        summary = ledger.get_monthly_summary(student_id, int_arg("year"), int_arg("month"))
        return jsonify(summary.to_dict())

    @app.route("/api/attendance/summaries", methods=["GET"], endpoint="attendance_summaries")
    def attendance_summaries():
        summaries = ledger.get_monthly_summaries(int_arg("year"), int_arg("month"))
        return jsonify({"summaries": [s.to_dict() for s in summaries]})

    @app.route("/api/attendance/<student_id>/leave-reasons", methods=["GET"], endpoint="attendance_leave_reasons")
    def attendance_leave_reasons(student_id: str):
        reasons = ledger.list_leave_reasons(student_id, int_arg("year"), int_arg("month"))
        return jsonify({"leave_reasons": [r.to_dict() for r in reasons]})
