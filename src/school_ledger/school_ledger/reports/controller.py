from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import int_arg
from ..container import Container
from .model import MonthlyReportRequest


def register(app: Flask, container: Container) -> None:
    assembler = container.report_assembler

    @app.route("/api/reports/monthly/<student_id>", methods=["GET"], endpoint="reports_monthly")
    def reports_monthly(student_id: str):
        report = assembler.build_monthly_report(
            MonthlyReportRequest(student_id=student_id, year=int_arg("year"), month=int_arg("month"))
        )
        return jsonify(report.to_dict())

    @app.route("/api/reports/fee-overview", methods=["GET"], endpoint="reports_fee_overview")
    def reports_fee_overview():
        as_of = request.args.get("as_of")
        overview = assembler.build_fee_overview(parse_iso_date(as_of) if as_of else None)
        return jsonify(overview.to_dict())
