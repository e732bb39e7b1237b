"""School Ledger package.

Attendance and fee ledger core for a school administration tool, organized by
feature modules (attendance, fees, settings, reports) with a thin Flask
controller layer over service/repository layers.
"""
