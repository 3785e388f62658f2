"""timepay: attendance rule evaluation and payroll-run approval.

Organized by feature modules (rules, shifts, attendance, payroll_config,
payroll, ...) with a thin Flask controller layer over service/repository layers.
"""
