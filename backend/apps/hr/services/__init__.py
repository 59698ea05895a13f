from .payroll import CompensationService, PayrollService, annual_salary, period_pay

__all__ = ["CompensationService", "PayrollService", "annual_salary", "period_pay"]
