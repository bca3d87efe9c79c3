# app/core/exceptions.py
"""
Domain errors raised by the service layer.

Routes translate these into HTTP responses; storage failures are left as
SQLAlchemy errors so they stay distinguishable from bad input and missing rows.
"""


class CashControlError(Exception):
    """Base class for domain errors"""


class RecurringExpenseValidationError(CashControlError):
    pass


class RecurringExpenseNotFound(CashControlError):
    def __init__(self, recurring_expense_id):
        self.recurring_expense_id = recurring_expense_id
        super().__init__(f"Recurring expense {recurring_expense_id} not found")

