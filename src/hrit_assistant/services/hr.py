"""Human-resources domain service: leave balances and employee lookup."""

from __future__ import annotations

from typing import Any

from hrit_assistant.services.records import Employee, EmployeeDirectory


def employee_email(context: dict[str, Any]) -> str:
    """Best-effort caller email from the handler context."""
    email = context.get("email") or context.get("user_email") or ""
    if not email and "@" in str(context.get("user_id", "")):
        email = context["user_id"]
    return str(email)


class HRService:
    name = "hr"

    def __init__(self, directory: EmployeeDirectory | None = None) -> None:
        self.directory = directory or EmployeeDirectory()

    def describe_service(self) -> dict[str, Any]:
        return {
            "name": "HR Service",
            "description": "Leave balances, employee directory and HR procedures",
            "capabilities": ["vacation_balance", "sick_leave_balance", "employee_lookup"],
        }

    def list_intent_patterns(self) -> list[dict[str, Any]]:
        return [
            {
                "intent": "vacation_balance",
                "examples": [
                    "how many vacation days do I have",
                    "what is my vacation balance",
                    "how many days off do I have left",
                    "combien de jours de congés me reste-t-il",
                ],
                "confidence": 0.9,
                "handler_name": "handle_vacation_balance",
            },
            {
                "intent": "sick_leave_balance",
                "examples": [
                    "how many sick days do I have",
                    "what is my sick leave balance",
                    "combien de jours de maladie me reste-t-il",
                ],
                "confidence": 0.9,
                "handler_name": "handle_sick_leave_balance",
            },
            {
                "intent": "employee_lookup",
                "examples": [
                    "who is the manager of",
                    "find employee contact details",
                    "which department does this employee work in",
                ],
                "confidence": 0.8,
                "handler_name": "handle_employee_lookup",
            },
        ]

    def list_documents(self) -> list[dict[str, Any]]:
        return [
            {
                "content": (
                    "Vacation policy: full-time employees accrue 25 vacation days per year. "
                    "Unused days up to 5 may be carried over to the next year and must be "
                    "taken before March 31."
                ),
                "metadata": {"type": "policy", "category": "vacation"},
            },
            {
                "content": (
                    "Sick leave: employees receive 10 paid sick days per year. An absence "
                    "longer than 3 consecutive days requires a medical certificate sent to HR."
                ),
                "metadata": {"type": "policy", "category": "sick_leave"},
            },
            {
                "content": (
                    "Leave requests are submitted in the HR portal at least two weeks in "
                    "advance and approved by your direct manager."
                ),
                "metadata": {"type": "procedure", "category": "leave_request"},
            },
            {
                "content": (
                    "Onboarding: new employees receive their equipment and accounts on the "
                    "first day and complete the mandatory security training in week one."
                ),
                "metadata": {"type": "procedure", "category": "onboarding"},
            },
        ]

    # -- handlers -----------------------------------------------------------

    def handle_vacation_balance(self, query: str, context: dict[str, Any]) -> dict[str, Any]:
        employee = self._caller(context)
        if employee is None:
            return self._unknown_caller()
        return {
            "type": "vacation_balance",
            "message": f"{employee.name}, you have {employee.vacation_days:g} vacation days remaining.",
            "employee": employee.email,
            "balance": employee.vacation_days,
        }

    def handle_sick_leave_balance(self, query: str, context: dict[str, Any]) -> dict[str, Any]:
        employee = self._caller(context)
        if employee is None:
            return self._unknown_caller()
        return {
            "type": "sick_leave_balance",
            "message": f"{employee.name}, you have {employee.sick_days:g} sick days remaining.",
            "employee": employee.email,
            "balance": employee.sick_days,
        }

    def handle_employee_lookup(self, query: str, context: dict[str, Any]) -> dict[str, Any]:
        employee = self.directory.find_by_name(query)
        if employee is None:
            return {
                "type": "employee_lookup",
                "message": "I could not find that employee in the directory.",
                "found": False,
            }
        manager = f", reporting to {employee.manager}" if employee.manager else ""
        return {
            "type": "employee_lookup",
            "message": f"{employee.name} works in {employee.department}{manager} ({employee.email}).",
            "found": True,
            "employee": employee.email,
        }

    def _caller(self, context: dict[str, Any]) -> Employee | None:
        email = employee_email(context)
        return self.directory.get(email) if email else None

    @staticmethod
    def _unknown_caller() -> dict[str, Any]:
        return {
            "type": "employee_not_found",
            "message": (
                "I could not identify you in the employee directory. "
                "Please contact HR at hr@company.com."
            ),
        }
