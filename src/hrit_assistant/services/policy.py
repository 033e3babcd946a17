"""Company policy service: answers from its own policy documents."""

from __future__ import annotations

from typing import Any

_WORK_FROM_HOME = """
Work from home policy overview. The company supports hybrid work for roles that do not require a
physical presence on site. Employees may work remotely up to three days per week once their
probation period is complete. Core collaboration hours are 10am to 4pm in the employee's home
office time zone, and employees are expected to be reachable on chat and video during those hours.

Eligibility. Remote work is available to permanent employees who have completed probation and
whose manager confirms that the role can be performed remotely. Temporary full remote
arrangements for medical or family reasons are reviewed by HR on a case by case basis and are
granted for a maximum of three months at a time.

Process. Employees submit a remote work agreement in the HR portal listing their usual remote
days and work location. The manager approves the agreement and HR records it. Working from
another country requires an additional tax and security review and must be requested at least
one month in advance. Company equipment used at home remains subject to the IT security policy.
""".strip()

_EXPENSES = """
Expense policy overview. Employees are reimbursed for reasonable business expenses incurred on
behalf of the company, including travel, accommodation, meals during business trips and
approved training materials. Personal expenses, fines and alcohol are never reimbursed.

Limits. Hotel costs are capped at 150 per night in most cities and 220 per night in capital
cities. Meal allowances are 25 for lunch and 40 for dinner while travelling. Train travel is
preferred for journeys under four hours; flights must be booked in economy class.

Process. Expense reports are submitted in the finance portal within 30 days with itemised
receipts attached. Reports are approved by the direct manager and reimbursed with the next
payroll run. Missing receipts require a signed declaration and are limited to 50 per report.
""".strip()

_TRAINING = """
Training policy overview. Every employee has an annual learning budget of 1500 and five
training days per year to spend on courses, certifications and conferences related to their
current role or agreed career development plan.

Eligibility. The budget is available from the first day of employment and is prorated for
part-time employees. Certifications costing more than the annual budget may be approved by the
department head with a retention agreement of twelve months.

Process. Training requests are submitted in the learning portal at least three weeks before the
session with the course description and cost. The manager approves the request, after which
HR books the course. Employees share a short summary of what they learned with their team.
""".strip()


class PolicyService:
    name = "policy"

    _TOPICS = {
        "work_from_home_policy": "remote_work",
        "expense_policy": "expenses",
        "training_policy": "training",
    }

    def describe_service(self) -> dict[str, Any]:
        return {
            "name": "Policy Service",
            "description": "Company policies for remote work, expenses and training",
            "capabilities": list(self._TOPICS),
        }

    def list_intent_patterns(self) -> list[dict[str, Any]]:
        return [
            {
                "intent": "work_from_home_policy",
                "examples": [
                    "can I work from home",
                    "what is the remote work policy",
                    "how many days can I work remotely",
                    "puis-je faire du télétravail",
                ],
                "confidence": 0.8,
                "handler_name": "handle_policy_question",
            },
            {
                "intent": "expense_policy",
                "examples": [
                    "how do I get reimbursed for expenses",
                    "what is the hotel limit for business travel",
                    "how do I submit an expense report",
                ],
                "confidence": 0.8,
                "handler_name": "handle_policy_question",
            },
            {
                "intent": "training_policy",
                "examples": [
                    "what is my training budget",
                    "how do I request a training course",
                    "can the company pay for a certification",
                ],
                "confidence": 0.8,
                "handler_name": "handle_policy_question",
            },
        ]

    def list_documents(self) -> list[dict[str, Any]]:
        return [
            {"content": _WORK_FROM_HOME, "metadata": {"type": "policy", "category": "remote_work"}},
            {"content": _EXPENSES, "metadata": {"type": "policy", "category": "expenses"}},
            {"content": _TRAINING, "metadata": {"type": "policy", "category": "training"}},
        ]

    def handle_policy_question(self, query: str, context: dict[str, Any]) -> dict[str, Any]:
        """Answer with the closest retrieved excerpts of the matching policy."""
        intent = context.get("intent")
        category = self._TOPICS.get(getattr(intent, "primary", ""), "")
        documents = context.get("documents") or []
        excerpts = [
            doc.content
            for doc in documents
            if doc.metadata.get("category") == category
            and doc.metadata.get("source_service") == getattr(intent, "source_service", None)
        ]
        if not excerpts:
            return {
                "type": "policy_not_found",
                "message": "I could not find that policy. Please check the HR portal or contact hr@company.com.",
            }
        return {
            "type": "policy_answer",
            "message": " ".join(excerpts[0].split()),
            "category": category,
            "excerpt_count": len(excerpts),
        }
