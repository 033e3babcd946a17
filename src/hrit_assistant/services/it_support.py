"""IT support domain service: ticket proposals, creation and status."""

from __future__ import annotations

import re
from typing import Any

from hrit_assistant.services.hr import employee_email
from hrit_assistant.services.records import TicketDesk

CREATE_TICKET_ACTION = "create_ticket"

_TICKET_ID = re.compile(r"\b(LAHR-\d+)\b", re.IGNORECASE)

# keyword -> (category, priority)
_TRIAGE = (
    (("password", "locked", "login", "mot de passe"), ("access", "High")),
    (("vpn", "network", "wifi", "internet", "réseau"), ("network", "High")),
    (("laptop", "screen", "keyboard", "printer", "ordinateur"), ("hardware", "Medium")),
    (("email", "outlook", "teams", "software", "install"), ("software", "Medium")),
)


def triage(description: str) -> tuple[str, str]:
    lowered = description.lower()
    for keywords, outcome in _TRIAGE:
        if any(keyword in lowered for keyword in keywords):
            return outcome
    return "general", "Low"


class ITSupportService:
    name = "it_support"

    def __init__(self, ticket_desk: TicketDesk | None = None) -> None:
        self.ticket_desk = ticket_desk or TicketDesk()

    def describe_service(self) -> dict[str, Any]:
        return {
            "name": "IT Support Service",
            "description": "Troubleshooting, support tickets and IT procedures",
            "capabilities": ["it_issue", "ticket_status", "create_ticket"],
        }

    def list_intent_patterns(self) -> list[dict[str, Any]]:
        return [
            {
                "intent": "it_issue",
                "examples": [
                    "my laptop is not working",
                    "I cannot connect to the vpn",
                    "I forgot my password and my account is locked",
                    "my email is not syncing",
                    "mon ordinateur ne fonctionne pas",
                ],
                "confidence": 0.85,
                "handler_name": "handle_it_issue",
            },
            {
                "intent": "ticket_status",
                "examples": [
                    "what is the status of my ticket",
                    "show my open tickets",
                    "quel est le statut de mon ticket",
                ],
                "confidence": 0.85,
                "handler_name": "handle_ticket_status",
            },
        ]

    def list_documents(self) -> list[dict[str, Any]]:
        return [
            {
                "content": (
                    "Password reset: use the self-service portal at https://password.company.com. "
                    "Passwords expire every 90 days and must contain at least 12 characters."
                ),
                "metadata": {"type": "procedure", "category": "password"},
            },
            {
                "content": (
                    "Equipment requests for laptops, monitors and accessories are made through "
                    "an IT ticket and require manager approval. Standard delivery is 5 business days."
                ),
                "metadata": {"type": "procedure", "category": "equipment"},
            },
            {
                "content": (
                    "IT support is reachable at support@company.com or extension 4357, Monday "
                    "to Friday from 8am to 6pm. Critical outages are handled around the clock."
                ),
                "metadata": {"type": "contact", "category": "support"},
            },
        ]

    # -- handlers -----------------------------------------------------------

    def handle_it_issue(self, query: str, context: dict[str, Any]) -> dict[str, Any]:
        """Propose a ticket; creation waits for the user's confirmation."""
        category, priority = triage(query)
        intent = context.get("intent")
        service_name = getattr(intent, "source_service", None) or self.name
        payload = {
            "description": query,
            "category": category,
            "priority": priority,
            "employee_email": employee_email(context),
        }
        return {
            "type": "ticket_proposal",
            "message": (
                f"This looks like a {category} issue ({priority} priority). "
                "Would you like me to create a support ticket?"
            ),
            "proposal": payload,
            "pending_action": {
                "type": CREATE_TICKET_ACTION,
                "data": {"service": service_name, "handler": "create_ticket", "payload": payload},
            },
        }

    def create_ticket(self, query: str, context: dict[str, Any]) -> dict[str, Any]:
        """Follow-up handler run once a ticket proposal is confirmed."""
        action = context.get("pending_action") or {}
        payload = action.get("payload") or {}
        if not context.get("confirmed") or not payload:
            return {
                "type": "ticket_not_created",
                "message": "No confirmed ticket request was found.",
            }
        ticket = self.ticket_desk.create(
            payload.get("employee_email") or employee_email(context),
            payload["description"],
            category=payload.get("category", "general"),
            priority=payload.get("priority", "Medium"),
        )
        return {
            "type": "ticket_created",
            "message": f"Ticket {ticket.ticket_id} has been created. IT support will contact you shortly.",
            "ticket_id": ticket.ticket_id,
            "priority": ticket.priority,
        }

    def handle_ticket_status(self, query: str, context: dict[str, Any]) -> dict[str, Any]:
        match = _TICKET_ID.search(query)
        if match:
            ticket = self.ticket_desk.get(match.group(1))
            if ticket is None:
                return {"type": "ticket_status", "message": f"Ticket {match.group(1).upper()} was not found."}
            return {
                "type": "ticket_status",
                "message": f"Ticket {ticket.ticket_id} is {ticket.status} ({ticket.priority} priority).",
                "tickets": [ticket.ticket_id],
            }

        tickets = self.ticket_desk.list_for(employee_email(context))
        if not tickets:
            return {"type": "ticket_status", "message": "You have no support tickets.", "tickets": []}
        summary = ", ".join(f"{ticket.ticket_id} ({ticket.status})" for ticket in tickets)
        return {
            "type": "ticket_status",
            "message": f"Your tickets: {summary}.",
            "tickets": [ticket.ticket_id for ticket in tickets],
        }
