"""In-memory employee and ticket data behind the built-in services."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime

from hrit_assistant.types import utc_now

TICKET_PREFIX = "LAHR"
TICKET_PRIORITIES = ("Low", "Medium", "High", "Critical")


@dataclass(frozen=True, slots=True)
class Employee:
    email: str
    name: str
    department: str
    manager: str | None = None
    vacation_days: float = 0.0
    sick_days: float = 0.0


@dataclass(slots=True)
class Ticket:
    ticket_id: str
    employee_email: str
    description: str
    category: str = "general"
    priority: str = "Medium"
    status: str = "Open"
    created: datetime = field(default_factory=utc_now)


def _demo_employees() -> list[Employee]:
    return [
        Employee("alice.martin@company.com", "Alice Martin", "Engineering", "Bruno Leroy", 18.5, 6),
        Employee("bruno.leroy@company.com", "Bruno Leroy", "Engineering", None, 22, 10),
        Employee("chloe.dubois@company.com", "Chloe Dubois", "Finance", "Bruno Leroy", 12, 4.5),
        Employee("david.nguyen@company.com", "David Nguyen", "Human Resources", None, 25, 8),
    ]


class EmployeeDirectory:
    """Lookup of employees and their leave balances."""

    def __init__(self, employees: list[Employee] | None = None) -> None:
        source = _demo_employees() if employees is None else employees
        self._by_email = {employee.email.lower(): employee for employee in source}

    def get(self, email: str) -> Employee | None:
        return self._by_email.get(email.strip().lower())

    def find_by_name(self, text: str) -> Employee | None:
        """Return the employee whose full or first name appears in `text`."""
        lowered = text.lower()
        for employee in self._by_email.values():
            if employee.name.lower() in lowered:
                return employee
        for employee in self._by_email.values():
            first = employee.name.split()[0].lower()
            if first in lowered.split():
                return employee
        return None


class TicketDesk:
    """Thread-safe ticket store issuing sequential `LAHR-<n>` ids."""

    def __init__(self, start: int = 1000) -> None:
        self._counter = itertools.count(start)
        self._tickets: dict[str, Ticket] = {}
        self._lock = threading.Lock()

    def create(
        self,
        employee_email: str,
        description: str,
        *,
        category: str = "general",
        priority: str = "Medium",
    ) -> Ticket:
        if priority not in TICKET_PRIORITIES:
            raise ValueError(f"Unknown ticket priority: {priority}")
        if not description.strip():
            raise ValueError("Ticket description must not be empty")
        with self._lock:
            ticket = Ticket(
                ticket_id=f"{TICKET_PREFIX}-{next(self._counter)}",
                employee_email=employee_email,
                description=description.strip(),
                category=category,
                priority=priority,
            )
            self._tickets[ticket.ticket_id] = ticket
        return replace(ticket)

    def get(self, ticket_id: str) -> Ticket | None:
        with self._lock:
            ticket = self._tickets.get(ticket_id.upper())
            return replace(ticket) if ticket is not None else None

    def list_for(self, employee_email: str) -> list[Ticket]:
        with self._lock:
            return [
                replace(ticket)
                for ticket in self._tickets.values()
                if ticket.employee_email == employee_email
            ]
