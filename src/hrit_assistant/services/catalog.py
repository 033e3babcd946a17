"""Built-in domain services registered by default."""

from __future__ import annotations

from typing import Any

from hrit_assistant.services.hr import HRService
from hrit_assistant.services.it_support import ITSupportService
from hrit_assistant.services.policy import PolicyService
from hrit_assistant.services.records import EmployeeDirectory, TicketDesk


def default_services(
    directory: EmployeeDirectory | None = None,
    ticket_desk: TicketDesk | None = None,
) -> dict[str, Any]:
    return {
        HRService.name: HRService(directory or EmployeeDirectory()),
        ITSupportService.name: ITSupportService(ticket_desk or TicketDesk()),
        PolicyService.name: PolicyService(),
    }
