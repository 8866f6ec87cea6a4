"""FastAPI dependency providers."""

from .auth import get_current_user, require_admin, require_parent, require_tutor_or_admin
from .database import get_clock, get_db
from .services import (
    get_change_request_service,
    get_compliance_service,
    get_event_bus,
    get_generator_service,
    get_invoice_service,
    get_lifecycle_service,
    get_student_service,
    get_template_service,
    get_timesheet_service,
)

__all__ = [
    "get_change_request_service",
    "get_clock",
    "get_compliance_service",
    "get_current_user",
    "get_db",
    "get_event_bus",
    "get_generator_service",
    "get_invoice_service",
    "get_lifecycle_service",
    "get_student_service",
    "get_template_service",
    "get_timesheet_service",
    "require_admin",
    "require_parent",
    "require_tutor_or_admin",
]
