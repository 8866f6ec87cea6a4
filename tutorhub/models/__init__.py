"""
ORM models.

Importing this package registers every table on ``Base.metadata``.
"""

from .alerts import InvoicePaymentAlert, SessionLoggingAlert
from .audit_log import AuditLog
from .change_request import ChangeRequest
from .invoice import Invoice, InvoiceReminder
from .notification import Notification
from .recurring_template import RecurringSessionTemplate
from .scan_watermark import ScanWatermark
from .session_occurrence import SessionOccurrence
from .student import Student, StudentGroup, student_group_members
from .timesheet import TimesheetEntry
from .user import User

__all__ = [
    "AuditLog",
    "ChangeRequest",
    "Invoice",
    "InvoicePaymentAlert",
    "InvoiceReminder",
    "Notification",
    "RecurringSessionTemplate",
    "ScanWatermark",
    "SessionLoggingAlert",
    "SessionOccurrence",
    "Student",
    "StudentGroup",
    "TimesheetEntry",
    "User",
    "student_group_members",
]
