# tutorhub/repositories/factory.py
"""
Repository Factory for TutorHub

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .alert_repository import InvoicePaymentAlertRepository, SessionLoggingAlertRepository
from .audit_repository import AuditRepository
from .change_request_repository import ChangeRequestRepository
from .invoice_repository import InvoiceRepository
from .notification_repository import NotificationRepository
from .occurrence_repository import OccurrenceRepository
from .scan_watermark_repository import ScanWatermarkRepository
from .student_repository import StudentRepository
from .template_repository import RecurringTemplateRepository
from .timesheet_repository import TimesheetRepository
from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services and tests can swap
    implementations in one place.
    """

    @staticmethod
    def create_template_repository(db: Session) -> RecurringTemplateRepository:
        return RecurringTemplateRepository(db)

    @staticmethod
    def create_occurrence_repository(db: Session) -> OccurrenceRepository:
        return OccurrenceRepository(db)

    @staticmethod
    def create_change_request_repository(db: Session) -> ChangeRequestRepository:
        return ChangeRequestRepository(db)

    @staticmethod
    def create_timesheet_repository(db: Session) -> TimesheetRepository:
        return TimesheetRepository(db)

    @staticmethod
    def create_student_repository(db: Session) -> StudentRepository:
        return StudentRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> UserRepository:
        return UserRepository(db)

    @staticmethod
    def create_invoice_repository(db: Session) -> InvoiceRepository:
        return InvoiceRepository(db)

    @staticmethod
    def create_logging_alert_repository(db: Session) -> SessionLoggingAlertRepository:
        return SessionLoggingAlertRepository(db)

    @staticmethod
    def create_payment_alert_repository(db: Session) -> InvoicePaymentAlertRepository:
        return InvoicePaymentAlertRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> NotificationRepository:
        return NotificationRepository(db)

    @staticmethod
    def create_audit_repository(db: Session) -> AuditRepository:
        return AuditRepository(db)

    @staticmethod
    def create_scan_watermark_repository(db: Session) -> ScanWatermarkRepository:
        return ScanWatermarkRepository(db)
