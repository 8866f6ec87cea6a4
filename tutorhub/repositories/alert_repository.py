# tutorhub/repositories/alert_repository.py
"""
Alert Repository for TutorHub

Data access for session logging alerts and invoice payment alerts.
"""

from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.enums import AlertStatus
from ..models.alerts import InvoicePaymentAlert, SessionLoggingAlert
from .base_repository import BaseRepository


class SessionLoggingAlertRepository(BaseRepository[SessionLoggingAlert]):
    def __init__(self, db: Session):
        super().__init__(db, SessionLoggingAlert)

    def get_for_occurrence(self, occurrence_id: str) -> Optional[SessionLoggingAlert]:
        return self.find_one_by(session_occurrence_id=occurrence_id)

    def get_pending_for_occurrence(self, occurrence_id: str) -> Optional[SessionLoggingAlert]:
        return self.find_one_by(
            session_occurrence_id=occurrence_id, status=AlertStatus.PENDING.value
        )

    def list_filtered(
        self, tutor_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[SessionLoggingAlert]:
        query = self._build_query()
        if tutor_id:
            query = query.filter(SessionLoggingAlert.tutor_id == tutor_id)
        if status:
            query = query.filter(SessionLoggingAlert.status == status)
        return self._execute_query(query.order_by(SessionLoggingAlert.alert_created_at.desc()))

    def list_resolved(self, tutor_id: Optional[str] = None) -> List[SessionLoggingAlert]:
        return self.list_filtered(tutor_id=tutor_id, status=AlertStatus.RESOLVED.value)

    def count_pending_by_tutor(self, tutor_id: Optional[str] = None) -> Dict[str, int]:
        query = self.db.query(
            SessionLoggingAlert.tutor_id, func.count(SessionLoggingAlert.id)
        ).filter(SessionLoggingAlert.status == AlertStatus.PENDING.value)
        if tutor_id:
            query = query.filter(SessionLoggingAlert.tutor_id == tutor_id)
        rows = self._execute_query(query.group_by(SessionLoggingAlert.tutor_id))
        return {row[0]: int(row[1]) for row in rows}


class InvoicePaymentAlertRepository(BaseRepository[InvoicePaymentAlert]):
    def __init__(self, db: Session):
        super().__init__(db, InvoicePaymentAlert)

    def get_for_invoice(self, invoice_id: str) -> Optional[InvoicePaymentAlert]:
        return self.find_one_by(invoice_id=invoice_id)

    def get_pending_for_invoice(self, invoice_id: str) -> Optional[InvoicePaymentAlert]:
        return self.find_one_by(invoice_id=invoice_id, status=AlertStatus.PENDING.value)

    def list_filtered(
        self, parent_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[InvoicePaymentAlert]:
        query = self._build_query()
        if parent_id:
            query = query.filter(InvoicePaymentAlert.parent_id == parent_id)
        if status:
            query = query.filter(InvoicePaymentAlert.status == status)
        return self._execute_query(query.order_by(InvoicePaymentAlert.alert_created_at.desc()))
