"""Versioned API routers, mounted under /api/v1 in ``tutorhub.main``."""

from fastapi import APIRouter

from . import alerts, change_requests, invoices, occurrences, recurring_templates, students

api_router = APIRouter()
api_router.include_router(recurring_templates.router, prefix="/recurring-templates")
api_router.include_router(occurrences.router, prefix="/occurrences")
api_router.include_router(change_requests.router, prefix="/change-requests")
api_router.include_router(alerts.router, prefix="/alerts")
api_router.include_router(students.router, prefix="/students")
api_router.include_router(invoices.router, prefix="/invoices")
