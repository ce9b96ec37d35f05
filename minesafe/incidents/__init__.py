"""
MineSafe Incidents Module
Safety incident reports with a forward-only investigation workflow.
"""
from .service import IncidentService
from .routes import register_incident_routes

__all__ = [
    "IncidentService",
    "register_incident_routes",
]
