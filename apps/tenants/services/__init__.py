"""
Services for company management.
"""
from .tenant_service import TenantService
from .dashboard_service import DashboardService
from .contact_service import ContactService

__all__ = [
    'TenantService',
    'DashboardService',
    'ContactService',
]
