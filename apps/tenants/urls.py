"""
Company API URLs.

Endpoints for:
- The caller's company
- Embedded dashboard URLs
- Public contact form
"""
from django.urls import path
from apps.tenants.views import CompanyView, DashboardView, ContactView

app_name = 'tenants'

urlpatterns = [
    path('company', CompanyView.as_view(), name='company'),
    path('dashboard', DashboardView.as_view(), name='dashboard'),
    path('contact', ContactView.as_view(), name='contact'),
]
