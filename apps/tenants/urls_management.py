"""
Platform operator API URLs.

Endpoints for:
- Listing, creating and updating companies across tenants
- Platform overview
- Contact form submissions
"""
from django.urls import path
from apps.tenants.views_admin import (
    AdminCompanyListView,
    AdminCompanyDetailView,
    AdminOverviewView,
    AdminContactListView,
)

app_name = 'platform'

urlpatterns = [
    path('companies', AdminCompanyListView.as_view(), name='company-list'),
    path('companies/<uuid:company_id>', AdminCompanyDetailView.as_view(), name='company-detail'),
    path('overview', AdminOverviewView.as_view(), name='overview'),
    path('contacts', AdminContactListView.as_view(), name='contact-list'),
]
