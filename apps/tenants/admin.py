"""
Django admin configuration for companies and contact submissions.
"""
from django.contrib import admin
from .models import Company, ContactSubmission


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ['name', 'industry', 'subscription_plan', 'subscription_status', 'is_active', 'created_at']
    list_filter = ['subscription_plan', 'subscription_status', 'is_active', 'industry']
    search_fields = ['name', 'registered_email']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(ContactSubmission)
class ContactSubmissionAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'company_name', 'created_at']
    search_fields = ['name', 'email', 'company_name']
    readonly_fields = ['created_at', 'updated_at']
