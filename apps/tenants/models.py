"""
Tenant models for multi-tenant isolation.

A Company owns its roles, user profiles, invites and audit trail (see
apps.rbac.models). Companies are never hard-deleted; deactivation goes
through the is_active flag.
"""
from django.db import models
from apps.core.models import BaseModel


def default_dashboard_urls():
    """Companies start without an embedded dashboard."""
    return []


class CompanyManager(models.Manager):
    """Manager for company queries."""

    def active(self):
        """Return only active companies."""
        return self.filter(is_active=True)

    def paying(self):
        """Companies on a plan other than Trial."""
        return self.exclude(subscription_plan=Company.PLAN_TRIAL)

    def newest_first(self):
        return self.order_by('-created_at')


class Company(BaseModel):
    """
    An isolated customer organization.

    Created once at registration together with its first Admin user and
    default roles; mutated afterwards by admin edits (plan, dashboard URLs,
    active flag).
    """

    PLAN_TRIAL = 'Trial'
    PLAN_BASIC = 'Basic'
    PLAN_ENTERPRISE = 'Enterprise'

    PLAN_CHOICES = [
        (PLAN_TRIAL, 'Trial'),
        (PLAN_BASIC, 'Basic'),
        (PLAN_ENTERPRISE, 'Enterprise'),
    ]

    SUBSCRIPTION_STATUS_CHOICES = [
        ('Active', 'Active'),
        ('Inactive', 'Inactive'),
    ]

    INDUSTRY_CHOICES = [
        ('technology', 'Technology'),
        ('finance', 'Finance'),
        ('healthcare', 'Healthcare'),
        ('ecommerce', 'E-commerce'),
        ('marketing', 'Marketing'),
        ('retail', 'Retail'),
        ('manufacturing', 'Manufacturing'),
        ('law firm', 'Law Firm'),
        ('other', 'Other'),
    ]

    name = models.CharField(
        max_length=255,
        help_text="Company display name"
    )
    industry = models.CharField(
        max_length=50,
        choices=INDUSTRY_CHOICES,
        default='other',
        help_text="Industry the company operates in"
    )
    company_size = models.CharField(
        max_length=50,
        blank=True,
        help_text="Self-reported headcount band (e.g. '11-50')"
    )
    registered_email = models.EmailField(
        blank=True,
        help_text="Contact email given at registration"
    )
    phone_number = models.CharField(
        max_length=30,
        blank=True,
        help_text="Contact phone number"
    )

    # Subscription
    subscription_plan = models.CharField(
        max_length=20,
        choices=PLAN_CHOICES,
        default=PLAN_TRIAL,
        db_index=True,
        help_text="Current subscription plan"
    )
    subscription_status = models.CharField(
        max_length=20,
        choices=SUBSCRIPTION_STATUS_CHOICES,
        default='Active',
        help_text="Billing status of the subscription"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive companies keep their data but are flagged in the platform view"
    )

    # Embedded dashboard
    dashboard_urls = models.JSONField(
        default=default_dashboard_urls,
        blank=True,
        help_text="External BI dashboard URLs, served as opaque strings"
    )

    objects = CompanyManager()

    class Meta:
        db_table = 'companies'
        ordering = ['-created_at']
        verbose_name_plural = 'companies'
        indexes = [
            models.Index(fields=['subscription_plan', 'is_active'], name='companies_plan_active_idx'),
        ]

    def __str__(self):
        return self.name


class ContactSubmission(BaseModel):
    """
    Message left through the public contact form.

    Writable by anyone, readable only by platform operators.
    """

    name = models.CharField(max_length=255)
    email = models.EmailField()
    company_name = models.CharField(max_length=255)
    message = models.TextField(blank=True)

    class Meta:
        db_table = 'contacts'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} <{self.email}> ({self.company_name})"

    @property
    def submitted_at(self):
        return self.created_at
