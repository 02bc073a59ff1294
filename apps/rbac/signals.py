"""
RBAC signals for automatic role seeding.

Seeds the default roles whenever a Company row is created, so companies
added outside TenantService (Django admin, fixtures) get them too.
"""
import logging
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender='tenants.Company')
def seed_roles_on_company_creation(sender, instance, created, raw=False, **kwargs):
    """
    Seed Admin, Analyst and Viewer for a new company.

    Seeding is idempotent, so TenantService seeding again in the same
    transaction creates nothing. Fixture loading (raw) is skipped.
    """
    if not created or raw:
        return

    # Import here to avoid circular imports
    from apps.rbac.models import AuditLog
    from apps.rbac.services import RoleService

    roles = RoleService.seed_default_roles(instance)

    AuditLog.record(
        instance, None,
        f"Default roles seeded for {instance.name}",
        action='company_roles_seeded',
        target_type='Company',
        target_id=instance.id,
        metadata={'roles_created': [role.name for role in roles]},
    )
    logger.debug(
        "Default roles seeded",
        extra={'company_id': str(instance.id), 'roles': [role.name for role in roles]}
    )
