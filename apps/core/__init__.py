# Export permission classes and the shared policy predicate for easy importing
from apps.core.permissions import HasCompanyPermission, IsPlatformOperator, can, requires_permissions

__all__ = ['HasCompanyPermission', 'IsPlatformOperator', 'can', 'requires_permissions']
