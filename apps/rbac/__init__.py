"""
RBAC (Role-Based Access Control) application.

Provides company-scoped access control with:
- Identity accounts and JWT sessions
- One company profile per account
- Per-company roles drawn from a fixed permission set
- Invites and an append-only audit log
"""
