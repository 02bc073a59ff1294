# Initial schema for identity accounts, company profiles, roles, invites and audit logs

import uuid

import apps.rbac.models
import django.db.models.deletion
import django.db.models.functions.text
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('email', models.EmailField(db_index=True, help_text='Login email, stored lowercase', max_length=254, unique=True)),
                ('password_hash', models.CharField(db_column='password_hash', help_text='Hashed password', max_length=255)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Whether the account may sign in')),
                ('is_superuser', models.BooleanField(default=False, help_text='Django admin access')),
                ('is_platform_operator', models.BooleanField(db_index=True, default=False, help_text='Cross-tenant operator access. Set only by the grant_platform_operator command')),
                ('token_version', models.PositiveIntegerField(default=0, help_text='Bumped on sign-out and password change to revoke issued tokens')),
                ('last_login_at', models.DateTimeField(blank=True, help_text='Last successful sign-in', null=True)),
            ],
            options={
                'db_table': 'users',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='CompanyUser',
            fields=[
                ('user', models.OneToOneField(help_text='Identity account; also the profile id', on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='company_profile', serialize=False, to='rbac.user')),
                ('full_name', models.CharField(max_length=255)),
                ('email', models.EmailField(db_index=True, max_length=254)),
                ('role_name', models.CharField(db_index=True, help_text='Name of a role in the same company', max_length=100)),
                ('is_active', models.BooleanField(default=True)),
                ('phone_number', models.CharField(blank=True, max_length=30)),
                ('dashboard_urls', models.JSONField(blank=True, default=list, help_text="Dashboard URLs assigned to this user; empty falls back to the company's")),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='users', to='tenants.company')),
            ],
            options={
                'db_table': 'company_users',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['company', 'role_name'], name='company_users_role_idx')],
            },
        ),
        migrations.CreateModel(
            name='UserCompanyLookup',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='company_lookup', serialize=False, to='rbac.user')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='user_lookups', to='tenants.company')),
            ],
            options={
                'db_table': 'user_company_lookup',
            },
        ),
        migrations.CreateModel(
            name='Role',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('name', models.CharField(help_text='Display label and lookup key, unique per company ignoring case', max_length=100)),
                ('permissions', models.JSONField(blank=True, default=apps.rbac.models.default_permission_list, help_text='Subset of manage_users, manage_roles, view_dashboard')),
                ('is_system', models.BooleanField(default=False, help_text='Seeded at company creation')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='roles', to='tenants.company')),
            ],
            options={
                'db_table': 'roles',
                'ordering': ['name'],
                'constraints': [
                    models.UniqueConstraint(django.db.models.functions.text.Lower('name'), models.F('company'), name='unique_role_name_per_company_ci'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Invite',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('email', models.EmailField(db_index=True, max_length=254)),
                ('full_name', models.CharField(max_length=255)),
                ('role_name', models.CharField(max_length=100)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted')], db_index=True, default='pending', max_length=20)),
                ('accepted_at', models.DateTimeField(blank=True, null=True)),
                ('accepted_by', models.ForeignKey(blank=True, help_text='Identity account created on acceptance', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invites_accepted', to='rbac.user')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='invites', to='tenants.company')),
                ('invited_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invites_sent', to='rbac.user')),
            ],
            options={
                'db_table': 'invites',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['company', 'status'], name='invites_company_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('actor_name', models.CharField(blank=True, max_length=255)),
                ('actor_email', models.CharField(blank=True, max_length=255)),
                ('action', models.CharField(db_index=True, help_text="Action code (e.g. 'user_added', 'role_changed')", max_length=100)),
                ('message', models.TextField(help_text='Human-readable description')),
                ('target_type', models.CharField(blank=True, max_length=50)),
                ('target_id', models.CharField(blank=True, max_length=255)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True)),
                ('request_id', models.CharField(blank=True, db_index=True, max_length=64)),
                ('actor', models.ForeignKey(blank=True, help_text='Account that performed the action (null for system actions)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to='rbac.user')),
                ('company', models.ForeignKey(blank=True, help_text='Company this entry belongs to (null for platform-level)', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='audit_logs', to='tenants.company')),
            ],
            options={
                'db_table': 'audit_logs',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['company', 'created_at'], name='audit_logs_company_created_idx'),
                    models.Index(fields=['action', 'created_at'], name='audit_logs_action_created_idx'),
                ],
            },
        ),
    ]
