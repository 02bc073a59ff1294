# Initial schema for companies and contact submissions

import uuid

import apps.tenants.models
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Company',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('name', models.CharField(help_text='Company display name', max_length=255)),
                ('industry', models.CharField(choices=[('technology', 'Technology'), ('finance', 'Finance'), ('healthcare', 'Healthcare'), ('ecommerce', 'E-commerce'), ('marketing', 'Marketing'), ('retail', 'Retail'), ('manufacturing', 'Manufacturing'), ('law firm', 'Law Firm'), ('other', 'Other')], default='other', help_text='Industry the company operates in', max_length=50)),
                ('company_size', models.CharField(blank=True, help_text="Self-reported headcount band (e.g. '11-50')", max_length=50)),
                ('registered_email', models.EmailField(blank=True, help_text='Contact email given at registration', max_length=254)),
                ('phone_number', models.CharField(blank=True, help_text='Contact phone number', max_length=30)),
                ('subscription_plan', models.CharField(choices=[('Trial', 'Trial'), ('Basic', 'Basic'), ('Enterprise', 'Enterprise')], db_index=True, default='Trial', help_text='Current subscription plan', max_length=20)),
                ('subscription_status', models.CharField(choices=[('Active', 'Active'), ('Inactive', 'Inactive')], default='Active', help_text='Billing status of the subscription', max_length=20)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Inactive companies keep their data but are flagged in the platform view')),
                ('dashboard_urls', models.JSONField(blank=True, default=apps.tenants.models.default_dashboard_urls, help_text='External BI dashboard URLs, served as opaque strings')),
            ],
            options={
                'verbose_name_plural': 'companies',
                'db_table': 'companies',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['subscription_plan', 'is_active'], name='companies_plan_active_idx')],
            },
        ),
        migrations.CreateModel(
            name='ContactSubmission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('name', models.CharField(max_length=255)),
                ('email', models.EmailField(max_length=254)),
                ('company_name', models.CharField(max_length=255)),
                ('message', models.TextField(blank=True)),
            ],
            options={
                'db_table': 'contacts',
                'ordering': ['-created_at'],
            },
        ),
    ]
