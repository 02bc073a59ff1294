"""
Serializers for company, dashboard and contact API endpoints.
"""
from rest_framework import serializers
from apps.core.validators import InputValidator
from apps.tenants.models import Company, ContactSubmission


class CompanySerializer(serializers.ModelSerializer):
    """Serializer for Company."""

    user_count = serializers.SerializerMethodField()

    class Meta:
        model = Company
        fields = [
            'id', 'name', 'industry', 'company_size', 'registered_email',
            'phone_number', 'subscription_plan', 'subscription_status',
            'is_active', 'dashboard_urls', 'user_count',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_user_count(self, obj):
        return obj.users.count()


class CompanyUpdateSerializer(serializers.Serializer):
    """
    Partial company update.

    Which fields the caller may actually change is decided by
    TenantService.update_company.
    """

    name = serializers.CharField(required=False, max_length=255)
    industry = serializers.ChoiceField(choices=Company.INDUSTRY_CHOICES, required=False)
    company_size = serializers.CharField(required=False, allow_blank=True, max_length=50)
    phone_number = serializers.CharField(required=False, allow_blank=True, max_length=30)
    subscription_plan = serializers.ChoiceField(choices=Company.PLAN_CHOICES, required=False)
    subscription_status = serializers.ChoiceField(choices=Company.SUBSCRIPTION_STATUS_CHOICES, required=False)
    is_active = serializers.BooleanField(required=False)
    dashboard_urls = serializers.ListField(
        child=serializers.CharField(max_length=2048),
        required=False
    )
    apply_dashboard_to_admins = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        fields = {k: v for k, v in attrs.items() if k != 'apply_dashboard_to_admins'}
        if not fields:
            raise serializers.ValidationError("Provide at least one field to update.")
        return attrs

    def update_fields(self):
        return {k: v for k, v in self.validated_data.items() if k != 'apply_dashboard_to_admins'}


class PlatformCompanyCreateSerializer(serializers.Serializer):
    """Serializer for a platform operator creating a company with its first Admin."""

    name = serializers.CharField(required=True, max_length=255)
    industry = serializers.ChoiceField(choices=Company.INDUSTRY_CHOICES, required=False, default='other')
    company_size = serializers.CharField(required=False, allow_blank=True, max_length=50)
    registered_email = serializers.EmailField(required=False, allow_blank=True)
    phone_number = serializers.CharField(required=False, allow_blank=True, max_length=30)
    subscription_plan = serializers.ChoiceField(
        choices=Company.PLAN_CHOICES, required=False, default=Company.PLAN_TRIAL
    )
    dashboard_urls = serializers.ListField(
        child=serializers.CharField(max_length=2048),
        required=False,
        default=list
    )
    admin_full_name = serializers.CharField(required=True, max_length=255)
    admin_email = serializers.EmailField(required=True)
    admin_password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_admin_email(self, value):
        return InputValidator.normalize_email(value)

    def company_info(self):
        data = self.validated_data
        return {
            'name': data['name'],
            'industry': data.get('industry'),
            'company_size': data.get('company_size', ''),
            'registered_email': data.get('registered_email', ''),
            'phone_number': data.get('phone_number', ''),
            'subscription_plan': data.get('subscription_plan'),
            'dashboard_urls': data.get('dashboard_urls', []),
        }

    def first_admin(self):
        data = self.validated_data
        return {
            'email': data['admin_email'],
            'password': data['admin_password'],
            'full_name': data['admin_full_name'],
        }


class PlatformOverviewSerializer(serializers.Serializer):
    total_companies = serializers.IntegerField()
    active_companies = serializers.IntegerField()
    active_subscriptions = serializers.IntegerField()
    total_users = serializers.IntegerField()
    companies_by_plan = serializers.DictField(child=serializers.IntegerField())
    estimated_monthly_revenue = serializers.IntegerField()


class ContactSubmissionSerializer(serializers.ModelSerializer):
    """Serializer for public contact form submissions."""

    submitted_at = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = ContactSubmission
        fields = ['id', 'name', 'email', 'company_name', 'message', 'submitted_at']
        read_only_fields = ['id', 'submitted_at']
        extra_kwargs = {
            'message': {'required': False, 'allow_blank': True},
        }


class DashboardSerializer(serializers.Serializer):
    dashboard_urls = serializers.ListField(child=serializers.CharField())
