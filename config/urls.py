"""
URL configuration for the admin console.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Authentication endpoints
    path('v1/auth/', include('apps.rbac.urls_auth')),  # Register, login, logout, reauthenticate, change-password, me

    # Company, dashboard and contact form
    path('v1/', include('apps.tenants.urls')),

    # Users, roles, invites, audit logs
    path('v1/', include('apps.rbac.urls')),

    # Platform operator endpoints
    path('v1/platform/', include('apps.tenants.urls_management')),
]
