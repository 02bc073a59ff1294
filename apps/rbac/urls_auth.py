"""
URL routing for authentication endpoints.
"""
from django.urls import path
from apps.rbac.views_auth import (
    RegistrationView, LoginView, LogoutView, ReauthenticateView,
    ChangePasswordView, UserProfileView
)

app_name = 'auth'

urlpatterns = [
    # Registration and login
    path('register', RegistrationView.as_view(), name='register'),
    path('login', LoginView.as_view(), name='login'),
    path('logout', LogoutView.as_view(), name='logout'),

    # Sensitive actions
    path('reauthenticate', ReauthenticateView.as_view(), name='reauthenticate'),
    path('change-password', ChangePasswordView.as_view(), name='change-password'),

    # User profile (GET and PUT on same endpoint)
    path('me', UserProfileView.as_view(), name='profile'),
]
