"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    DRF authentication class that uses the user set by CompanyContextMiddleware.
    
    The middleware validates the bearer token and sets request.user; this
    class hands that user to DRF so IsAuthenticated and friends work.
    """
    
    def authenticate(self, request):
        """
        Return the user from the middleware if present.
        
        Returns:
            tuple: (user, token) if user is authenticated, None otherwise
        """
        # Get the underlying Django request (DRF wraps it)
        django_request = request._request
        
        user = getattr(django_request, 'user', None)
        if user is not None and user.is_authenticated and getattr(django_request, 'auth_token', None):
            return (user, django_request.auth_token)
        
        return None
    
    def authenticate_header(self, request):
        """Make unauthenticated requests answer 401 rather than 403."""
        return 'Bearer'
