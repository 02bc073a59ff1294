"""
Input validation helpers shared by serializers and services.

Validation runs before any write; failures surface as
apps.core.exceptions.ValidationError.
"""
import re
import uuid
from typing import Dict, Any, Iterable, List, Optional

from apps.core.exceptions import ValidationError


class InputValidator:
    """
    Common input validation functions.
    """

    EMAIL_PATTERN = re.compile(
        r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    )

    URL_PATTERN = re.compile(
        r'^https?://'
        r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|'
        r'localhost|'
        r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'
        r'(?::\d+)?'
        r'(?:/?|[/?]\S+)$',
        re.IGNORECASE
    )

    # Loose international format, digits with optional separators
    PHONE_PATTERN = re.compile(r'^\+?[\d\s\-().]{7,20}$')

    @staticmethod
    def validate_email(email: str) -> bool:
        """
        Validate email format.

        Args:
            email: Email address to validate

        Returns:
            bool: True if valid, False otherwise
        """
        if not email:
            return False
        return bool(InputValidator.EMAIL_PATTERN.match(email))

    @staticmethod
    def normalize_email(email: str) -> str:
        """Lowercase and strip an email address."""
        return (email or '').strip().lower()

    @staticmethod
    def validate_password_strength(password: str) -> Dict[str, Any]:
        """
        Validate password strength.

        Requirements:
        - At least 8 characters
        - Contains uppercase letter
        - Contains lowercase letter
        - Contains digit
        - Contains special character

        Returns:
            dict: {'valid': bool, 'errors': [str]}
        """
        result = {
            'valid': True,
            'errors': []
        }
        password = password or ''

        if len(password) < 8:
            result['valid'] = False
            result['errors'].append('Password must be at least 8 characters long')

        if not re.search(r'[A-Z]', password):
            result['valid'] = False
            result['errors'].append('Password must contain at least one uppercase letter')

        if not re.search(r'[a-z]', password):
            result['valid'] = False
            result['errors'].append('Password must contain at least one lowercase letter')

        if not re.search(r'\d', password):
            result['valid'] = False
            result['errors'].append('Password must contain at least one digit')

        if not re.search(r'[!@#$%^&*(),.?":{}|<>_\-+=\[\]\\/;\'`~]', password):
            result['valid'] = False
            result['errors'].append('Password must contain at least one special character')

        return result

    @staticmethod
    def validate_url(url: str) -> bool:
        """Validate an http(s) URL."""
        if not url:
            return False
        return bool(InputValidator.URL_PATTERN.match(url))

    @staticmethod
    def validate_phone(phone: str) -> bool:
        if not phone:
            return False
        return bool(InputValidator.PHONE_PATTERN.match(phone))


def require_fields(data: Dict[str, Any], fields: Iterable[str]):
    """
    Raise ValidationError listing every required field that is blank.
    """
    missing = [name for name in fields if not str(data.get(name) or '').strip()]
    if missing:
        raise ValidationError(
            'Missing required fields',
            details={name: ['This field is required.'] for name in missing}
        )


def clean_email(email: str) -> str:
    """Normalize an email address or raise ValidationError."""
    normalized = InputValidator.normalize_email(email)
    if not InputValidator.validate_email(normalized):
        raise ValidationError('Invalid email address', details={'email': ['Enter a valid email address.']})
    return normalized


def clean_password(password: str) -> str:
    """Return the password unchanged or raise ValidationError with the strength errors."""
    result = InputValidator.validate_password_strength(password)
    if not result['valid']:
        raise ValidationError('Password does not meet complexity requirements',
                              details={'password': result['errors']})
    return password


def clean_urls(urls) -> List[str]:
    """
    Validate a list of dashboard URLs.

    URLs are opaque to the console; only their scheme and shape are checked.
    """
    if urls is None:
        return []
    if isinstance(urls, str):
        urls = [urls]
    cleaned = []
    for url in urls:
        url = (url or '').strip()
        if not url:
            continue
        if not InputValidator.validate_url(url):
            raise ValidationError('Invalid dashboard URL', details={'dashboard_urls': [f'Invalid URL: {url}']})
        cleaned.append(url)
    return cleaned


def clean_phone(phone) -> str:
    """Strip a phone number, raising ValidationError if it is not blank and not a phone number."""
    phone = (phone or '').strip()
    if phone and not InputValidator.validate_phone(phone):
        raise ValidationError('Invalid phone number', details={'phone_number': ['Enter a valid phone number.']})
    return phone


def parse_uuid(value) -> Optional[uuid.UUID]:
    """Parse an identifier, returning None for anything that is not a UUID."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None
