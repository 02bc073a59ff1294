"""
Public contact form submissions.
"""
import logging
from typing import List, Optional

from apps.core.permissions import PLATFORM_ADMIN, require_permission
from apps.core.validators import clean_email, require_fields
from apps.tenants.models import ContactSubmission

logger = logging.getLogger(__name__)


class ContactService:
    """Write side is public; reading submissions needs a platform operator."""

    @classmethod
    def submit(cls, name: str, email: str, company_name: str,
               message: Optional[str] = None) -> ContactSubmission:
        require_fields({'name': name, 'email': email, 'company_name': company_name},
                       ('name', 'email', 'company_name'))

        submission = ContactSubmission.objects.create(
            name=name.strip(),
            email=clean_email(email),
            company_name=company_name.strip(),
            message=(message or '').strip(),
        )
        logger.info("Contact form submitted", extra={'submission_id': str(submission.id)})
        return submission

    @classmethod
    def list_submissions(cls, actor) -> List[ContactSubmission]:
        require_permission(actor, PLATFORM_ADMIN)
        return list(ContactSubmission.objects.order_by('-created_at'))
