# Shared Tools
"""
Tool implementations shared by the portal handlers.

DynamoDB persistence, SES email, Jinja2 email templates, the Caspio
REST client and staff notification fan-out.
"""

from portal.shared.tools.caspio import CaspioClient
from portal.shared.tools.email import send_ses_email, validate_email_address
from portal.shared.tools.templates import RenderedEmail, render_email

__all__ = [
    "CaspioClient",
    "RenderedEmail",
    "render_email",
    "send_ses_email",
    "validate_email_address",
]
