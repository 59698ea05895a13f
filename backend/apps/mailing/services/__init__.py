from .inbound import InboundEmailService, category_display, quick_categorize
from .outbound import EmailService, QueuedEmail
from .providers import DjangoEmailProvider, EmailDeliveryError, TransientEmailError, classify_error
from .templates import render_template

__all__ = [
    "DjangoEmailProvider",
    "EmailDeliveryError",
    "EmailService",
    "InboundEmailService",
    "QueuedEmail",
    "TransientEmailError",
    "category_display",
    "classify_error",
    "quick_categorize",
    "render_template",
]
