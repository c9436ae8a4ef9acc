"""
External Integrations
"""
from .email import EmailService
from .payments import OzowGateway, PaymentRedirect

__all__ = [
    "EmailService",
    "OzowGateway",
    "PaymentRedirect",
]
