"""Database models and engine configuration."""

from .base import Base, check_connection, dispose_db, get_session, init_db
from .models import BillingLedger, RemittanceInvoice, Vendor, VendorCase

__all__ = [
    "Base",
    "init_db",
    "get_session",
    "check_connection",
    "dispose_db",
    "RemittanceInvoice",
    "VendorCase",
    "Vendor",
    "BillingLedger",
]
