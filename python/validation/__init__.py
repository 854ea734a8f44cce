"""
Validation Module

Field-level validators and form validation for companies, clients and vendors.
"""

from .fields import (
    is_valid_email,
    is_valid_url,
    is_valid_phone,
    is_valid_vat_number,
    normalize_website_url,
    parse_payment_terms,
    validate_logo,
    is_image_logo,
    generate_text_logo,
)
from .forms import (
    ValidationResult,
    validate_company_form,
    validate_client_form,
    validate_vendor_form,
)

__all__ = [
    # Fields
    "is_valid_email",
    "is_valid_url",
    "is_valid_phone",
    "is_valid_vat_number",
    "normalize_website_url",
    "parse_payment_terms",
    "validate_logo",
    "is_image_logo",
    "generate_text_logo",
    # Forms
    "ValidationResult",
    "validate_company_form",
    "validate_client_form",
    "validate_vendor_form",
]
