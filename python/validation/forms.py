"""
Form Validation Module

Validates company, client and vendor payloads before they reach the database.
Payloads are plain dicts keyed by API field name. With partial=True only the
fields present in the payload are checked, which is what updates need.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from .fields import (
    is_valid_email,
    is_valid_phone,
    is_valid_url,
    is_valid_vat_number,
    parse_payment_terms,
)

logger = logging.getLogger(__name__)

COMPANY_STATUSES = ("Active", "Passive")
CLIENT_TYPES = ("LEGAL_ENTITY", "INDIVIDUAL")
CLIENT_STATUSES = ("ACTIVE", "INACTIVE", "LEAD", "ARCHIVED")

MIN_CLIENT_AGE = 16
MAX_CLIENT_AGE = 120


@dataclass
class ValidationResult:
    """Outcome of validating one form."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    field_errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, field_name: str, message: str) -> None:
        self.errors.append(message)
        self.field_errors.setdefault(field_name, []).append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> dict:
        return {
            "errors": self.errors,
            "warnings": self.warnings,
            "field_errors": self.field_errors,
        }


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return str(value).strip() if value is not None else ""


def _to_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _check(data: dict[str, Any], key: str, partial: bool) -> bool:
    """Whether a field should be validated in this pass."""
    return not partial or key in data


def validate_company_form(data: dict[str, Any], partial: bool = False) -> ValidationResult:
    """Validate company onboarding/edit data.

    Email format and status are hard errors. Website, phone and VAT format
    problems are only warnings, matching how the onboarding form treats them.

    Args:
        data: Company payload
        partial: Validate only the provided fields

    Returns:
        ValidationResult
    """
    result = ValidationResult()

    required = {
        "legal_name": "Legal Name is required",
        "trading_name": "Trading Name is required",
        "registration_no": "Registration Number is required",
        "country_of_registration": "Country Of Registration is required",
        "base_currency": "Base Currency is required",
        "email": "Email is required",
    }
    for key, message in required.items():
        if _check(data, key, partial) and not _text(data, key):
            result.add_error(key, message)

    if _check(data, "registration_date", partial):
        registration_date = _to_date(data.get("registration_date"))
        if registration_date is None:
            result.add_error("registration_date", "Registration Date is required")
        elif registration_date > date.today():
            result.add_error("registration_date", "Registration Date cannot be in the future")

    email = _text(data, "email")
    if email and not is_valid_email(email):
        result.add_error("email", "Invalid email format")

    website = _text(data, "website")
    if website and not is_valid_url(website):
        result.add_warning("Website URL format may be invalid")

    phone = _text(data, "phone")
    if phone and not is_valid_phone(phone):
        result.add_warning("Phone number format may be invalid")

    vat_number = _text(data, "vat_number")
    if vat_number and not is_valid_vat_number(vat_number):
        result.add_warning("VAT number format may be invalid")

    if _check(data, "status", partial) and data.get("status", "Active") not in COMPANY_STATUSES:
        result.add_error("status", "Invalid status. Must be Active or Passive")

    return result


def validate_client_form(data: dict[str, Any], partial: bool = False) -> ValidationResult:
    """Validate client data, including client-type specific requirements.

    Args:
        data: Client payload
        partial: Validate only the provided fields

    Returns:
        ValidationResult
    """
    result = ValidationResult()

    if _check(data, "name", partial) and not _text(data, "name"):
        result.add_error("name", "Client name is required")

    if _check(data, "email", partial):
        email = _text(data, "email")
        if not email:
            result.add_error("email", "Email is required")
        elif not is_valid_email(email):
            result.add_error("email", "Please enter a valid email address")

    client_type = data.get("client_type")
    if client_type is not None and client_type not in CLIENT_TYPES:
        result.add_error("client_type", f"Invalid client type. Must be one of: {', '.join(CLIENT_TYPES)}")

    if client_type == "LEGAL_ENTITY":
        if not _text(data, "contact_person_name"):
            result.add_error("contact_person_name", "Contact person name is required for legal entities")
        if not _text(data, "registration_number"):
            result.add_error("registration_number", "Registration number is required for legal entities")
    elif client_type == "INDIVIDUAL":
        if not _text(data, "passport_number"):
            result.add_error("passport_number", "Passport number is required for individuals")

    status = data.get("status")
    if status is not None and status not in CLIENT_STATUSES:
        result.add_error("status", f"Invalid status. Must be one of: {', '.join(CLIENT_STATUSES)}")

    phone = _text(data, "phone")
    if phone and not is_valid_phone(phone):
        result.add_error("phone", "Please enter a valid phone number")

    website = _text(data, "website")
    if website and not is_valid_url(website):
        result.add_error("website", "Please enter a valid website URL")

    vat_number = _text(data, "vat_number")
    if vat_number and len(vat_number) < 2:
        result.add_error("vat_number", "Tax ID/VAT number must be at least 2 characters")

    if data.get("date_of_birth"):
        birth_date = _to_date(data["date_of_birth"])
        if birth_date is None:
            result.add_error("date_of_birth", "Please enter a valid date of birth")
        else:
            age = date.today().year - birth_date.year
            if age < MIN_CLIENT_AGE or age > MAX_CLIENT_AGE:
                result.add_error(
                    "date_of_birth",
                    f"Date of birth must represent an age between {MIN_CLIENT_AGE} and {MAX_CLIENT_AGE} years",
                )

    return result


def validate_vendor_form(data: dict[str, Any], partial: bool = False) -> ValidationResult:
    """Validate vendor data.

    Args:
        data: Vendor payload
        partial: Validate only the provided fields

    Returns:
        ValidationResult
    """
    result = ValidationResult()

    if _check(data, "company_name", partial) and not _text(data, "company_name"):
        result.add_error("company_name", "Company name is required")

    if _check(data, "contact_email", partial):
        email = _text(data, "contact_email")
        if not email:
            result.add_error("contact_email", "Contact email is required")
        elif not is_valid_email(email):
            result.add_error("contact_email", "Please enter a valid email address")

    phone = _text(data, "phone")
    if phone and not is_valid_phone(phone):
        result.add_error("phone", "Please enter a valid phone number")

    website = _text(data, "website")
    if website and not is_valid_url(website):
        result.add_error("website", "Please enter a valid website URL")

    if _check(data, "payment_terms", partial):
        try:
            parse_payment_terms(data.get("payment_terms"), data.get("custom_payment_terms"))
        except ValueError as e:
            result.add_error("payment_terms", str(e))

    return result
