"""Field-level input checks; each returns a mapping of field name to message."""

from __future__ import annotations

from email_validator import EmailNotValidError, validate_email

from ..security.passwords import MAX_PASSWORD_BYTES

VERIFICATION_CODE_LENGTH = 6


def normalize_email(email: str) -> str | None:
    """Return the lower-cased canonical address, or ``None`` when it is not RFC-valid."""
    if not isinstance(email, str) or not email.strip():
        return None
    try:
        validated = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        return None
    return validated.normalized.lower()


def password_errors(password: str, min_length: int) -> dict[str, str]:
    if not isinstance(password, str) or len(password) < min_length:
        return {"password": f"Password must be at least {min_length} characters"}
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return {"password": f"Password must not exceed {MAX_PASSWORD_BYTES} bytes"}
    return {}


def verification_code_errors(code: str) -> dict[str, str]:
    # str.isdigit() accepts non-ASCII digits such as "١٢٣"
    if (
        not isinstance(code, str)
        or len(code) != VERIFICATION_CODE_LENGTH
        or not code.isascii()
        or not code.isdigit()
    ):
        return {"code": f"Verification code must be {VERIFICATION_CODE_LENGTH} digits"}
    return {}


def _length_error(value: str | None, label: str, max_length: int) -> str | None:
    if not value or not 1 <= len(value) <= max_length:
        return f"{label} must be between 1 and {max_length} characters"
    return None


def personal_data_errors(first_name: str, last_name: str, tax_id: str) -> dict[str, str]:
    errors: dict[str, str] = {}
    for field, value, label, limit in (
        ("first_name", first_name, "First name", 50),
        ("last_name", last_name, "Last name", 50),
        ("tax_id", tax_id, "Tax ID", 20),
    ):
        message = _length_error(value, label, limit)
        if message:
            errors[field] = message
    return errors


def company_data_errors(
    company_name: str | None,
    company_tax_id: str | None,
    company_address: str | None,
    is_self_employed: bool,
) -> dict[str, str]:
    if is_self_employed:
        return {}
    errors: dict[str, str] = {}
    for field, value, label, limit in (
        ("company_name", company_name, "Company name", 100),
        ("company_tax_id", company_tax_id, "Company tax ID", 20),
        ("company_address", company_address, "Company address", 200),
    ):
        message = _length_error(value, label, limit)
        if message:
            errors[field] = message
    return errors
