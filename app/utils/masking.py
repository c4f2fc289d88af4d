import re

FIXED_MASK = "****"
NATIONAL_NUMBER_LENGTH = 10


def mask_phone(phone: str) -> str:
    """Keep the first 3 and last 4 digits of the national number, hide the rest."""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) < 8:
        return FIXED_MASK
    # Drop a leading country code such as the 91 in +91-9876543210
    digits = digits[-NATIONAL_NUMBER_LENGTH:]
    return f"{digits[:3]}{FIXED_MASK}{digits[-4:]}"


def mask_email(email: str) -> str:
    local, sep, domain = (email or "").partition("@")
    if not sep or not local or not domain:
        return FIXED_MASK
    # Short local-parts only reveal their first character
    keep = 2 if len(local) > 2 else 1
    return f"{local[:keep]}***@{domain}"
