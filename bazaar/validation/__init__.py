"""
Validation — field validators and content safety.

    from bazaar import validation as V

    result = V.validate_product_name(body.name)
    if not result.valid:
        return Error(result.to_error("name"))
"""

from bazaar.validation._types import (
    BlockedType,
    ValidationResult,
    VALID,
    FieldError,
    ValidationReport,
)
from bazaar.validation._safety import (
    normalize_for_safety,
    validate_content_safety,
)
from bazaar.validation._fields import (
    GHANA_PHONE_PREFIXES,
    validate_phone,
    normalize_phone,
    validate_email,
    validate_name,
    validate_product_name,
    validate_business_name,
    normalize_address,
    validate_address,
    validate_city,
    validate_region,
    validate_text_field,
    validate_fields,
    collect_validation_errors,
)

__all__ = (
    "BlockedType",
    "ValidationResult",
    "VALID",
    "FieldError",
    "ValidationReport",
    "normalize_for_safety",
    "validate_content_safety",
    "GHANA_PHONE_PREFIXES",
    "validate_phone",
    "normalize_phone",
    "validate_email",
    "validate_name",
    "validate_product_name",
    "validate_business_name",
    "normalize_address",
    "validate_address",
    "validate_city",
    "validate_region",
    "validate_text_field",
    "validate_fields",
    "collect_validation_errors",
)
