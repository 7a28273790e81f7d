"""bk-image SDK public surface."""

from bk_image_sdk.backends import (
    ALLOWED_BACKENDS,
    ImageUpdateBackend,
    SessionScrapeBackend,
    TokenApiBackend,
    build_backend,
)
from bk_image_sdk.classify import (
    ResponseClass,
    classify_update_response,
    collate_cookies,
    extract_authenticity_token,
    validate_structured_response,
)
from bk_image_sdk.errors import (
    ConfigurationError,
    ImageUpdateError,
    MutationError,
    OrganizationNotFoundError,
    SessionAcquisitionError,
    TransportError,
    UpdateRejectedError,
)
from bk_image_sdk.models import BearerCredential, SessionCredential, UpdateOutcome, UpdateRequest

__all__ = [
    "ImageUpdateError",
    "ConfigurationError",
    "TransportError",
    "SessionAcquisitionError",
    "OrganizationNotFoundError",
    "UpdateRejectedError",
    "MutationError",
    "UpdateRequest",
    "UpdateOutcome",
    "SessionCredential",
    "BearerCredential",
    "ImageUpdateBackend",
    "SessionScrapeBackend",
    "TokenApiBackend",
    "ALLOWED_BACKENDS",
    "build_backend",
    "ResponseClass",
    "classify_update_response",
    "collate_cookies",
    "extract_authenticity_token",
    "validate_structured_response",
]
