"""Shared error response definitions for OpenAPI documentation."""

from .common import ErrorResponse

# =============================================================================
# Base Error Responses
# =============================================================================

BASE_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request parameters"},
    401: {"model": ErrorResponse, "description": "Identity or API key missing"},
    503: {"model": ErrorResponse, "description": "Ledger store unavailable"},
}

# =============================================================================
# Ledger Error Responses
# =============================================================================

BALANCE_ERROR_RESPONSES = {
    **BASE_ERROR_RESPONSES,
    404: {"model": ErrorResponse, "description": "Account not found"},
}

CONSUME_ERROR_RESPONSES = {
    **BALANCE_ERROR_RESPONSES,
    402: {"model": ErrorResponse, "description": "Insufficient points"},
    403: {"model": ErrorResponse, "description": "Tier not included in plan"},
    409: {"model": ErrorResponse, "description": "Concurrent update, retry the request"},
}

ALLOCATION_ERROR_RESPONSES = {
    **BALANCE_ERROR_RESPONSES,
    403: {"model": ErrorResponse, "description": "Caller may not act on this organization or member"},
    409: {"model": ErrorResponse, "description": "Request already pending or already reviewed"},
    422: {"model": ErrorResponse, "description": "Allocation exceeds the organization budget"},
}
