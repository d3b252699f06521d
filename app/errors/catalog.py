"""
app/errors/catalog.py

Versioned error catalog.

Codes follow ``E-{CATEGORY}-{NNN}`` with categories AUTH, VALID, LIMIT, EXT,
DATA and SYS. Every code maps to exactly one HTTP status and canonical
message.
"""

from __future__ import annotations

from dataclasses import dataclass

CATALOG_VERSION = "1.0.0"

ERROR_CATEGORIES: tuple[str, ...] = ("AUTH", "VALID", "LIMIT", "EXT", "DATA", "SYS")


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    http_status: int
    message: str

    @property
    def category(self) -> str:
        return self.code.split("-")[1]


def _define(code: str, http_status: int, message: str) -> tuple[str, ErrorDefinition]:
    return code, ErrorDefinition(code=code, http_status=http_status, message=message)


ERROR_CATALOG: dict[str, ErrorDefinition] = dict(
    [
        # Authentication and authorization
        _define("E-AUTH-001", 401, "Authentication is required"),
        _define("E-AUTH-002", 401, "Session has expired"),
        _define("E-AUTH-003", 401, "Authentication token is invalid"),
        _define("E-AUTH-004", 401, "Email address or password is incorrect"),
        _define("E-AUTH-005", 401, "Account is locked"),
        _define("E-AUTH-006", 403, "You do not have permission to perform this operation"),
        _define("E-AUTH-007", 403, "You do not have access to this resource"),
        _define("E-AUTH-008", 400, "Invitation token is invalid"),
        _define("E-AUTH-009", 400, "This email address is already registered"),
        _define("E-AUTH-010", 400, "Password reset token is invalid"),
        # Validation
        _define("E-VALID-001", 422, "Input is invalid"),
        _define("E-VALID-002", 422, "A required field is missing"),
        _define("E-VALID-003", 422, "Email address format is invalid"),
        _define("E-VALID-004", 422, "Password must be at least 8 characters"),
        _define("E-VALID-005", 422, "URL format is invalid"),
        _define("E-VALID-006", 422, "File size exceeds the limit"),
        _define("E-VALID-007", 422, "File format or import type is not supported"),
        _define("E-VALID-008", 422, "CSV format is invalid"),
        _define("E-VALID-009", 422, "Too many queries selected"),
        _define("E-VALID-010", 422, "Date format is invalid"),
        # Usage limits
        _define("E-LIMIT-001", 403, "Monthly usage limit reached"),
        _define("E-LIMIT-002", 403, "Saved item limit reached"),
        _define("E-LIMIT-003", 403, "Team member limit reached"),
        _define("E-LIMIT-004", 429, "Too many requests"),
        _define("E-LIMIT-005", 403, "This feature is not available on the current plan"),
        _define("E-LIMIT-006", 403, "Trial period has ended"),
        # External services
        _define("E-EXT-001", 503, "AI classification service is temporarily unavailable"),
        _define("E-EXT-002", 503, "AI classification timed out"),
        _define("E-EXT-003", 503, "AI classification capacity limit reached"),
        _define("E-EXT-004", 503, "Payment service is temporarily unavailable"),
        _define("E-EXT-005", 400, "Payment processing failed"),
        _define("E-EXT-006", 400, "Card details are invalid"),
        _define("E-EXT-007", 400, "Card has expired"),
        _define("E-EXT-008", 503, "Email delivery failed"),
        _define("E-EXT-009", 503, "Target URL could not be reached"),
        _define("E-EXT-010", 503, "Target URL page was not found"),
        # Data
        _define("E-DATA-001", 404, "Requested data was not found"),
        _define("E-DATA-002", 409, "Data was updated by another user"),
        _define("E-DATA-003", 409, "This data already exists"),
        _define("E-DATA-004", 400, "This data cannot be deleted"),
        _define("E-DATA-005", 400, "Import data contains duplicates"),
        _define("E-DATA-006", 500, "Failed to save data"),
        _define("E-DATA-007", 500, "Failed to load data"),
        _define("E-DATA-010", 404, "Import job was not found"),
        _define("E-DATA-011", 400, "This job cannot be cancelled"),
        _define("E-DATA-012", 400, "This job cannot be retried"),
        _define("E-DATA-013", 400, "Failed to parse the CSV file"),
        _define("E-DATA-014", 400, "Keyword column was not found"),
        _define("E-DATA-015", 500, "An error occurred during import processing"),
        _define("E-DATA-016", 500, "AI classification processing failed"),
        _define("E-DATA-017", 400, "Failed to read the uploaded file"),
        # System
        _define("E-SYS-001", 500, "A system error occurred"),
        _define("E-SYS-002", 503, "Service is temporarily unavailable"),
        _define("E-SYS-003", 500, "A configuration error occurred"),
        _define("E-SYS-004", 500, "An internal communication error occurred"),
        _define("E-SYS-005", 504, "Request timed out"),
    ]
)

_DEFAULT_CODE_BY_STATUS: dict[int, str] = {
    400: "E-VALID-001",
    401: "E-AUTH-001",
    403: "E-AUTH-006",
    404: "E-DATA-001",
    409: "E-DATA-003",
    422: "E-VALID-001",
    429: "E-LIMIT-004",
    503: "E-SYS-002",
    504: "E-SYS-005",
}


def get_error_definition(code: str) -> ErrorDefinition:
    """
    Return the catalog entry for ``code``; raises KeyError for unknown codes.
    """

    return ERROR_CATALOG[code]


def get_default_error_code(http_status: int) -> str:
    return _DEFAULT_CODE_BY_STATUS.get(http_status, "E-SYS-001")
