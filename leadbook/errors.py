"""Error taxonomy for the buyer core.

Services raise these; create_app() registers one handler that turns any
BuyerError into {"success": false, "error": <code>, "message": ..., "details": ...}
with the matching HTTP status. Per-row CSV failures are never raised,
they come back as data in the import report.
"""


class BuyerError(Exception):
    """Base class. `code` is the stable machine-readable kind."""

    code = "internal_error"
    status_code = 500
    default_message = "Something went wrong."

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {"success": False, "error": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class NotFound(BuyerError):
    code = "not_found"
    status_code = 404
    default_message = "Buyer not found."


class Forbidden(BuyerError):
    code = "forbidden"
    status_code = 403
    default_message = "Only the owner of this buyer can change it."


class Conflict(BuyerError):
    code = "conflict"
    status_code = 409
    default_message = (
        "Record has been modified by another user. Please refresh and try again."
    )


class ValidationError(BuyerError, ValueError):
    """One or more field rules failed. `errors` maps field -> list of messages."""

    code = "validation_error"
    status_code = 400
    default_message = "Validation failed."

    def __init__(self, errors, message=None):
        self.errors = errors
        super().__init__(message, details=errors)


class CSVImportError(BuyerError, ValueError):
    code = "csv_error"
    status_code = 400
    default_message = "Failed to parse CSV file. Please check the format."


class HeaderError(CSVImportError):
    code = "csv_header_error"

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(
            f"Missing required headers: {', '.join(self.missing)}",
            details={"missing": self.missing},
        )


class InternalError(BuyerError):
    """Storage fault. The transaction has already been rolled back."""
