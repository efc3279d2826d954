from fastapi import HTTPException, status


class SubmissionValidationError(HTTPException):
    """Base class for client errors raised before anything is persisted."""

    def __init__(self, detail: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code=status_code, detail=detail)


class MissingFieldError(SubmissionValidationError):
    def __init__(self, fields: list[str] | None = None):
        if fields:
            detail = f"Missing required fields: {', '.join(fields)}"
        else:
            detail = "Missing required fields: latitude, longitude, and photo are required"
        super().__init__(detail)
        self.fields = fields or []


class InvalidCoordinateError(SubmissionValidationError):
    def __init__(self, detail: str = "Invalid GPS coordinates"):
        super().__init__(detail)


class InvalidTimestampError(SubmissionValidationError):
    def __init__(self):
        super().__init__("Invalid timestamp: expected epoch milliseconds")


class UnsupportedMediaTypeError(SubmissionValidationError):
    def __init__(self):
        super().__init__("Only image files (JPEG, JPG, PNG) are allowed")


class FieldTooLongError(SubmissionValidationError):
    def __init__(self, field: str, max_length: int):
        super().__init__(f"{field} must be at most {max_length} characters")
        self.field = field
        self.max_length = max_length


class PayloadTooLargeError(SubmissionValidationError):
    def __init__(self, max_bytes: int):
        super().__init__(
            f"Photo exceeds the {max_bytes // (1024 * 1024)}MB limit",
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
        )
        self.max_bytes = max_bytes


class VerificationNotFoundError(HTTPException):
    def __init__(self, transaction_id: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail="Verification not found")
        self.transaction_id = transaction_id


class PhotoNotFoundError(HTTPException):
    def __init__(self):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")


class DuplicateTransactionIdError(HTTPException):
    def __init__(self, transaction_id: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not allocate a unique transaction ID",
        )
        self.transaction_id = transaction_id


class StoreUnavailableError(HTTPException):
    def __init__(self, detail: str = "Failed to store verification"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class PhotoStorageError(StoreUnavailableError):
    def __init__(self):
        super().__init__("Failed to store photo")
