class ImgfitError(Exception):
    """Base exception for all imgfit errors."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, **kwargs):
        self.message = message
        self.details = kwargs
        super().__init__(message)


class BadRequestError(ImgfitError):
    """Missing or malformed request parameters."""

    status_code = 400
    error_code = "bad_request"


class InputError(BadRequestError):
    """Size specification could not be turned into target dimensions."""

    error_code = "invalid_size"


class FileTooLargeError(ImgfitError):
    """Source image exceeds maximum allowed size."""

    status_code = 413
    error_code = "file_too_large"


class UnsupportedFormatError(ImgfitError):
    """File format not recognized via magic bytes."""

    status_code = 415
    error_code = "unsupported_format"


class URLFetchError(ImgfitError):
    """Failed to read the source image from its URL."""

    status_code = 422
    error_code = "url_fetch_failed"


class ProcessingError(ImgfitError):
    """Codec failed to identify or transform an image."""

    status_code = 500
    error_code = "processing_failed"


class IdentifyError(ProcessingError):
    """Codec could not read image metadata."""

    error_code = "identify_failed"


class TransformError(ProcessingError):
    """Codec could not produce the transformed image."""

    error_code = "transform_failed"


class ToolExecutionError(ProcessingError):
    """External tool exited with an unexpected code."""

    error_code = "tool_failed"


class ToolTimeoutError(ProcessingError):
    """External tool exceeded the configured timeout."""

    error_code = "tool_timeout"
