"""Error kinds raised by the extraction pipeline and the record services.

Every error carries the HTTP status it maps to; the API layer renders them as
``{"success": false, "error": message}``.
"""


class PipelineError(RuntimeError):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedFormat(PipelineError):
    status_code = 400


class FileTooLarge(PipelineError):
    status_code = 413


class ExtractionFailed(PipelineError):
    status_code = 422


class EmptyContent(PipelineError):
    status_code = 422


class ProviderError(PipelineError):
    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None, body: str = ""):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.body = body


class ProviderNotConfigured(ProviderError):
    status_code = 500


class EmptyResponse(PipelineError):
    status_code = 502


class MalformedResponse(PipelineError):
    status_code = 502


class NoEntriesExtracted(PipelineError):
    status_code = 422


class NoRawText(PipelineError):
    status_code = 422


class InvalidClassification(PipelineError):
    status_code = 422


class Unauthorized(PipelineError):
    status_code = 401


class Forbidden(PipelineError):
    status_code = 403


class NotFound(PipelineError):
    status_code = 404


class PersistenceFailed(PipelineError):
    """Per-entry insert failure; reported in the response, never raised to the caller."""

    def __init__(self, message: str, index: int):
        super().__init__(message)
        self.index = index


class StorageError(PipelineError):
    status_code = 500
