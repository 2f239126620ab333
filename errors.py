class EditorError(Exception):
    """Base class for errors raised by the editing backend."""
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(EditorError):
    """User input is malformed: unsupported file type, empty content, missing field."""
    status_code = 400


class NotFoundError(EditorError):
    status_code = 404


class AnalysisInProgressError(EditorError):
    """Another analysis run already holds the chapter's lock."""
    status_code = 409


class UpstreamError(EditorError):
    """The language-model API call failed (auth, rate limit, network, bad status)."""
    status_code = 502
