class SearchServiceError(Exception):
    """Base error for the search pipeline. Carries the HTTP status to report."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SearchRequestError(SearchServiceError):
    """The incoming request is unusable (e.g. no query text)."""

    status_code = 400


class CatalogError(SearchServiceError):
    """The product catalog could not be read. Fatal for the request."""

    status_code = 500


class SynthesisError(Exception):
    """An LLM answer could not be produced."""
