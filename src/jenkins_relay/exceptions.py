class RelayError(Exception):
    """Base class for all errors raised by the Jenkins relay."""

    pass


class NotFoundInCatalog(RelayError, LookupError):
    """Raised when no build definition matches a repo, context or job."""

    pass


class UpstreamError(RelayError):
    """Raised when a GitHub or Jenkins call fails or returns something unparsable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SchedulingError(RelayError):
    """Raised when Jenkins does not accept a build request."""

    def __init__(self, status_code: int, url: str):
        super().__init__(
            f"jenkins post to {url} responded with status {status_code}"
        )
        self.status_code = status_code
        self.url = url


class CancellationError(RelayError):
    """Raised when Jenkins refuses to stop a build instance."""

    def __init__(self, status_code: int, url: str):
        super().__init__(
            f"jenkins post to {url} responded with status {status_code}"
        )
        self.status_code = status_code
        self.url = url
