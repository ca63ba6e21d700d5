"""Error taxonomy for feed acquisition."""


class FeedError(Exception):
    """Base class for every per-feed failure."""

    retryable = False


class TransportError(FeedError):
    """Network, DNS or timeout failure while fetching a feed."""

    retryable = True


class HttpStatusError(FeedError):
    """The remote answered with a non-2xx status."""

    def __init__(self, status_code: int, url: str):
        super().__init__(f"HTTP {status_code} from {url}")
        self.status_code = status_code
        self.url = url

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500


class ParseError(FeedError):
    """The fetched document is not a usable RSS or Atom feed."""


class ValidationError(FeedError):
    """A user-supplied feed definition failed validation."""
