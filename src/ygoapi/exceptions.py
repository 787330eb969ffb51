"""Custom exceptions for the YGOPRODeck client."""


class YgoError(Exception):
    """Base exception for ygoapi errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class YgoApiError(YgoError):
    """Raised when a request cannot produce a trusted response.

    Carries the HTTP-like status code so callers can tell a "not found"
    (400 class) from a server or network failure (500 class).
    """

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class ValidationError(YgoApiError):
    """Raised when request parameters are malformed."""

    def __init__(self, message: str):
        super().__init__(400, message)


class ClientError(YgoApiError):
    """Raised when the API rejects a request with a 4xx status."""

    pass


class ServerError(YgoApiError):
    """Raised when the API keeps answering with a 5xx status."""

    pass


class NetworkError(YgoApiError):
    """Raised when no host could be reached after all retries."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(status_code, message)


class QueueError(YgoError):
    """Base exception for throttled queue conditions."""

    pass


class TaskCancelledError(QueueError):
    """Raised when a queued task is withdrawn before it runs."""

    pass


class CancelledBeforeEnqueueError(TaskCancelledError):
    """Raised when the cancellation token was already cancelled at enqueue time."""

    def __init__(self) -> None:
        super().__init__("Cancelled before enqueueing")


class CancelledWhileQueuedError(TaskCancelledError):
    """Raised when the cancellation token fires while the task waits in the queue."""

    def __init__(self) -> None:
        super().__init__("Cancelled while enqueued")


class QueueTimeoutError(QueueError):
    """Raised when waiting for the queue to go idle times out."""

    def __init__(self, timeout: float):
        super().__init__(f"Queue still processing after {timeout}s timeout")
        self.timeout = timeout
