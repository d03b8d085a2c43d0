class ProxyError(Exception):
    """Base class for errors surfaced to proxy callers."""

    status_code: int = 500


class InputError(ProxyError):
    """Caller input was rejected before any upstream call was made."""

    status_code = 400


class UpstreamError(ProxyError):
    """The DataMall API answered with a non-success status.

    The status and raw body are kept for diagnostics. Never retried.
    """

    def __init__(self, status_code: int, raw_body: str = "", reason: str = ""):
        self.status_code = status_code
        self.raw_body = raw_body
        self.reason = reason
        label = f"{status_code} {reason}" if reason else str(status_code)
        super().__init__(f"API Error: {label} - {raw_body}")
