"""
Exceptions raised by the synchronization engine.

Only ``AuthenticationFailed`` ever leaves the provider client; ``NotFound`` and
``TransportError`` are mapped to absent results inside it.
"""


class TvSyncException(Exception):
    """Base exception for tvsync"""
    def __init__(self, message: str, code: str = "TVSYNC_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {
            'error': True,
            'code': self.code,
            'message': self.message
        }


class AuthenticationFailed(TvSyncException):
    """Credentials rejected, or the provider never issued a token"""
    def __init__(self, message: str = "TvDB authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class TokenRejected(TvSyncException):
    """The provider answered 401 for a request made with the current token"""
    def __init__(self, message: str = "TvDB rejected the session token"):
        super().__init__(message, code="TOKEN_REJECTED")


class NotFound(TvSyncException):
    """The provider has no such resource"""
    def __init__(self, message: str):
        super().__init__(message, code="NOT_FOUND")


class TransportError(TvSyncException):
    """Network failure, unexpected status or malformed payload"""
    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message, code="TRANSPORT_ERROR")


class SeriesNotFound(TvSyncException):
    """Series is neither cached locally nor available from the provider"""
    def __init__(self, series_id: int):
        self.series_id = series_id
        super().__init__(f"TvDB series {series_id} not found", code="SERIES_NOT_FOUND")
