"""Errors raised while pushing generated content to a registry."""


class ImagegenError(Exception):
    """Base class for all imagegen errors."""


class ConfigurationError(ImagegenError):
    """Raised when credentials, endpoints or collaborators are missing."""


class ResolutionError(ImagegenError):
    """Raised when a registry hostname can not be resolved."""


class ChallengeProtocolError(ImagegenError):
    """Raised when the registry does not answer with a usable auth challenge."""


class TokenExchangeError(ImagegenError):
    """Raised when the token endpoint does not hand out an access token."""


class UploadError(ImagegenError):
    """Raised when content could not be transferred or failed verification."""


class SerializationError(ImagegenError):
    """Raised when a manifest or index can not be encoded."""


class AlreadyExistsError(ImagegenError):
    """Raised by a pusher when the registry already has the content."""

    def __init__(self, digest: str):
        super().__init__(f"content {digest} already exists")
        self.digest = digest


class RegistryRejectionError(ImagegenError):
    """Raised when the registry refuses a manifest or index."""

    def __init__(self, message: str, status_code: int, body: bytes = b""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
