class EnvelopeError(Exception):
    """Base class for every failure raised while sealing or opening an envelope."""
    pass


class FormatError(EnvelopeError):
    """The envelope text is not four lowercase hex fields with a 12-byte iv and 16-byte tag."""
    pass


class AuthenticationError(EnvelopeError):
    """The auth tag did not verify: wrong secret, or the envelope was altered."""

    def __init__(self, message: str = "authentication failed"):
        super().__init__(message)


class EncodingError(EnvelopeError):
    """Decrypted bytes are not UTF-8 JSON."""
    pass


class PrimitiveFailure(EnvelopeError):
    """The KDF or cipher implementation itself failed. Never retried."""
    pass
