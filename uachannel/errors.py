"""
Exception hierarchy shared by the uachannel modules.

Authentication failures are deliberately absent: verifying a chunk returns a
boolean that the caller must check.
"""


class UAChannelError(Exception):
    """Base class for all uachannel errors."""
    pass


class ConfigurationError(UAChannelError):
    """
    Raised for unsupported algorithms or hash variants, inconsistent declared
    lengths and invalid PRF requests. Never retried.
    """
    pass


class ProtocolViolationError(UAChannelError):
    """
    Raised when a peer sends a buffer that cannot be a valid chunk, e.g. a
    ciphertext that is not block aligned or a chunk shorter than its signature.
    """
    pass
