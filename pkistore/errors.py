"""
errors.py  —  Typed failures for every stage of keystore assembly.

Each error carries the stage it came from plus enough context (which input,
which PEM block, which key encodings were tried) to diagnose the failure
without re-running the pipeline. All of them are ValueErrors: they describe
bad input, never a transient condition, so callers should not retry.
"""


class KeystoreError(ValueError):
    """Base class for all pkistore failures."""

    stage = "keystore"


class PemDecodeError(KeystoreError):
    stage = "pem"

    def __init__(self, block_index: int, reason: str):
        self.block_index = block_index
        self.reason = reason
        super().__init__(f"PEM block #{block_index}: {reason}")


class KeyDecodeError(KeystoreError):
    """
    Raised when raw key bytes match none of the supported encodings,
    or match one whose algorithm is not supported.

    Attributes:
        attempts: list of (encoding_name, reason) tuples, in the order tried.
    """

    stage = "key"

    def __init__(self, message: str, attempts=None):
        self.attempts = list(attempts or [])
        if self.attempts:
            detail = "; ".join(f"{name}: {reason}" for name, reason in self.attempts)
            message = f"{message} ({detail})"
        super().__init__(message)


class CertificateParseError(KeystoreError):
    stage = "chain"

    def __init__(self, source: str, block_index: int, reason: str):
        self.source = source
        self.block_index = block_index
        self.reason = reason
        super().__init__(
            f"Failed to parse {source} bundle, PEM block #{block_index}: {reason}"
        )


class EmptyChainError(KeystoreError):
    stage = "compose"

    def __init__(self, source: str = "certificate"):
        self.source = source
        super().__init__(
            f"The {source} bundle contains no certificates; a leaf certificate is required."
        )


class KeystoreEncodeError(KeystoreError):
    """
    Wraps any failure raised while building a keystore.

    The original exception (if any) is available as both ``cause`` and
    ``__cause__``.
    """

    stage = "encode"

    def __init__(self, fmt: str, message: str, cause: Exception = None):
        self.format = fmt
        self.cause = cause
        super().__init__(f"[{fmt}] {message}")
