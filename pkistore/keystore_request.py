"""
keystore_request.py  —  The per-call input to a keystore encoder.

A KeystoreRequest bundles the password, decoded key, leaf certificate and
composed CA chain for exactly one encode call. It is read-only once built
and is meant to be used as a context manager:

    with KeystoreRequest(password, key, leaf, chain, "pkcs12") as req:
        blob = keystore_encoder.encode(req)

On exit (normal or exceptional) the password buffer is overwritten with
zeros and the references to the key objects are dropped.
"""


class KeystoreRequest:

    __slots__ = ("_password", "_key", "_leaf", "_chain", "_format", "_released")

    def __init__(self, password, key, leaf, chain, fmt: str):
        if isinstance(password, str):
            password = password.encode("utf-8")
        if not isinstance(password, (bytes, bytearray)):
            raise TypeError(f"password must be str or bytes, got {type(password).__name__}")

        self._password = bytearray(password)
        self._key = key
        self._leaf = leaf
        self._chain = tuple(chain or ())
        self._format = fmt
        self._released = False

    def _check(self):
        if self._released:
            raise RuntimeError("KeystoreRequest has been released")

    @property
    def password(self) -> bytes:
        self._check()
        return bytes(self._password)

    @property
    def password_text(self) -> str:
        """The password as text, for codecs that take a str."""
        self._check()
        return self._password.decode("utf-8")

    @property
    def key(self):
        self._check()
        return self._key

    @property
    def leaf(self):
        self._check()
        return self._leaf

    @property
    def chain(self) -> tuple:
        self._check()
        return self._chain

    @property
    def format(self) -> str:
        return self._format

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Zero the password buffer and drop key / certificate references."""
        if self._released:
            return
        for i in range(len(self._password)):
            self._password[i] = 0
        if self._key is not None:
            self._key.release()
        self._key = None
        self._leaf = None
        self._chain = ()
        self._released = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def __repr__(self):
        state = "released" if self._released else f"chain={len(self._chain)}"
        return f"KeystoreRequest(format={self._format!r}, {state})"
