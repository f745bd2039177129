"""
keystore_encoder.py  —  Format dispatch and the end-to-end keystore pipeline.

    raw key  --> key_decoder.decode ----------------------------.
    cert PEM --> chain_parser.parse --.                          |
    ca PEM   --> chain_parser.parse --+--> trust_chain.compose --+--> KeystoreRequest --> encode --> bytes

Each format is a module exposing FORMAT_NAME, PERMITS_EMPTY_PASSWORD, an
encode function and a load function; FORMATS maps the selector to them.
"""

import json

from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from pkistore import chain_parser, jks_store, key_decoder, pkcs12_store, trust_chain
from pkistore.crypto_utils import (
    certificate_fingerprint, describe_certificate, describe_key, subject_common_name,
)
from pkistore.errors import KeystoreEncodeError
from pkistore.keystore_request import KeystoreRequest
from pkistore.paths import CONFIG_PATH

FORMAT_JKS = jks_store.FORMAT_NAME
FORMAT_PKCS12 = pkcs12_store.FORMAT_NAME

# format -> (encode(req, log_fn), load(blob, password), permits empty password)
FORMATS = {
    FORMAT_JKS: (jks_store.encode_jks, jks_store.load_jks, jks_store.PERMITS_EMPTY_PASSWORD),
    FORMAT_PKCS12: (pkcs12_store.encode_pkcs12, pkcs12_store.load_from_pkcs12,
                    pkcs12_store.PERMITS_EMPTY_PASSWORD),
}


def _load_config() -> dict:
    with open(CONFIG_PATH, "r", encoding="utf-8") as fh:
        return json.load(fh)


def default_format() -> str:
    return _load_config()["default_format"]


def _lookup(fmt: str):
    if fmt not in FORMATS:
        known = ", ".join(sorted(FORMATS))
        raise KeystoreEncodeError(str(fmt), f"Unknown keystore format (expected one of: {known})")
    return FORMATS[fmt]


def permits_empty_password(fmt: str) -> bool:
    """Whether *fmt* accepts an empty keystore password."""
    return _lookup(fmt)[2]


def _public_der(public_key) -> bytes:
    return public_key.public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)


# ------------------------------------------------------------------ #
#  Encoding                                                            #
# ------------------------------------------------------------------ #

def encode(req: KeystoreRequest, log_fn=None) -> bytes:
    """
    Encode a request with the encoder selected by ``req.format``.

    Returns:
        The complete keystore bytes.

    Raises:
        KeystoreEncodeError: Unknown format, key not matching the leaf
                             certificate, or any codec failure.
    """
    def _log(msg):
        if log_fn: log_fn(msg)

    encode_fn, _, _ = _lookup(req.format)

    if _public_der(req.key.public_key) != _public_der(req.leaf.public_key()):
        raise KeystoreEncodeError(
            req.format,
            f"Private key does not match the leaf certificate {describe_certificate(req.leaf)}",
        )

    _log(f"Encoding {req.format} keystore for {describe_certificate(req.leaf)}")
    _log(f"Key: {describe_key(req.key.private_key)}")
    blob = encode_fn(req, log_fn)
    _log(f"Keystore written: {len(blob)} bytes.")
    return blob


def build_keystore(fmt: str, password, raw_key: bytes, cert_pem: bytes,
                   ca_pem: bytes = None, log_fn=None) -> bytes:
    """
    Build a keystore from raw inputs.

    Args:
        fmt:       "jks" or "pkcs12"; None selects the configured default.
        password:  Keystore password (str or bytes).
        raw_key:   Private key, DER (PKCS#1 / PKCS#8) or PEM.
        cert_pem:  PEM bundle, leaf first, then its issuers.
        ca_pem:    Optional PEM trust chain, appended after the bundle's
                   own issuers.
        log_fn:    Optional callable receiving progress messages.

    Returns:
        Keystore bytes.

    Raises:
        KeyDecodeError, CertificateParseError, EmptyChainError,
        KeystoreEncodeError.
    """
    if fmt is None:
        fmt = default_format()
    _lookup(fmt)

    key = key_decoder.decode(raw_key, log_fn=log_fn)
    try:
        primary = chain_parser.parse(cert_pem, source="certificate", log_fn=log_fn)
        supplied = chain_parser.parse(ca_pem, source="ca", log_fn=log_fn)
        leaf, chain = trust_chain.compose(primary, supplied, log_fn=log_fn)
        req = KeystoreRequest(password, key, leaf, chain, fmt)
    except Exception:
        key.release()
        raise

    with req:
        return encode(req, log_fn=log_fn)


def encode_jks_keystore(password, raw_key: bytes, cert_pem: bytes, ca_pem: bytes = None,
                        log_fn=None) -> bytes:
    return build_keystore(FORMAT_JKS, password, raw_key, cert_pem, ca_pem, log_fn)


def encode_pkcs12_keystore(password, raw_key: bytes, cert_pem: bytes, ca_pem: bytes = None,
                           log_fn=None) -> bytes:
    return build_keystore(FORMAT_PKCS12, password, raw_key, cert_pem, ca_pem, log_fn)


# ------------------------------------------------------------------ #
#  Decoding / inspection                                               #
# ------------------------------------------------------------------ #

def load_keystore(fmt: str, blob: bytes, password) -> dict:
    """
    Decode a keystore with the format's loader.

    Returns:
        dict with at least: private_key, cert, ca_certs (None when absent).

    Raises:
        ValueError: Wrong password or corrupt data.
    """
    _, load_fn, _ = _lookup(fmt)
    return load_fn(blob, password)


def get_keystore_info(fmt: str, blob: bytes, password) -> dict:
    """Return human-readable info about a keystore."""
    data = load_keystore(fmt, blob, password)
    cert = data["cert"]
    ca_certs = data["ca_certs"] or []
    return {
        "format":          fmt,
        "subject_cn":      subject_common_name(cert) or "Unknown",
        "serial":          hex(cert.serial_number),
        "key":             describe_key(data["private_key"]),
        "not_before":      cert.not_valid_before_utc.isoformat(),
        "not_after":       cert.not_valid_after_utc.isoformat(),
        "fingerprint":     certificate_fingerprint(cert),
        "ca_chain_len":    len(ca_certs),
        "ca_fingerprints": [certificate_fingerprint(c) for c in ca_certs],
    }
