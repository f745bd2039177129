"""
pkcs12_store.py
===============
PKCS#12 keystore encoder (format B).

PKCS#12 is the industry standard format for bundling:
  - Private key
  - Certificate
  - CA certificate chain
...into a single password-protected file (.p12 or .pfx).

Layout produced here:
  - one shrouded key bag + certificate bag for the identity, sharing a
    localKeyId and carrying the configured friendly name
  - one certificate bag per CA certificate, in chain order, ONLY when the
    chain is non-empty
  - an HMAC over the whole store, keyed from the password

This module wraps the cryptography library's PKCS#12 support.
"""

import json

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import PrivateFormat, pkcs12

from pkistore.errors import KeystoreEncodeError
from pkistore.paths import CONFIG_PATH

FORMAT_NAME = "pkcs12"

# Without a password the store would carry neither encryption nor a MAC.
PERMITS_EMPTY_PASSWORD = False

# profile name -> (bag encryption, MAC hash)
ENCRYPTION_PROFILES = {
    "pbes2-aes256": (pkcs12.PBES.PBESv2SHA256AndAES256CBC, hashes.SHA256),
    "legacy": (pkcs12.PBES.PBESv1SHA1And3KeyTripleDESCBC, hashes.SHA1),
}


def _load_config() -> dict:
    with open(CONFIG_PATH, "r", encoding="utf-8") as fh:
        return json.load(fh)["pkcs12"]


def _encryption_for(password: bytes, cfg: dict):
    profile = cfg["encryption"]
    if profile not in ENCRYPTION_PROFILES:
        raise KeystoreEncodeError(FORMAT_NAME, f"Unknown PKCS#12 encryption profile '{profile}'")
    key_cert_algorithm, mac_hash = ENCRYPTION_PROFILES[profile]
    return (
        PrivateFormat.PKCS12.encryption_builder()
        .kdf_rounds(int(cfg["kdf_rounds"]))
        .key_cert_algorithm(key_cert_algorithm)
        .hmac_hash(mac_hash())
        .build(password)
    )


def encode_pkcs12(req, log_fn=None) -> bytes:
    """
    Serialize a KeystoreRequest as a PKCS#12 bundle.

    Args:
        req:     KeystoreRequest (key, leaf, chain, password).
        log_fn:  Optional callable receiving progress messages.

    Returns:
        PKCS#12 bytes (can be saved as .p12 or .pfx file).

    Raises:
        KeystoreEncodeError: Empty password, unknown encryption profile, or
                             any failure inside the PKCS#12 serializer.
    """
    def _log(msg):
        if log_fn: log_fn(msg)

    password = req.password
    if not password and not PERMITS_EMPTY_PASSWORD:
        raise KeystoreEncodeError(
            FORMAT_NAME, "PKCS#12 keystores require a non-empty password"
        )

    cfg = _load_config()
    cas = list(req.chain) or None
    _log(
        f"Writing PKCS#12 store ({cfg['encryption']}, "
        f"{len(req.chain)} CA certificate(s)) ..."
    )
    try:
        p12_bytes = pkcs12.serialize_key_and_certificates(
            name=cfg["friendly_name"].encode("utf-8"),
            key=req.key.private_key,
            cert=req.leaf,
            cas=cas,
            encryption_algorithm=_encryption_for(password, cfg),
        )
    except (ValueError, TypeError) as exc:
        raise KeystoreEncodeError(FORMAT_NAME, f"PKCS#12 serialization failed: {exc}", exc) from exc
    return p12_bytes


def load_from_pkcs12(p12_bytes: bytes, password) -> dict:
    """
    Load credentials from a PKCS#12 bundle.

    Args:
        p12_bytes:  Raw bytes of the .p12 file.
        password:   Password used when creating the bundle (str or bytes).

    Returns:
        dict with keys: private_key, cert, ca_certs, friendly_name.
        ca_certs is None when the store holds no CA certificates.

    Raises:
        ValueError: If password is wrong or data is corrupt.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    try:
        p12 = pkcs12.load_pkcs12(p12_bytes, password)
    except ValueError as exc:
        raise ValueError(f"Failed to load PKCS#12: {exc}") from exc

    identity = p12.cert
    ca_certs = [bag.certificate for bag in p12.additional_certs]
    return {
        "private_key":   p12.key,
        "cert":          identity.certificate if identity is not None else None,
        "ca_certs":      ca_certs or None,
        "friendly_name": identity.friendly_name if identity is not None else None,
    }
