"""
jks_store.py
============
Java KeyStore encoder (format A).

Layout produced here:
  - "certificate": PrivateKeyEntry holding the PKCS#8 key, protected with
    the store password, and the certificate path [leaf, *chain]
  - "ca": TrustedCertEntry holding the most root-ward certificate of the
    chain, ONLY when the chain is non-empty
  - the keyed SHA-1 digest over the whole store that JKS uses for integrity

A trusted-certificate entry can hold a single certificate, so the ordered
chain travels in the key entry's certificate path, where keytool and the
JSSE key managers read it from.

Encoding and decoding go through pyjks.
"""

import json

import jks
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import Encoding
from jks.util import KeystoreException
from pyasn1.error import PyAsn1Error

from pkistore.errors import KeystoreEncodeError
from pkistore.paths import CONFIG_PATH

FORMAT_NAME = "jks"

# The JKS integrity digest is defined for an empty password too.
PERMITS_EMPTY_PASSWORD = True


def _load_config() -> dict:
    with open(CONFIG_PATH, "r", encoding="utf-8") as fh:
        return json.load(fh)["jks"]


def _entry_timestamp(leaf) -> int:
    # Pinned to the leaf's notBefore (ms) so identical inputs give identical entries
    return int(leaf.not_valid_before_utc.timestamp()) * 1000


def encode_jks(req, log_fn=None) -> bytes:
    """
    Serialize a KeystoreRequest as a JKS keystore.

    The "certificate" key entry carries the path [leaf, *chain]. A "ca"
    trusted entry is written whenever the chain is non-empty and holds its
    last (most root-ward) certificate, whether that came from the bundle or
    the supplied CA PEM. Older layouts wrote "ca" only for a supplied CA PEM
    and stored its first certificate.

    Args:
        req:     KeystoreRequest (key, leaf, chain, password).
        log_fn:  Optional callable receiving progress messages.

    Returns:
        JKS bytes (can be saved as .jks file).

    Raises:
        KeystoreEncodeError: If pyjks rejects the key or certificates.
    """
    def _log(msg):
        if log_fn: log_fn(msg)

    cfg = _load_config()
    leaf_der = req.leaf.public_bytes(Encoding.DER)
    chain_der = [cert.public_bytes(Encoding.DER) for cert in req.chain]
    timestamp = _entry_timestamp(req.leaf)

    _log(f"Writing JKS store ({len(chain_der)} CA certificate(s)) ...")
    try:
        identity = jks.PrivateKeyEntry.new(
            cfg["identity_alias"], [leaf_der] + chain_der, req.key.pkcs8_der(), "pkcs8"
        )
        identity.timestamp = timestamp
        entries = [identity]

        if chain_der:
            ca_entry = jks.TrustedCertEntry.new(cfg["ca_alias"], chain_der[-1])
            ca_entry.timestamp = timestamp
            entries.append(ca_entry)

        keystore = jks.KeyStore.new("jks", entries)
        jks_bytes = keystore.saves(req.password_text)
    except (KeystoreException, PyAsn1Error, ValueError, TypeError) as exc:
        raise KeystoreEncodeError(FORMAT_NAME, f"JKS serialization failed: {exc}", exc) from exc
    return jks_bytes


def load_jks(jks_bytes: bytes, password) -> dict:
    """
    Load credentials from a JKS keystore.

    Args:
        jks_bytes:  Raw bytes of the .jks file.
        password:   Store password (str or bytes).

    Returns:
        dict with keys: private_key, cert, ca_certs, trusted.
        ca_certs is the key entry's path after the leaf (None when the path
        is just the leaf); trusted is the "ca" entry's certificate or None.

    Raises:
        ValueError: If password is wrong, data is corrupt or the identity
                    entry is missing.
    """
    cfg = _load_config()
    if isinstance(password, (bytes, bytearray)):
        password = bytes(password).decode("utf-8")
    try:
        keystore = jks.KeyStore.loads(jks_bytes, password)
        identity = keystore.private_keys.get(cfg["identity_alias"])
        if identity is None:
            raise ValueError(f"no '{cfg['identity_alias']}' key entry")
        if not identity.is_decrypted():
            identity.decrypt(password)
    except KeystoreException as exc:
        raise ValueError(f"Failed to load JKS: {exc}") from exc

    private_key = serialization.load_der_private_key(identity.pkey_pkcs8, password=None)
    path = [x509.load_der_x509_certificate(der) for _, der in identity.cert_chain]

    trusted = keystore.certs.get(cfg["ca_alias"])
    return {
        "private_key": private_key,
        "cert":        path[0] if path else None,
        "ca_certs":    path[1:] or None,
        "trusted":     x509.load_der_x509_certificate(trusted.cert) if trusted is not None else None,
    }
