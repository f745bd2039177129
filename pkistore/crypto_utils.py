"""
crypto_utils.py
===============
Small key and certificate helpers shared by the pkistore modules.

Provides:
  - RSA key-pair generation
  - Unencrypted DER export of a private key as PKCS#1 or PKCS#8
  - SHA-256 hashing / certificate fingerprints
  - Human-readable key and certificate descriptions for log output

All cryptographic work is done with the `cryptography` library (pyca).
"""

import hashlib

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PrivateFormat,
    NoEncryption,
)
from cryptography.x509.oid import NameOID

# ------------------------------------------------------------------ #
#  RSA Key Generation                                                  #
# ------------------------------------------------------------------ #

def generate_rsa_keypair(key_bits: int = 2048):
    """
    Generate an RSA key pair.

    Args:
        key_bits: Key size in bits (default 2048).

    Returns:
        (private_key, public_key) as cryptography objects.
    """
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_bits,
    )
    public_key = private_key.public_key()
    return private_key, public_key


# ------------------------------------------------------------------ #
#  Private Key Serialisation (unencrypted DER)                         #
# ------------------------------------------------------------------ #

def private_key_to_der(private_key, encoding: str = "pkcs8") -> bytes:
    """
    Serialize a private key to unencrypted DER.

    Args:
        private_key: cryptography private key object.
        encoding:    "pkcs8" (PrivateKeyInfo) or "pkcs1" (RSAPrivateKey,
                     RSA keys only).

    Returns:
        DER bytes.

    Raises:
        ValueError: On an unknown encoding, or "pkcs1" for a non-RSA key.
    """
    if encoding == "pkcs8":
        fmt = PrivateFormat.PKCS8
    elif encoding == "pkcs1":
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ValueError("PKCS#1 encoding is only defined for RSA keys")
        fmt = PrivateFormat.TraditionalOpenSSL
    else:
        raise ValueError(f"Unknown private key encoding: {encoding!r}")
    return private_key.private_bytes(
        encoding=Encoding.DER,
        format=fmt,
        encryption_algorithm=NoEncryption(),
    )


# ------------------------------------------------------------------ #
#  SHA-256 Helpers                                                     #
# ------------------------------------------------------------------ #

def sha256_hex(data: bytes) -> str:
    """Return the hex-encoded SHA-256 digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def certificate_fingerprint(cert: x509.Certificate) -> str:
    """SHA-256 fingerprint of the DER certificate, as colon-separated hex."""
    digest = sha256_hex(cert.public_bytes(Encoding.DER)).upper()
    return ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))


# ------------------------------------------------------------------ #
#  Descriptions (log / info output)                                    #
# ------------------------------------------------------------------ #

def key_algorithm_name(private_key) -> str:
    if isinstance(private_key, rsa.RSAPrivateKey):
        return "RSA"
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        return "EC"
    return type(private_key).__name__


def describe_key(private_key) -> str:
    """Return a human-readable string describing a private key."""
    if isinstance(private_key, rsa.RSAPrivateKey):
        pub_nums = private_key.public_key().public_numbers()
        # Show only the first 20 hex chars of the modulus as a fingerprint
        modulus_hex = hex(pub_nums.n)[2:22]
        return f"RSA-{private_key.key_size} | modulus prefix: {modulus_hex}..."
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        return f"EC-{private_key.curve.name}"
    return key_algorithm_name(private_key)


def subject_common_name(cert: x509.Certificate) -> str:
    attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return ""
    return attrs[0].value


def describe_certificate(cert: x509.Certificate) -> str:
    cn = subject_common_name(cert) or cert.subject.rfc4514_string()
    return f"'{cn}' (serial {hex(cert.serial_number)})"
