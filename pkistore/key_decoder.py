"""
key_decoder.py
==============
Turns raw, unlabelled private-key bytes into a typed signing key.

The caller does not say which encoding the bytes use, so the decoder tries a
fixed list of encodings, in this order:

  1. pkcs1 -- RSAPrivateKey (RFC 8017), RSA only
  2. pkcs8 -- PrivateKeyInfo / OneAsymmetricKey (RFC 5958)

An encoding "matches" when the DER parses against its ASN.1 schema with no
trailing bytes AND the key algorithm is in the supported set. The first
match wins; the key object itself is then loaded with `cryptography`.

PEM-armored input ("RSA PRIVATE KEY" / "PRIVATE KEY") is accepted as a
convenience: the armor is stripped and the DER goes through the same list.
"""

import json

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from pyasn1.codec.der import decoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import namedtype, univ
from pyasn1_alt_modules import rfc5958

from pkistore.crypto_utils import private_key_to_der
from pkistore.errors import KeyDecodeError, PemDecodeError
from pkistore.paths import CONFIG_PATH
from pkistore.pem import is_pem, iter_pem_blocks


def _load_config() -> dict:
    with open(CONFIG_PATH, "r", encoding="utf-8") as fh:
        return json.load(fh)


# ------------------------------------------------------------------ #
#  ASN.1 Structures                                                    #
# ------------------------------------------------------------------ #

class RSAPrivateKeyASN1(univ.Sequence):
    """Two-prime RSAPrivateKey (PKCS#1). Multi-prime keys are not accepted."""

    componentType = namedtype.NamedTypes(
        namedtype.NamedType("version", univ.Integer()),
        namedtype.NamedType("modulus", univ.Integer()),
        namedtype.NamedType("publicExponent", univ.Integer()),
        namedtype.NamedType("privateExponent", univ.Integer()),
        namedtype.NamedType("prime1", univ.Integer()),
        namedtype.NamedType("prime2", univ.Integer()),
        namedtype.NamedType("exponent1", univ.Integer()),
        namedtype.NamedType("exponent2", univ.Integer()),
        namedtype.NamedType("coefficient", univ.Integer()),
    )


# PrivateKeyInfo algorithm OID -> algorithm name
KEY_ALGORITHM_OIDS = {
    "1.2.840.113549.1.1.1": "RSA",
    "1.2.840.10045.2.1": "EC",
}

_KEY_CLASSES = {
    "RSA": rsa.RSAPrivateKey,
    "EC": ec.EllipticCurvePrivateKey,
}

_PEM_KEY_LABELS = ("RSA PRIVATE KEY", "PRIVATE KEY")


class TypedPrivateKey:
    """
    A decoded private key plus its public half.

    Attributes:
        private_key: cryptography private key object.
        public_key:  matching public key.
        encoding:    name of the encoding that matched ("pkcs1" / "pkcs8").
        algorithm:   "RSA" or "EC".
    """

    __slots__ = ("private_key", "public_key", "encoding", "algorithm")

    def __init__(self, private_key, encoding: str, algorithm: str):
        self.private_key = private_key
        self.public_key = private_key.public_key()
        self.encoding = encoding
        self.algorithm = algorithm

    def pkcs8_der(self) -> bytes:
        """Unencrypted PKCS#8 DER of the key, whatever encoding it came in."""
        return private_key_to_der(self.private_key, "pkcs8")

    def release(self) -> None:
        """Drop the references to the key objects."""
        self.private_key = None
        self.public_key = None

    def __repr__(self):
        return f"TypedPrivateKey(algorithm={self.algorithm!r}, encoding={self.encoding!r})"


class _UnsupportedAlgorithm(Exception):
    pass


# ------------------------------------------------------------------ #
#  Structural Probes                                                   #
# ------------------------------------------------------------------ #

def _strict_decode(der: bytes, spec):
    obj, rest = decoder.decode(der, asn1Spec=spec)
    if rest:
        raise PyAsn1Error(f"{len(rest)} trailing bytes after structure")
    return obj


def _probe_pkcs1(der: bytes) -> str:
    obj = _strict_decode(der, RSAPrivateKeyASN1())
    if int(obj["version"]) != 0:
        raise PyAsn1Error(f"unsupported RSAPrivateKey version {int(obj['version'])}")
    return "RSA"


def _probe_pkcs8(der: bytes) -> str:
    obj = _strict_decode(der, rfc5958.OneAsymmetricKey())
    oid = str(obj["privateKeyAlgorithm"]["algorithm"])
    algorithm = KEY_ALGORITHM_OIDS.get(oid)
    if algorithm is None:
        raise _UnsupportedAlgorithm(f"unsupported key algorithm OID {oid}")
    return algorithm


# Ordered: the first structural match wins.
KEY_ENCODINGS = ("pkcs1", "pkcs8")

_PROBES = {
    "pkcs1": _probe_pkcs1,
    "pkcs8": _probe_pkcs8,
}


# ------------------------------------------------------------------ #
#  Public API                                                          #
# ------------------------------------------------------------------ #

def _strip_pem(raw: bytes) -> bytes:
    try:
        blocks = list(iter_pem_blocks(raw))
    except PemDecodeError as exc:
        raise KeyDecodeError(f"Malformed PEM private key: {exc}") from exc

    for block in blocks:
        if block.label == "ENCRYPTED PRIVATE KEY":
            raise KeyDecodeError("Encrypted private keys are not supported")
        if block.label in _PEM_KEY_LABELS:
            return block.der
    labels = ", ".join(b.label for b in blocks) or "none"
    raise KeyDecodeError(f"No private key PEM block found (blocks: {labels})")


def decode(raw: bytes, log_fn=None) -> TypedPrivateKey:
    """
    Decode raw private-key bytes.

    Args:
        raw:     Unencrypted DER (PKCS#1 or PKCS#8), or the same PEM-armored.
        log_fn:  Optional callable receiving progress messages.

    Returns:
        TypedPrivateKey.

    Raises:
        KeyDecodeError: If no encoding matches, or the algorithm is not
                        supported. ``attempts`` lists why each encoding failed.
    """
    def _log(msg):
        if log_fn: log_fn(msg)

    if not isinstance(raw, (bytes, bytearray)):
        raise KeyDecodeError(f"Private key must be bytes, got {type(raw).__name__}")
    if not raw:
        raise KeyDecodeError("Private key data is empty")

    der = bytes(raw)
    if is_pem(der):
        _log("Private key is PEM-armored, stripping armor ...")
        der = _strip_pem(der)

    supported = set(_load_config()["supported_key_algorithms"])
    attempts = []
    for encoding in KEY_ENCODINGS:
        try:
            algorithm = _PROBES[encoding](der)
        except PyAsn1Error as exc:
            attempts.append((encoding, f"structure mismatch: {exc}"))
            continue
        except _UnsupportedAlgorithm as exc:
            attempts.append((encoding, str(exc)))
            continue

        if algorithm not in supported:
            attempts.append((encoding, f"key algorithm {algorithm} is not enabled"))
            continue

        try:
            private_key = serialization.load_der_private_key(der, password=None)
        except (ValueError, TypeError) as exc:
            attempts.append((encoding, f"rejected by key loader: {exc}"))
            continue

        if not isinstance(private_key, _KEY_CLASSES[algorithm]):
            attempts.append((encoding, f"loaded key is not {algorithm}"))
            continue

        _log(f"Private key decoded as {encoding} ({algorithm}).")
        return TypedPrivateKey(private_key, encoding, algorithm)

    raise KeyDecodeError("Private key matches no supported encoding", attempts)
