"""
pem.py  —  Minimal PEM transport codec.

Splits a blob into its armored blocks in encounter order and base64-decodes
each body. Text between blocks (comments, "Bag Attributes" headers written by
openssl) is ignored.
"""

import base64
import binascii
import re
from collections import namedtuple

from pkistore.errors import PemDecodeError

PemBlock = namedtuple("PemBlock", ["index", "label", "der"])

_BEGIN_RE = re.compile(rb"-----BEGIN ([A-Z0-9 ]+)-----")
_END_RE = re.compile(rb"-----END ([A-Z0-9 ]*)-----")


def is_pem(blob: bytes) -> bool:
    """True if *blob* starts with PEM armor (leading whitespace allowed)."""
    return blob.lstrip().startswith(b"-----BEGIN ")


def iter_pem_blocks(blob: bytes):
    """
    Yield a PemBlock for every armored block in *blob*, in order.

    Raises:
        PemDecodeError: On a BEGIN line without an END line, an END label
                        that differs from its BEGIN label, or a body that
                        is not valid base64.
    """
    pos = 0
    index = 0
    while True:
        begin = _BEGIN_RE.search(blob, pos)
        if begin is None:
            return
        label = begin.group(1)
        end = _END_RE.search(blob, begin.end())
        if end is None:
            raise PemDecodeError(index, f"no '-----END {label.decode()}-----' line after BEGIN")

        body = blob[begin.end():end.start()]
        # An inner BEGIN means the previous block was never closed
        if b"-----BEGIN " in body:
            raise PemDecodeError(index, f"block '{label.decode()}' is not terminated")
        if end.group(1) != label:
            raise PemDecodeError(
                index,
                f"END label '{end.group(1).decode()}' does not match BEGIN '{label.decode()}'",
            )
        try:
            der = base64.b64decode(b"".join(body.split()), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise PemDecodeError(index, f"invalid base64 body: {exc}") from exc

        yield PemBlock(index, label.decode("ascii"), der)
        index += 1
        pos = end.end()


def encode_pem(label: str, der: bytes) -> bytes:
    """Armor *der* as a PEM block with 64-column lines."""
    b64 = base64.b64encode(der)
    lines = [b64[i:i + 64] for i in range(0, len(b64), 64)]
    return (
        b"-----BEGIN " + label.encode("ascii") + b"-----\n"
        + b"\n".join(lines)
        + b"\n-----END " + label.encode("ascii") + b"-----\n"
    )
