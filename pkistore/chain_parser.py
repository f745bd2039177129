"""
chain_parser.py  —  PEM certificate bundle -> ordered tuple of certificates.

Order of the blocks in the input is kept as-is; nothing is deduplicated or
re-sorted. An empty (or None) blob is an empty bundle, not an error.
"""

from cryptography import x509

from pkistore.errors import CertificateParseError, PemDecodeError
from pkistore.pem import iter_pem_blocks

CERTIFICATE_LABEL = "CERTIFICATE"


def parse(blob: bytes, source: str = "certificate", log_fn=None) -> tuple:
    """
    Parse a concatenation of PEM certificates.

    Args:
        blob:    PEM bytes, possibly empty or None.
        source:  Name of the input, used in error messages ("certificate",
                 "ca", ...).
        log_fn:  Optional callable receiving progress messages.

    Returns:
        Tuple of cryptography x509.Certificate, in encounter order.

    Raises:
        CertificateParseError: A block is malformed, is not a CERTIFICATE
                               block, or does not hold a valid certificate.
    """
    def _log(msg):
        if log_fn: log_fn(msg)

    if not blob:
        _log(f"No {source} certificates supplied.")
        return ()

    certs = []
    blocks = iter_pem_blocks(bytes(blob))
    while True:
        try:
            block = next(blocks)
        except StopIteration:
            break
        except PemDecodeError as exc:
            raise CertificateParseError(source, exc.block_index, exc.reason) from exc

        if block.label != CERTIFICATE_LABEL:
            raise CertificateParseError(
                source, block.index, f"unexpected PEM block type '{block.label}'"
            )
        try:
            cert = x509.load_der_x509_certificate(block.der)
        except ValueError as exc:
            raise CertificateParseError(
                source, block.index, f"invalid certificate structure: {exc}"
            ) from exc
        certs.append(cert)

    _log(f"Parsed {len(certs)} {source} certificate(s).")
    return tuple(certs)
