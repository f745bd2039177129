"""
trust_chain.py  —  Leaf / CA-chain composition.

Given the primary bundle (leaf first, then its issuers) and an optional,
separately sourced trust chain, produce:

    leaf     = primary[0]
    chain    = primary[1:] + supplied

The supplied chain is always appended after the certificates found in the
primary bundle and is never reordered relative to itself. Certificates that
appear in both inputs are kept twice. No signatures are checked here.
"""

from pkistore.errors import EmptyChainError


def compose(primary, supplied=None, log_fn=None) -> tuple:
    """
    Split the primary bundle into leaf + intermediates and append *supplied*.

    Args:
        primary:  Sequence of certificates, leaf first. Must not be empty.
        supplied: Sequence of CA certificates, or None.
        log_fn:   Optional callable receiving progress messages.

    Returns:
        (leaf, chain) where chain is a tuple.

    Raises:
        EmptyChainError: If *primary* holds no certificates.
    """
    def _log(msg):
        if log_fn: log_fn(msg)

    if not primary:
        raise EmptyChainError("certificate")

    leaf = primary[0]
    intermediates = tuple(primary[1:])
    extra = tuple(supplied or ())
    chain = intermediates + extra

    _log(
        f"Composed CA chain: {len(intermediates)} from bundle + "
        f"{len(extra)} supplied = {len(chain)}"
    )
    return leaf, chain
