"""Deterministic price hashing.

The digest is Keccak-256 (the pre-FIPS padding used by Ethereum, not
SHA3-256) over the UTF-8 bytes of the asset id immediately followed by the
price string, exactly as the caller supplied it. No normalisation is applied
to the price string: "1800.5" and "1800.50" hash differently.
"""

from Crypto.Hash import keccak


def hash_price(asset: str, price: str) -> str:
    """Return the 64-char lowercase hex digest for an (asset, price) pair."""
    digest = keccak.new(digest_bits=256)
    digest.update(f"{asset}{price}".encode("utf-8"))
    return digest.hexdigest()
