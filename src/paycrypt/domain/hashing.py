"""Deterministic digests used as ledger keys and transfer nonces."""

import hashlib


def _normalize_identity(identity: str) -> str:
    return identity.strip().lower()


def identity_hash(identity: str) -> str:
    """Ledger account key for an identity.

    SHA-256 of the stripped, lowercased identity, hex encoded with a 0x prefix.
    Case-insensitive: "Bob@X.com" and "bob@x.com" hash identically.
    """
    digest = hashlib.sha256(_normalize_identity(identity).encode("utf-8")).hexdigest()
    return f"0x{digest}"


def owner_commitment(identity: str) -> str:
    """Commitment binding a new wallet to its owner identity."""
    digest = hashlib.sha256(
        f"owner:{_normalize_identity(identity)}".encode("utf-8")
    ).hexdigest()
    return f"0x{digest}"


def deterministic_nonce(sender: str, token: str) -> int:
    """Transfer nonce for a (sender, call sign) pair.

    The first 8 bytes of SHA-256("sender:token") as an unsigned integer. The
    same logical request always yields the same nonce, so the ledger sees a
    re-submission as a duplicate instead of executing it twice.
    """
    seed = f"{_normalize_identity(sender)}:{token}".encode("utf-8")
    return int.from_bytes(hashlib.sha256(seed).digest()[:8], "big")
