"""Legacy surface identity hashing.

Older clients reported surfaces as one-way hashes of their serial, sometimes
with the module prefix stripped or replaced by the legacy "streamdeck:" tag.
Current clients send the plain serial. The helpers here reproduce every hash a
legacy client could have stored for a serial, so the stale rows can be pruned.
"""

import hashlib

LEGACY_SERIAL_SEPARATOR = ":"
LEGACY_SERIAL_TAG = "streamdeck:"


def legacy_serial_hash(value: str) -> str:
    """Hash a serial the way legacy clients did (hex MD5)."""
    return hashlib.md5(value.encode("utf-8"), usedforsecurity=False).hexdigest()


def legacy_identity_candidates(serial: str) -> set[str]:
    """Return every legacy-hashed form a serial may have been stored under.

    The candidates are the hash of the full serial, the hash of the part after
    the first separator and the hash of that part with the legacy tag in front.
    A serial without a separator counts as its own suffix. The plain serial
    itself is never a candidate.
    """
    suffix = serial.split(LEGACY_SERIAL_SEPARATOR, 1)[-1]

    candidates = {legacy_serial_hash(serial)}
    if suffix:
        candidates.add(legacy_serial_hash(suffix))
        candidates.add(legacy_serial_hash(LEGACY_SERIAL_TAG + suffix))

    candidates.discard(serial)
    return candidates
