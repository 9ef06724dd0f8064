from __future__ import annotations

from ingest_policy.core.errors import InvalidArgumentError

# Persisted default assignments record this version. Any change to the hash
# below must ship under a new version string.
STABLE_INDEX_VERSION = "fnv1a32-utf8.v1"

_FNV32_OFFSET_BASIS = 2166136261
_FNV32_PRIME = 16777619
_UINT32_MASK = 0xFFFFFFFF


def stable_hash32(key: str) -> int:
    """32-bit FNV-1a over the UTF-8 bytes of ``key``."""
    value = _FNV32_OFFSET_BASIS
    for byte in key.encode("utf-8"):
        value ^= byte
        value = (value * _FNV32_PRIME) & _UINT32_MASK
    return value


def to_stable_index(key: str, length: int) -> int:
    if length <= 0:
        raise InvalidArgumentError(f"length must be positive, got {length}")
    return stable_hash32(key) % length
