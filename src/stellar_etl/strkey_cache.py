"""Cached StrKey encoding for raw account keys, signer keys and hashes."""

from functools import lru_cache

from stellar_sdk import StrKey


@lru_cache(maxsize=4096)
def get_account_address(key: bytes) -> str:
    """Encode a raw 32-byte ed25519 public key as a G... address."""
    return StrKey.encode_ed25519_public_key(bytes(key))


@lru_cache(maxsize=1024)
def get_pre_auth_tx_address(tx_hash: bytes) -> str:
    """Encode a pre-authorized transaction hash as a T... key."""
    return StrKey.encode_pre_auth_tx(bytes(tx_hash))


@lru_cache(maxsize=1024)
def get_hash_x_address(hash_x: bytes) -> str:
    """Encode a sha256 hash-x signer as an X... key."""
    return StrKey.encode_sha256_hash(bytes(hash_x))


def get_account_key(address: str) -> bytes:
    """Decode a G... address back to its raw 32-byte key."""
    return StrKey.decode_ed25519_public_key(address)
