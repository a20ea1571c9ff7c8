"""BIP-340 public keys and the covenant signature helpers built on them."""

from __future__ import annotations

import binascii
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

_FIELD_PRIME = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
_CURVE_B = 7
_XONLY_SIZE = 32
_MAX_UINT16 = 0xFFFF


@dataclass(frozen=True)
class PublicKey:
    """A point on secp256k1 given by its affine coordinates."""

    x: int
    y: int

    def __post_init__(self) -> None:
        p = _FIELD_PRIME
        if not (0 <= self.x < p and 0 <= self.y < p):
            raise ValueError("invalid public key: coordinate out of field range")
        if (self.y * self.y - (pow(self.x, 3, p) + _CURVE_B)) % p != 0:
            raise ValueError("invalid public key: point is not on the secp256k1 curve")

    @classmethod
    def from_xonly(cls, data: bytes) -> "PublicKey":
        """Parse a 32-byte x-only key, choosing the point with even y."""
        if len(data) != _XONLY_SIZE:
            raise ValueError(f"malformed public key: invalid length: {len(data)}")
        x = int.from_bytes(data, "big")
        p = _FIELD_PRIME
        if x >= p:
            raise ValueError("invalid public key: x >= field prime")
        rhs = (pow(x, 3, p) + _CURVE_B) % p
        y = pow(rhs, (p + 1) // 4, p)
        if y * y % p != rhs:
            raise ValueError(
                f"invalid public key: x coordinate {x:x} is not on the secp256k1 curve"
            )
        if y & 1:
            y = p - y
        return cls(x, y)

    def serialize_xonly(self) -> bytes:
        """Return the 32-byte x-only serialisation."""
        return self.x.to_bytes(_XONLY_SIZE, "big")


@dataclass(frozen=True)
class CovenantSignatureInfo:
    """A covenant member's key together with the signature it produced."""

    pub_key: PublicKey
    signature: bytes


def encode_schnorr_pk_to_hex(pk: PublicKey) -> str:
    """Return the hex form of the x-only serialisation of ``pk``."""
    return pk.serialize_xonly().hex()


def parse_schnorr_pk(key: str) -> PublicKey:
    """Parse a hex-encoded x-only public key."""
    try:
        raw = binascii.unhexlify(key)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid hex public key: {exc}") from exc
    return PublicKey.from_xonly(raw)


def parse_staking_time(staking_time: int) -> int:
    """Check that a staking time fits in 16 bits and return it."""
    if staking_time < 0:
        raise ValueError(f"staking time {staking_time} is negative")
    if staking_time > _MAX_UINT16:
        raise ValueError(f"staking time {staking_time} is too big")
    return staking_time


def sort_pub_keys_for_witness(keys: Iterable[PublicKey]) -> List[PublicKey]:
    """Sort keys in reverse lexicographical order of their x-only bytes.

    This is the order a multisig witness expects its signatures in.
    """
    return sorted(keys, key=PublicKey.serialize_xonly, reverse=True)


def have_duplicates(keys: Iterable[PublicKey]) -> bool:
    """Report whether two keys share the same x-only serialisation."""
    seen = set()
    for key in keys:
        serialized = key.serialize_xonly()
        if serialized in seen:
            return True
        seen.add(serialized)
    return False


def create_witness_signatures_for_pub_keys(
    covenant_pub_keys: Sequence[PublicKey],
    covenant_quorum: int,
    received_signature_pairs: Sequence[CovenantSignatureInfo],
) -> List[Optional[bytes]]:
    """Line up received signatures with the witness-ordered covenant keys.

    Only the first quorum of signatures is used; keys without a signature get
    ``None``. The result has one entry per covenant key.
    """
    if len(received_signature_pairs) < covenant_quorum:
        raise ValueError(
            "not enough signatures to create witness. "
            f"Required: {covenant_quorum}, received: {len(received_signature_pairs)}"
        )

    up_to_quorum: Dict[str, bytes] = {}
    for pair in received_signature_pairs:
        if len(up_to_quorum) >= covenant_quorum:
            break
        up_to_quorum[encode_schnorr_pk_to_hex(pair.pub_key)] = pair.signature

    return [
        up_to_quorum.get(encode_schnorr_pk_to_hex(key))
        for key in sort_pub_keys_for_witness(covenant_pub_keys)
    ]


def convert_fp_btc_pk_to_btc_pk(fp_btc_pks: Iterable[bytes]) -> List[PublicKey]:
    """Parse finality provider x-only keys into public keys."""
    result = []
    for raw in fp_btc_pks:
        try:
            result.append(PublicKey.from_xonly(bytes(raw)))
        except ValueError as exc:
            raise ValueError(f"failed to parse finality provider btc pk: {exc}") from exc
    return result