"""Bitcoin network parameters and backend selection enums."""

from __future__ import annotations

import binascii
import hashlib
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class FeeEstimationMode(Enum):
    """How transaction fees are estimated."""

    STATIC = "static"
    DYNAMIC = "dynamic"


class NodeBackend(Enum):
    """Supported bitcoin node backends."""

    BTCD = "btcd"
    BITCOIND = "bitcoind"


class WalletBackend(Enum):
    """Supported bitcoin wallet backends."""

    BTCWALLET = "btcwallet"
    BITCOIND = "bitcoind"


DEFAULT_SIGNET_CHALLENGE = binascii.unhexlify(
    "512103ad5e0edad18cb1f0fc0d28a3d4f1f3e445640337489abb10404f2d1e086be430"
    "210359ef5021964fe22d6f8e05b2463c9540ce96883fe3b278760f048f5189f2e6c452ae"
)


@dataclass(frozen=True)
class NetworkParams:
    """Identifying parameters of one bitcoin network."""

    name: str
    net: int
    default_port: str
    bech32_hrp: str
    pubkey_hash_addr_id: int
    script_hash_addr_id: int
    private_key_id: int
    hd_coin_type: int
    signet_challenge: Optional[bytes] = None


_TESTNET3 = NetworkParams("testnet3", 0x0709110B, "18333", "tb", 0x6F, 0xC4, 0xEF, 1)
_REGTEST = NetworkParams("regtest", 0xDAB5BFFA, "18444", "bcrt", 0x6F, 0xC4, 0xEF, 1)
_SIMNET = NetworkParams("simnet", 0x12141C16, "18555", "sb", 0x3F, 0x7B, 0x64, 115)
_SIGNET_BASE = NetworkParams("signet", 0, "38333", "tb", 0x6F, 0xC4, 0xEF, 1)


def _signet_magic(challenge: bytes) -> int:
    prefixed = bytes([len(challenge) & 0xFF]) + challenge
    digest = hashlib.sha256(hashlib.sha256(prefixed).digest()).digest()
    return int.from_bytes(digest[:4], "little")


def _custom_signet(challenge: bytes) -> NetworkParams:
    return replace(_SIGNET_BASE, net=_signet_magic(challenge), signet_challenge=challenge)


def network_params(name: str, signet_challenge: str = "") -> NetworkParams:
    """Return parameters for ``testnet``, ``regtest``, ``simnet`` or ``signet``.

    For signet a hex ``signet_challenge`` selects a custom network.
    """
    if name == "testnet":
        return _TESTNET3
    if name == "regtest":
        return _REGTEST
    if name == "simnet":
        return _SIMNET
    if name == "signet":
        challenge = DEFAULT_SIGNET_CHALLENGE
        if signet_challenge:
            try:
                challenge = binascii.unhexlify(signet_challenge)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(
                    f"Invalid signet challenge, hex decode failed: {exc}"
                ) from exc
        return _custom_signet(challenge)
    raise ValueError(f"invalid network: {name}")


@dataclass
class ChainConfig:
    """Which bitcoin network to run on."""

    network: str = "testnet"
    signet_challenge: str = ""


def default_chain_config() -> ChainConfig:
    """Return the default chain configuration (testnet)."""
    return ChainConfig()