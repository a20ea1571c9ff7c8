"""Events exchanged inside the staker's event loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Dict

HASH_SIZE = 32


def _check_hash(name: str, value: bytes) -> None:
    if len(value) != HASH_SIZE:
        raise ValueError(f"{name} must be {HASH_SIZE} bytes, got {len(value)}")


def _hash_string(value: bytes) -> str:
    # Transaction hashes are displayed byte-reversed.
    return value[::-1].hex()


class StakingEvent:
    """An event identified by the hash of the initial staking transaction."""

    description: ClassVar[str] = ""

    def __post_init__(self) -> None:
        _check_hash("staking_tx_hash", self.staking_tx_hash)

    def event_id(self) -> bytes:
        """Return the staking transaction hash identifying this event."""
        return self.staking_tx_hash

    def event_desc(self) -> str:
        """Return the event's fixed description."""
        return self.description


@dataclass(frozen=True)
class UnbondingTxSignaturesConfirmedOnBabylonEvent(StakingEvent):
    """Covenant signatures for the unbonding transaction are on Babylon."""

    description: ClassVar[str] = "UNBONDING_TX_SIGNATURES_CONFIRMED_ON_BABYLON"
    staking_tx_hash: bytes
    staking_output_index: int


@dataclass(frozen=True)
class DelegationActivatedEvent(StakingEvent):
    """The delegation became active on Babylon."""

    description: ClassVar[str] = "DELEGATION_ACTIVE_ON_BABYLON"
    staking_tx_hash: bytes
    block_hash: bytes
    block_height: int

    def __post_init__(self) -> None:
        super().__post_init__()
        _check_hash("block_hash", self.block_hash)


@dataclass(frozen=True)
class UnbondingTxConfirmedOnBtcEvent(StakingEvent):
    """The unbonding transaction is confirmed on Bitcoin."""

    description: ClassVar[str] = "UNBONDING_TX_CONFIRMED_ON_BTC"
    staking_tx_hash: bytes
    block_hash: bytes
    block_height: int

    def __post_init__(self) -> None:
        super().__post_init__()
        _check_hash("block_hash", self.block_hash)


@dataclass(frozen=True)
class SpendStakeTxConfirmedOnBtcEvent(StakingEvent):
    """A transaction spending the stake is confirmed on Bitcoin."""

    description: ClassVar[str] = "SPEND_STAKE_TX_CONFIRMED_ON_BTC"
    staking_tx_hash: bytes


@dataclass(frozen=True)
class CriticalErrorEvent(StakingEvent):
    """An error the staker does not know how to handle."""

    description: ClassVar[str] = "CRITICAL_ERROR"
    staking_tx_hash: bytes
    err: BaseException
    additional_context: str = ""


def describe_event(event: StakingEvent) -> Dict[str, str]:
    """Return the log fields describing ``event``."""
    return {"eventId": _hash_string(event.event_id()), "event": event.event_desc()}