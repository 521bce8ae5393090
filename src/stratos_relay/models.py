"""
Command models forwarded to the SDS indexing node.

Each command is built fresh from one chain event and never mutated. The field
names are the JSON names the SP node API expects, and PATH is the endpoint the
command is posted to.
"""

from dataclasses import asdict, dataclass
from typing import Any, ClassVar


@dataclass(frozen=True, slots=True)
class Command:
    """Base class for commands sent to the SP node."""

    PATH: ClassVar[str] = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ActivatedPP(Command):
    """A resource node was created on chain.

    Attributes:
        p2p_address: Node address under the SDS P2P prefix
        p2p_pubkey: Hex Ed25519 public key of the node
        ozone_limit_changes: Ozone limit delta caused by the stake
        tx_hash: Hash of the chain transaction
    """
    PATH: ClassVar[str] = "/pp/activated"

    p2p_address: str
    p2p_pubkey: str
    ozone_limit_changes: str
    tx_hash: str


@dataclass(frozen=True, slots=True)
class UpdatedStakePP(Command):
    """A resource node's stake changed."""
    PATH: ClassVar[str] = "/pp/updatedStake"

    p2p_address: str
    ozone_limit_changes: str
    incr_stake: str
    tx_hash: str


@dataclass(frozen=True, slots=True)
class UnbondingPP(Command):
    """A resource node started unbonding.

    Attributes:
        unbonding_mature_time: Time at which the unbonding completes
    """
    PATH: ClassVar[str] = "/pp/unbonding"

    p2p_address: str
    ozone_limit_changes: str
    unbonding_mature_time: str
    tx_hash: str


@dataclass(frozen=True, slots=True)
class DeactivatedPP(Command):
    """A resource node was removed or finished unbonding."""
    PATH: ClassVar[str] = "/pp/deactivated"

    p2p_address: str


@dataclass(frozen=True, slots=True)
class UpdatedStakeSP(Command):
    """An indexing node's stake changed."""
    PATH: ClassVar[str] = "/chain/updatedStake"

    p2p_address: str
    ozone_limit_changes: str
    incr_stake: str
    tx_hash: str


@dataclass(frozen=True, slots=True)
class ActivatedSP(Command):
    """An indexing node candidate received enough votes to become bonded."""
    PATH: ClassVar[str] = "/chain/activated"

    p2p_address: str
    tx_hash: str


@dataclass(frozen=True, slots=True)
class Prepaid(Command):
    """A wallet prepaid for storage.

    Attributes:
        wallet_address: Sender of the prepay transaction
        purchased_uoz: Purchased ozone amount
    """
    PATH: ClassVar[str] = "/pp/prepaid"

    wallet_address: str
    purchased_uoz: str
    tx_hash: str


@dataclass(frozen=True, slots=True)
class Uploaded(Command):
    """A file upload was reported on chain."""
    PATH: ClassVar[str] = "/pp/uploaded"

    reporter_address: str
    uploader_address: str
    file_hash: str
    tx_hash: str


@dataclass(frozen=True, slots=True)
class VolumeReported(Command):
    """A traffic volume report was committed for an epoch."""
    PATH: ClassVar[str] = "/volume/reported"

    epoch: str
