"""
Event processor for Stratos chain events.

This module turns chain events into commands for the SP node. Handlers are pure:
they read attributes, re-encode addresses and keys, and return a command. They
never forward anything themselves; the relay dispatches the returned command.

A handler either
- returns a Command to forward,
- returns None when the event is deliberately skipped, or
- raises an EventError when the event must be dropped.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .models import (
    ActivatedPP,
    ActivatedSP,
    Command,
    DeactivatedPP,
    Prepaid,
    UnbondingPP,
    UpdatedStakePP,
    UpdatedStakeSP,
    Uploaded,
    VolumeReported,
)
from .utils.address_codec import decode_public_key, encode_public_key, reencode_address
from .utils.event_attributes import Event, get_attribute, get_tx_hash

logger = logging.getLogger(__name__)

# Validator status the chain reports once an indexing node candidate is bonded
BOND_STATUS_BONDED = "Bonded"

EventHandler = Callable[[Event], Command | None]


class HandlerKind(Enum):
    """How the relay treats events of a bound category."""
    FORWARD = "forward"
    UNIMPLEMENTED = "unimplemented"


@dataclass(frozen=True, slots=True)
class EventBinding:
    """Binds a chain message action to the handler for its events."""
    action: str
    kind: HandlerKind
    handler: EventHandler | None = None

    @property
    def query(self) -> str:
        """Tendermint subscription query selecting this action."""
        return f"message.action='{self.action}'"

    @classmethod
    def forward(cls, action: str, handler: EventHandler) -> "EventBinding":
        return cls(action=action, kind=HandlerKind.FORWARD, handler=handler)

    @classmethod
    def unimplemented(cls, action: str) -> "EventBinding":
        """Category observed and logged, but with no forwarding contract yet."""
        return cls(action=action, kind=HandlerKind.UNIMPLEMENTED)


class EventProcessor:
    """Builds SP node commands from Stratos chain events."""

    def __init__(self, p2p_address_prefix: str) -> None:
        """
        Initialize the event processor.

        Args:
            p2p_address_prefix: bech32 prefix addresses are re-encoded under
        """
        self.p2p_address_prefix = p2p_address_prefix

    def _p2p_address(self, event: Event, category: str, key: str) -> str:
        """Read an address attribute and re-encode it under the P2P prefix."""
        _, p2p_address = reencode_address(get_attribute(event, category, key), self.p2p_address_prefix)
        return p2p_address

    def handle_create_resource_node(self, event: Event) -> Command | None:
        category = "create_resource_node"
        p2p_address = self._p2p_address(event, category, "network_address")
        p2p_pubkey = decode_public_key(get_attribute(event, category, "pub_key"))

        return ActivatedPP(
            p2p_address=p2p_address,
            p2p_pubkey=encode_public_key(p2p_pubkey),
            ozone_limit_changes=get_attribute(event, category, "ozone_limit_changes"),
            tx_hash=get_tx_hash(event),
        )

    def handle_update_resource_node_stake(self, event: Event) -> Command | None:
        category = "update_resource_node_stake"
        return UpdatedStakePP(
            p2p_address=self._p2p_address(event, category, "network_address"),
            ozone_limit_changes=get_attribute(event, category, "ozone_limit_changes"),
            incr_stake=get_attribute(event, category, "incr_stake"),
            tx_hash=get_tx_hash(event),
        )

    def handle_unbonding_resource_node(self, event: Event) -> Command | None:
        category = "unbonding_resource_node"
        return UnbondingPP(
            p2p_address=self._p2p_address(event, category, "resource_node"),
            ozone_limit_changes=get_attribute(event, category, "ozone_limit_changes"),
            unbonding_mature_time=get_attribute(event, category, "unbonding_mature_time"),
            tx_hash=get_tx_hash(event),
        )

    def handle_remove_resource_node(self, event: Event) -> Command | None:
        """
        Handle removal of a resource node.

        Also bound to complete_unbonding_resource_node: both deactivate the node
        and the attributes are read under the remove_resource_node category.
        The transaction hash is required but not forwarded.
        """
        category = "remove_resource_node"
        p2p_address = self._p2p_address(event, category, "resource_node")
        get_tx_hash(event)
        return DeactivatedPP(p2p_address=p2p_address)

    handle_complete_unbonding_resource_node = handle_remove_resource_node

    def handle_update_indexing_node_stake(self, event: Event) -> Command | None:
        category = "update_indexing_node_stake"
        return UpdatedStakeSP(
            p2p_address=self._p2p_address(event, category, "network_address"),
            ozone_limit_changes=get_attribute(event, category, "ozone_limit_changes"),
            incr_stake=get_attribute(event, category, "incr_stake"),
            tx_hash=get_tx_hash(event),
        )

    def handle_indexing_node_reg_vote(self, event: Event) -> Command | None:
        """
        Handle a registration vote for an indexing node candidate.

        Returns:
            ActivatedSP once the candidate is bonded, None while it still needs votes
        """
        category = "indexing_node_reg_vote"
        p2p_address = self._p2p_address(event, category, "candidate_network_address")

        candidate_status = get_attribute(event, category, "candidate_status")
        if candidate_status != BOND_STATUS_BONDED:
            logger.debug("Indexing node vote handler: the candidate needs more votes before being considered active")
            return None

        return ActivatedSP(p2p_address=p2p_address, tx_hash=get_tx_hash(event))

    def handle_prepay(self, event: Event) -> Command | None:
        logger.info(f"Prepay event: {dict(event)}")
        return Prepaid(
            wallet_address=get_attribute(event, "Prepay", "sender"),
            purchased_uoz=get_attribute(event, "Prepay", "purchased"),
            tx_hash=get_tx_hash(event),
        )

    def handle_file_upload(self, event: Event) -> Command | None:
        category = "FileUpload"
        return Uploaded(
            reporter_address=get_attribute(event, category, "reporter"),
            uploader_address=get_attribute(event, category, "uploader"),
            file_hash=get_attribute(event, category, "file_hash"),
            tx_hash=get_tx_hash(event),
        )

    def handle_volume_report(self, event: Event) -> Command | None:
        return VolumeReported(epoch=get_attribute(event, "volume_report", "epoch"))

    def bindings(self) -> tuple[EventBinding, ...]:
        """
        Return the subscription bindings in registration order.

        Returns:
            One binding per subscribed message action
        """
        return (
            EventBinding.forward("create_resource_node", self.handle_create_resource_node),
            EventBinding.forward("update_resource_node_stake", self.handle_update_resource_node_stake),
            EventBinding.forward("unbonding_resource_node", self.handle_unbonding_resource_node),
            EventBinding.forward("remove_resource_node", self.handle_remove_resource_node),
            EventBinding.forward("complete_unbonding_resource_node", self.handle_complete_unbonding_resource_node),
            EventBinding.unimplemented("create_indexing_node"),
            EventBinding.forward("update_indexing_node_stake", self.handle_update_indexing_node_stake),
            EventBinding.unimplemented("unbonding_indexing_node"),
            EventBinding.unimplemented("remove_indexing_node"),
            EventBinding.unimplemented("complete_unbonding_indexing_node"),
            EventBinding.forward("indexing_node_reg_vote", self.handle_indexing_node_reg_vote),
            EventBinding.forward("SdsPrepayTx", self.handle_prepay),
            EventBinding.forward("FileUploadTx", self.handle_file_upload),
            EventBinding.forward("volume_report", self.handle_volume_report),
        )

