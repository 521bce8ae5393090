"""Shared fixtures for the Stratos relay tests."""

import nacl.signing
import pytest
from bech32 import bech32_encode, convertbits

from stratos_relay.config import ChainConfig, MonitoringConfig, RelayConfig, SdsConfig

NODE_ADDRESS_BYTES = bytes(range(1, 21))
CHAIN_PREFIX = "st"
P2P_PREFIX = "stsds"


def to_bech32(raw: bytes, prefix: str) -> str:
    """Encode raw bytes as bech32 for building test events."""
    return bech32_encode(prefix, convertbits(raw, 8, 5))


@pytest.fixture
def node_address():
    """A resource node address as the chain emits it."""
    return to_bech32(NODE_ADDRESS_BYTES, CHAIN_PREFIX)


@pytest.fixture
def p2p_address():
    """The same node address under the SDS P2P prefix."""
    return to_bech32(NODE_ADDRESS_BYTES, P2P_PREFIX)


@pytest.fixture
def verify_key():
    """A deterministic Ed25519 public key."""
    return nacl.signing.SigningKey(b"\x07" * 32).verify_key


@pytest.fixture
def pubkey_hex(verify_key):
    return bytes(verify_key).hex()


@pytest.fixture
def create_resource_node_event(node_address, pubkey_hex):
    """A well-formed create_resource_node event."""
    return {
        "create_resource_node.network_address": [node_address],
        "create_resource_node.pub_key": [pubkey_hex],
        "create_resource_node.ozone_limit_changes": ["100"],
        "tx.hash": ["ABC123"],
    }


@pytest.fixture
def relay_config():
    """Relay configuration pointing at a local SP node."""
    return RelayConfig(
        chain=ChainConfig(
            websocket_url="ws://127.0.0.1:26657/websocket",
            p2p_address_prefix=P2P_PREFIX,
        ),
        sds=SdsConfig(network_address="127.0.0.1", api_port=8888),
        monitoring=MonitoringConfig(),
    )
