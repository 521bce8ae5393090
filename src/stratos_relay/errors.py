"""
Exception hierarchy for the Stratos relay.

Per-event problems derive from EventError and only ever drop the event being
handled. Forwarding problems derive from ForwardError and are logged by the
dispatcher. SubscriptionError is the only one that aborts startup.
"""


class RelayError(Exception):
    """Base class for all relay errors."""


class EventError(RelayError):
    """The event cannot be turned into a command and must be dropped."""


class MissingAttribute(EventError):
    """A required event attribute is absent or has no values."""

    def __init__(self, category: str, key: str):
        self.category = category
        self.key = key
        super().__init__(f"no {key} was specified in {category} msg from stratos-chain")


class InvalidAddressEncoding(EventError):
    """An address attribute is not valid bech32."""


class EncodingError(EventError):
    """A raw address cannot be encoded to bech32."""


class InvalidHex(EventError):
    """A hex attribute contains non-hex characters or an odd length."""


class InvalidKeyEncoding(EventError):
    """Decoded bytes do not form an Ed25519 public key."""


class ForwardError(RelayError):
    """A command could not be delivered to the SP node."""


class SerializationError(ForwardError):
    """A command could not be serialized to JSON."""


class TransportError(ForwardError):
    """The HTTP request to the SP node could not be sent."""


class SubscriptionError(RelayError):
    """A chain event subscription could not be registered."""
