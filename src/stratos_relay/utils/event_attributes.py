"""
Attribute access for Tendermint result events.

Events arrive as a mapping of "<category>.<attribute>" to the list of values
recorded for that key in the delivered batch. Only the first value is ever
used; later occurrences are ignored.
"""

from collections.abc import Mapping, Sequence

from ..errors import MissingAttribute

Event = Mapping[str, Sequence[str]]

# Position of the value consulted when a key carries several values
FIRST_VALUE_INDEX = 0


def attribute_key(category: str, key: str) -> str:
    """Return the composite event key for a category attribute."""
    return f"{category}.{key}"


def get_attribute(event: Event, category: str, key: str) -> str:
    """
    Return the first value recorded for an event attribute.

    Args:
        event: Event attribute table
        category: Event category, e.g. "create_resource_node"
        key: Attribute name within the category

    Returns:
        The value at FIRST_VALUE_INDEX

    Raises:
        MissingAttribute: If the key is absent or has no values
    """
    values = event.get(attribute_key(category, key))
    if not values:
        raise MissingAttribute(category, key)
    return values[FIRST_VALUE_INDEX]


def get_tx_hash(event: Event) -> str:
    """Return the transaction hash every event carries."""
    return get_attribute(event, "tx", "hash")
