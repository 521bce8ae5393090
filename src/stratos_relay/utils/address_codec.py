"""
Address and public key codecs for Stratos network identities.

Chain events carry bech32 addresses under the chain's own prefix. The SP node
expects P2P addresses under the SDS prefix, so every address is decoded to its
raw 20 bytes and re-encoded under the configured destination prefix.
"""

import binascii

import nacl.exceptions
import nacl.signing
from bech32 import bech32_decode, bech32_encode, convertbits

from ..errors import EncodingError, InvalidAddressEncoding, InvalidHex, InvalidKeyEncoding

ADDRESS_LENGTH = 20
PUBKEY_LENGTH = 32

# Amino prefix bytes of tendermint/PubKeyEd25519 followed by the 0x20 length byte
AMINO_PUBKEY_ED25519_PREFIX = bytes.fromhex("1624de6420")


def decode_address(bech32_text: str) -> bytes:
    """
    Decode a bech32 address into its raw bytes, ignoring its prefix.

    Args:
        bech32_text: Address such as "st1..." or "stsds1..."

    Returns:
        The 20 raw address bytes

    Raises:
        InvalidAddressEncoding: If the text is not valid bech32 or not an address
    """
    hrp, data = bech32_decode(bech32_text)
    if hrp is None or data is None:
        raise InvalidAddressEncoding(f"invalid bech32 address: {bech32_text!r}")

    raw = convertbits(data, 5, 8, False)
    if raw is None or len(raw) != ADDRESS_LENGTH:
        raise InvalidAddressEncoding(
            f"bech32 payload of {bech32_text!r} is not a {ADDRESS_LENGTH}-byte address"
        )
    return bytes(raw)


def encode_address(raw: bytes, prefix: str) -> str:
    """
    Encode raw address bytes as bech32 under the given prefix.

    Raises:
        EncodingError: If the address length is wrong or the prefix is empty
    """
    if len(raw) != ADDRESS_LENGTH:
        raise EncodingError(
            f"address must be {ADDRESS_LENGTH} bytes, got {len(raw)}"
        )
    if not prefix:
        raise EncodingError("bech32 prefix must not be empty")

    data = convertbits(raw, 8, 5)
    encoded = bech32_encode(prefix, data) if data is not None else None
    if not encoded:
        raise EncodingError(f"cannot encode address under prefix {prefix!r}")
    return encoded


def reencode_address(bech32_text: str, prefix: str) -> tuple[bytes, str]:
    """Decode a bech32 address and re-encode it under another prefix."""
    raw = decode_address(bech32_text)
    return raw, encode_address(raw, prefix)


def decode_public_key(hex_text: str) -> nacl.signing.VerifyKey:
    """
    Decode a hex public key blob into an Ed25519 verify key.

    Accepts the raw 32-byte key and the amino-wrapped form emitted by the chain.

    Raises:
        InvalidHex: If the text is not hex
        InvalidKeyEncoding: If the bytes are not an Ed25519 public key
    """
    try:
        blob = bytes.fromhex(hex_text)
    except ValueError as e:
        raise InvalidHex(f"error when trying to decode P2P pubkey hex: {e}") from e

    if len(blob) == PUBKEY_LENGTH:
        key_bytes = blob
    elif (len(blob) == len(AMINO_PUBKEY_ED25519_PREFIX) + PUBKEY_LENGTH
            and blob.startswith(AMINO_PUBKEY_ED25519_PREFIX)):
        key_bytes = blob[len(AMINO_PUBKEY_ED25519_PREFIX):]
    else:
        raise InvalidKeyEncoding(f"P2P pubkey is not an ed25519 key ({len(blob)} bytes)")

    try:
        return nacl.signing.VerifyKey(key_bytes)
    except (nacl.exceptions.ValueError, nacl.exceptions.TypeError) as e:
        raise InvalidKeyEncoding(f"error when trying to read P2P pubkey ed25519 binary: {e}") from e


def encode_public_key(key: nacl.signing.VerifyKey) -> str:
    """Return the lowercase hex of the raw key bytes."""
    return binascii.hexlify(bytes(key)).decode("ascii")
