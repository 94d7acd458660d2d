"""
NIP-19 ``naddr`` decoding

An naddr is a bech32 string (human-readable part "naddr") whose payload
is a TLV sequence describing an addressable Nostr event:

    type 0  identifier ("d" tag), UTF-8
    type 1  relay hint, ASCII (may repeat)
    type 2  author public key, 32 bytes
    type 3  event kind, 32-bit big-endian unsigned

The bech32 layer (checksum and 5-bit regrouping) comes from the
``bech32`` package; only the TLV payload is read here.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import bech32


TLV_IDENTIFIER = 0
TLV_RELAY = 1
TLV_AUTHOR = 2
TLV_KIND = 3


class NaddrError(ValueError):
    """Raised when a string is not a well-formed naddr"""
    pass


@dataclass
class AddressPointer:
    """
    Decoded naddr payload

    Attributes:
        identifier: Value of the event's "d" tag
        pubkey: Author public key, lowercase hex
        kind: Event kind
        relays: Relay hints, in encoded order
    """
    identifier: str
    pubkey: str
    kind: int
    relays: List[str] = field(default_factory=list)

    def query_make(self, first: bool = False) -> Dict[str, Any]:
        """
        Build the single-event filter this address points at

        Relay hints are not carried into the query.

        Args:
            first: Append a "first" pipe step (component queries)
        """
        query: Dict[str, Any] = {
            "kinds": [self.kind],
            "authors": [self.pubkey],
            "#d": [self.identifier],
            "limit": 1,
        }
        if first:
            query["pipe"] = ["first"]
        return query


def tlv_parse(payload: bytes) -> Dict[int, List[bytes]]:
    entries: Dict[int, List[bytes]] = {}
    index = 0
    while index + 2 <= len(payload):
        kind, length = payload[index], payload[index + 1]
        value = payload[index + 2:index + 2 + length]
        if len(value) < length:
            raise NaddrError("truncated TLV entry")
        entries.setdefault(kind, []).append(value)
        index += 2 + length
    return entries


def naddr_decode(text: str) -> AddressPointer:
    """
    Decode an ``naddr1...`` string

    Raises:
        NaddrError: if the string is not a complete, valid naddr
    """
    decoded = bech32.bech32_decode(text.strip())
    hrp, data = decoded[0], decoded[1]
    if hrp is None or data is None:
        raise NaddrError("not a valid bech32 string")
    if hrp != "naddr":
        raise NaddrError(f"expected naddr, got {hrp}")

    payload = bech32.convertbits(data, 5, 8, False)
    if payload is None:
        raise NaddrError("invalid bech32 padding")
    entries = tlv_parse(bytes(payload))
    identifier = entries.get(TLV_IDENTIFIER)
    author = entries.get(TLV_AUTHOR)
    kind = entries.get(TLV_KIND)
    if not identifier or not author or not kind:
        raise NaddrError("naddr is missing identifier, author or kind")
    if len(author[0]) != 32 or len(kind[0]) != 4:
        raise NaddrError("naddr author or kind has the wrong length")

    return AddressPointer(
        identifier=identifier[0].decode('utf-8'),
        pubkey=author[0].hex(),
        kind=int.from_bytes(kind[0], 'big'),
        relays=[relay.decode('ascii', errors='replace') for relay in entries.get(TLV_RELAY, [])],
    )


def naddr_toQuery(text: str, first: bool = False) -> Optional[Dict[str, Any]]:
    """Query for an naddr string, or None if it does not decode"""
    try:
        return naddr_decode(text).query_make(first=first)
    except (NaddrError, UnicodeDecodeError):
        return None
