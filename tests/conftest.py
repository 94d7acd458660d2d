"""
Shared fixtures
"""

import bech32
import pytest
from loguru import logger


@pytest.fixture
def warnings_capture():
    """Collect loguru WARNING+ messages emitted during a test"""
    messages = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]),
        level="WARNING",
        format="{message}",
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def naddr_build():
    """Encode an AddressPointer as a bech32 string (hrp "naddr" by default)"""
    def encode(pointer, hrp="naddr"):
        payload = bytearray()
        for kind, value in (
            (0, [pointer.identifier.encode("utf-8")]),
            (1, [relay.encode("ascii") for relay in pointer.relays]),
            (2, [bytes.fromhex(pointer.pubkey)]),
            (3, [pointer.kind.to_bytes(4, "big")]),
        ):
            for entry in value:
                payload.extend((kind, len(entry)))
                payload.extend(entry)
        return bech32.bech32_encode(hrp, bech32.convertbits(list(payload), 8, 5))
    return encode
