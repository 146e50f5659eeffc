#  Copyright (c) Kuba Szczodrzyński 2021-5-5.

from typing import List

from hypothesis import given, settings
from hypothesis import strategies as st

from shannon import Shannon

keys = st.binary(min_size=0, max_size=40)
nonces = st.one_of(st.none(), st.binary(min_size=0, max_size=20))
messages = st.binary(min_size=0, max_size=200)


def engine(key: bytes, nonce) -> Shannon:
    shannon = Shannon(key)
    if nonce is not None:
        shannon.set_nonce(nonce)
    return shannon


@st.composite
def split_message(draw):
    message = draw(messages)
    cuts = draw(st.lists(st.integers(min_value=0, max_value=len(message)), max_size=8))
    bounds = [0] + sorted(cuts) + [len(message)]
    chunks = [message[start:end] for start, end in zip(bounds, bounds[1:])]
    return message, chunks


@given(keys, nonces, messages)
def test_roundtrip(key: bytes, nonce, message: bytes):
    sender = engine(key, nonce)
    receiver = engine(key, nonce)

    encrypted = sender.encrypt(message)
    decrypted = receiver.decrypt(encrypted)

    assert decrypted == message
    assert sender.finish() == receiver.finish()


@given(keys, nonces, messages)
def test_deterministic(key: bytes, nonce, message: bytes):
    first = engine(key, nonce)
    second = engine(key, nonce)

    assert first.encrypt(message) == second.encrypt(message)
    assert first.finish(32) == second.finish(32)


def _chunked(method: str, shannon: Shannon, chunks: List[bytes]) -> bytes:
    out = b""
    for chunk in chunks:
        out += getattr(shannon, method)(chunk)
    return out


@settings(max_examples=200)
@given(keys, split_message())
def test_encrypt_chunking_invariance(key: bytes, split):
    message, chunks = split
    whole = Shannon(key)
    pieces = Shannon(key)

    assert _chunked("encrypt", pieces, chunks) == whole.encrypt(message)
    assert pieces.finish() == whole.finish()


@settings(max_examples=200)
@given(keys, split_message())
def test_decrypt_chunking_invariance(key: bytes, split):
    message, chunks = split
    whole = Shannon(key)
    pieces = Shannon(key)

    assert _chunked("decrypt", pieces, chunks) == whole.decrypt(message)
    assert pieces.finish() == whole.finish()


@given(keys, split_message())
def test_stream_chunking_invariance(key: bytes, split):
    message, chunks = split
    whole = Shannon(key)
    pieces = Shannon(key)

    assert _chunked("stream", pieces, chunks) == whole.stream(message)


@given(keys, split_message())
def test_mac_only_chunking_invariance(key: bytes, split):
    message, chunks = split
    whole = Shannon(key)
    whole.mac_only(message)
    pieces = Shannon(key)
    for chunk in chunks:
        pieces.mac_only(chunk)

    assert pieces.finish() == whole.finish()


@given(keys, nonces, messages)
def test_in_place_matches_copy(key: bytes, nonce, message: bytes):
    in_place = bytearray(message)
    engine(key, nonce).encrypt(in_place)
    copy = bytearray(len(message))
    engine(key, nonce).encrypt(message, copy)

    assert in_place == copy


@given(keys, st.data())
def test_key_avalanche(key: bytes, data):
    key = key or b"\x00"
    bit = data.draw(st.integers(min_value=0, max_value=len(key) * 8 - 1))
    flipped = bytearray(key)
    flipped[bit // 8] ^= 1 << (bit % 8)

    assert Shannon(key).stream(bytes(16)) != Shannon(bytes(flipped)).stream(bytes(16))


@given(keys, st.binary(min_size=1, max_size=20), st.data())
def test_nonce_avalanche(key: bytes, nonce: bytes, data):
    bit = data.draw(st.integers(min_value=0, max_value=len(nonce) * 8 - 1))
    flipped = bytearray(nonce)
    flipped[bit // 8] ^= 1 << (bit % 8)

    assert engine(key, nonce).stream(bytes(16)) != engine(key, bytes(flipped)).stream(bytes(16))


@given(keys, st.binary(max_size=20), messages, messages)
def test_nonce_restart_matches_fresh_engine(key: bytes, nonce: bytes, first: bytes, second: bytes):
    reused = Shannon(key)
    reused.set_nonce(b"previous message")
    reused.encrypt(first)
    reused.finish()
    reused.set_nonce(nonce)

    fresh = engine(key, nonce)

    assert reused.encrypt(second) == fresh.encrypt(second)
    assert reused.finish() == fresh.finish()


@given(keys, messages)
def test_tampering_changes_mac(key: bytes, message: bytes):
    message = message or b"\x00"
    sender = Shannon(key)
    encrypted = bytearray(sender.encrypt(message))
    encrypted[-1] ^= 0x80

    receiver = Shannon(key)
    receiver.decrypt(encrypted)

    assert receiver.finish() != sender.finish()
