#  Copyright (c) Kuba Szczodrzyński 2021-5-5.

import hmac
import logging
from typing import List, Optional, Union

from .errors import BufferSizeError, MacMismatchError, MessageFinishedError, NotKeyedError

N = 16
FOLD = N
INITKONST = 0x6996C53A
KEYP = 13
MASK = 0xFFFFFFFF
MAC_LENGTH = 16

Buffer = Union[bytes, bytearray, memoryview]
WritableBuffer = Union[bytearray, memoryview]

logger = logging.getLogger(__name__)


def rotate_left(i: int, distance: int) -> int:
    return ((i << distance) | (i >> (32 - distance))) & MASK


def sbox(i: int) -> int:
    i ^= rotate_left(i, 5) | rotate_left(i, 7)
    i ^= rotate_left(i, 19) | rotate_left(i, 22)
    return i


def sbox2(i: int) -> int:
    i ^= rotate_left(i, 7) | rotate_left(i, 22)
    i ^= rotate_left(i, 5) | rotate_left(i, 19)
    return i


def shift4(buf: Buffer, i: int) -> int:
    return (
        ((buf[i + 3] & 0xFF) << 24)
        | ((buf[i + 2] & 0xFF) << 16)
        | ((buf[i + 1] & 0xFF) << 8)
        | (buf[i] & 0xFF)
    )


def pack4(buf: WritableBuffer, i: int, word: int) -> None:
    buf[i + 3] = (word >> 24) & 0xFF
    buf[i + 2] = (word >> 16) & 0xFF
    buf[i + 1] = (word >> 8) & 0xFF
    buf[i] = word & 0xFF


def is_writable(buf: Buffer) -> bool:
    if isinstance(buf, bytearray):
        return True
    if isinstance(buf, memoryview):
        return not buf.readonly
    return False


class Shannon:
    """
    Shannon stream cipher with an integrated MAC.

    Every transform may be called any number of times with chunks of any
    size; the result equals a single call over the concatenated input.
    An instance is not thread-safe, use one per session.
    """

    def __init__(self, key: Optional[Buffer] = None) -> None:
        # shift register, CRC accumulator and the register saved after keying
        self.R: List[int] = [0] * N
        self.CRC: List[int] = [0] * N
        self.initR: List[int] = [0] * N
        self.konst = 0
        # last keystream word, partial MAC word, buffered bits of either
        self.sbuf = 0
        self.mbuf = 0
        self.nbuf = 0
        self.keyed = False
        self.finished = False

        if key is not None:
            self.set_key(key)

    def _cycle(self) -> None:
        t = self.R[12] ^ self.R[13] ^ self.konst
        t = sbox(t) ^ rotate_left(self.R[0], 1)

        self.R.pop(0)
        self.R.append(t)

        t = sbox2(self.R[2] ^ self.R[15])
        self.R[0] ^= t
        self.sbuf = t ^ self.R[8] ^ self.R[12]

    def _crc(self, i: int) -> None:
        # 32 parallel CRC-16s, polynomial x^16 + x^15 + x^2 + 1
        t = self.CRC[0] ^ self.CRC[2] ^ self.CRC[15] ^ i

        self.CRC.pop(0)
        self.CRC.append(t)

    def _mac(self, i: int) -> None:
        self._crc(i)

        self.R[KEYP] ^= i

    def _init_state(self) -> None:
        self.R = [1, 1]

        for i in range(2, N):
            self.R.append((self.R[i - 1] + self.R[i - 2]) & MASK)

        self.konst = INITKONST

    def _save_state(self) -> None:
        self.initR = list(self.R)

    def _reload_state(self) -> None:
        self.R = list(self.initR)

    def _gen_konst(self) -> None:
        self.konst = self.R[0]

    def _add_key(self, k: int) -> None:
        self.R[KEYP] ^= k

    def _diffuse(self) -> None:
        for _ in range(FOLD):
            self._cycle()

    def _load_key(self, key: Buffer) -> None:
        length = len(key)
        whole = length & ~0x03

        for i in range(0, whole, 4):
            self._add_key(shift4(key, i))
            self._cycle()

        if whole < length:
            extra = bytes(key[whole:]).ljust(4, b"\x00")
            self._add_key(shift4(extra, 0))
            self._cycle()

        self._add_key(length & MASK)
        self._cycle()

        # CRC is only scratch space here
        self.CRC = list(self.R)
        self._diffuse()

        for i in range(N):
            self.R[i] ^= self.CRC[i]

    def set_key(self, key: Buffer) -> None:
        # stays unusable if loading fails halfway
        self.keyed = False
        self._init_state()
        self._load_key(key)
        self._gen_konst()
        self._save_state()
        self.nbuf = 0
        self.keyed = True
        self.finished = False
        logger.debug("Loaded %d-byte key", len(key))

    def set_nonce(self, nonce: Buffer) -> None:
        if not self.keyed:
            raise NotKeyedError("Key must be set before the nonce")
        self.finished = True
        self._reload_state()
        self.konst = INITKONST
        self._load_key(nonce)
        self._gen_konst()
        self.nbuf = 0
        self.finished = False
        logger.debug("Loaded %d-byte nonce", len(nonce))

    def set_nonce32(self, value: int) -> None:
        """
        Set a 32-bit counter nonce. The value is serialized big-endian
        before being folded in like any other nonce.
        """
        if not 0 <= value <= MASK:
            raise ValueError(f"Nonce {value} does not fit in 32 bits")
        self.set_nonce(value.to_bytes(4, "big"))

    def _check_ready(self) -> None:
        if not self.keyed:
            raise NotKeyedError("Key must be set before processing data")
        if self.finished:
            raise MessageFinishedError("Message already finished, set a new nonce")

    @staticmethod
    def _output_for(buf: Buffer, output: Optional[WritableBuffer]) -> WritableBuffer:
        if output is None:
            if is_writable(buf):
                return buf
            return bytearray(buf)
        if not is_writable(output):
            raise TypeError(f"Output buffer must be writable, not {type(output).__name__}")
        if len(output) < len(buf):
            raise BufferSizeError(
                f"Output buffer too short: {len(output)} < {len(buf)} bytes"
            )
        return output

    @staticmethod
    def _result(buf: Buffer, output: Optional[WritableBuffer], out: WritableBuffer) -> Buffer:
        if output is None and out is not buf:
            return bytes(out)
        return out

    def _stream_bytes(self, buf: Buffer, out: WritableBuffer, i: int, n: int) -> int:
        while self.nbuf != 0 and n != 0:
            out[i] = buf[i] ^ (self.sbuf & 0xFF)
            self.sbuf >>= 8
            self.nbuf -= 8
            i += 1
            n -= 1
        return i

    def stream(self, buf: Buffer, output: Optional[WritableBuffer] = None) -> Buffer:
        """XOR keystream into the data. The MAC is not updated."""
        self._check_ready()
        out = self._output_for(buf, output)
        length = len(buf)

        i = self._stream_bytes(buf, out, 0, length)

        end = i + ((length - i) & ~0x03)
        while i < end:
            self._cycle()
            pack4(out, i, shift4(buf, i) ^ self.sbuf)
            i += 4

        if i < length:
            self._cycle()
            self.nbuf = 32
            self._stream_bytes(buf, out, i, length - i)

        return self._result(buf, output, out)

    def _mac_bytes(self, buf: Buffer, i: int, n: int) -> int:
        while self.nbuf != 0 and n != 0:
            self.mbuf ^= buf[i] << (32 - self.nbuf)
            self.nbuf -= 8
            i += 1
            n -= 1
        return i

    def mac_only(self, buf: Buffer) -> None:
        """Accumulate plaintext into the MAC without encrypting it."""
        self._check_ready()
        length = len(buf)
        i = 0

        if self.nbuf != 0:
            i = self._mac_bytes(buf, i, length)
            if self.nbuf != 0:
                return
            self._mac(self.mbuf)

        end = i + ((length - i) & ~0x03)
        while i < end:
            self._cycle()
            self._mac(shift4(buf, i))
            i += 4

        if i < length:
            self._cycle()
            self.mbuf = 0
            self.nbuf = 32
            self._mac_bytes(buf, i, length - i)

    def _encrypt_bytes(self, buf: Buffer, out: WritableBuffer, i: int, n: int) -> int:
        while self.nbuf != 0 and n != 0:
            shift = 32 - self.nbuf
            t = buf[i]
            self.mbuf ^= t << shift
            out[i] = t ^ ((self.sbuf >> shift) & 0xFF)
            self.nbuf -= 8
            i += 1
            n -= 1
        return i

    # noinspection DuplicatedCode
    def encrypt(self, buf: Buffer, output: Optional[WritableBuffer] = None) -> Buffer:
        self._check_ready()
        out = self._output_for(buf, output)
        length = len(buf)
        i = 0

        if self.nbuf != 0:
            i = self._encrypt_bytes(buf, out, i, length)
            if self.nbuf != 0:
                return self._result(buf, output, out)
            self._mac(self.mbuf)

        end = i + ((length - i) & ~0x03)
        while i < end:
            self._cycle()
            t = shift4(buf, i)
            self._mac(t)
            pack4(out, i, t ^ self.sbuf)
            i += 4

        if i < length:
            self._cycle()
            self.mbuf = 0
            self.nbuf = 32
            self._encrypt_bytes(buf, out, i, length - i)

        return self._result(buf, output, out)

    def _decrypt_bytes(self, buf: Buffer, out: WritableBuffer, i: int, n: int) -> int:
        while self.nbuf != 0 and n != 0:
            shift = 32 - self.nbuf
            t = buf[i] ^ ((self.sbuf >> shift) & 0xFF)
            out[i] = t
            self.mbuf ^= t << shift
            self.nbuf -= 8
            i += 1
            n -= 1
        return i

    # noinspection DuplicatedCode
    def decrypt(self, buf: Buffer, output: Optional[WritableBuffer] = None) -> Buffer:
        self._check_ready()
        out = self._output_for(buf, output)
        length = len(buf)
        i = 0

        if self.nbuf != 0:
            i = self._decrypt_bytes(buf, out, i, length)
            if self.nbuf != 0:
                return self._result(buf, output, out)
            self._mac(self.mbuf)

        end = i + ((length - i) & ~0x03)
        while i < end:
            self._cycle()
            t = shift4(buf, i) ^ self.sbuf
            self._mac(t)
            pack4(out, i, t)
            i += 4

        if i < length:
            self._cycle()
            self.mbuf = 0
            self.nbuf = 32
            self._decrypt_bytes(buf, out, i, length - i)

        return self._result(buf, output, out)

    def finish(self, output: Union[int, WritableBuffer] = MAC_LENGTH) -> Buffer:
        """
        Finish the message and produce its MAC tag.

        Pass either the tag length (a new ``bytes`` is returned) or a writable
        buffer to fill. A pending partial word is accumulated as if padded
        with zero bytes. A new nonce or key is required afterwards.
        """
        self._check_ready()
        if isinstance(output, int):
            if output < 0:
                raise ValueError(f"Invalid MAC length {output}")
            out = bytearray(output)
        elif is_writable(output):
            out = output
        else:
            raise TypeError(f"Output buffer must be writable, not {type(output).__name__}")

        if self.nbuf != 0:
            self._mac(self.mbuf)

        # only the register is perturbed, never the CRC
        self._cycle()
        self._add_key(INITKONST ^ (self.nbuf << 3))

        self.nbuf = 0

        for j in range(N):
            self.R[j] ^= self.CRC[j]

        self._diffuse()

        n = len(out)
        i = 0
        while n > 0:
            self._cycle()

            if n >= 4:
                pack4(out, i, self.sbuf)
                n -= 4
                i += 4
            else:
                for j in range(n):
                    out[i + j] = (self.sbuf >> (j * 8)) & 0xFF
                break

        self.finished = True
        logger.debug("Finished message with %d-byte MAC", len(out))

        if isinstance(output, int):
            return bytes(out)
        return out

    def verify(self, mac: Buffer, length: int = MAC_LENGTH) -> None:
        """
        Finish the message and check its tag against ``mac``, which must be
        exactly ``length`` bytes long.
        """
        if length < 1:
            raise ValueError(f"Invalid MAC length {length}")
        expected = self.finish(length)
        if len(mac) != length or not hmac.compare_digest(expected, bytes(mac)):
            raise MacMismatchError("MAC verification failed")
