"""Message digests (MD5, SHA-1, SHA-224, SHA-256) built on a shared block engine."""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod

_MASK = 0xFFFFFFFF
_LENGTH_MASK = (1 << 64) - 1


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (32 - bits))) & _MASK


def _rotr(value: int, bits: int) -> int:
    return ((value >> bits) | (value << (32 - bits))) & _MASK


class HashContext(ABC):
    """Incremental hash over 64-byte blocks with Merkle-Damgard padding.

    ``final`` returns the digest and puts the context back in its initial
    state, so one context can hash several messages in turn.
    """

    name: str = ""
    block_length: int = 64
    digest_length: int = 0
    _initial_state: tuple[int, ...] = ()
    _length_byteorder: str = "big"

    def __init__(self, data: bytes = b"") -> None:
        self.reset()
        if data:
            self.update(data)

    def reset(self) -> None:
        """Discard any input and return to the initial state."""
        self._state = list(self._initial_state)
        self._buffer = bytearray()
        self._count = 0

    def update(self, data) -> None:
        """Feed a bytes-like object into the hash."""
        chunk = memoryview(data).tobytes()
        self._count += len(chunk)
        self._buffer += chunk
        full = len(self._buffer) - len(self._buffer) % self.block_length
        for offset in range(0, full, self.block_length):
            self._compress(bytes(self._buffer[offset : offset + self.block_length]))
        del self._buffer[:full]

    def final(self) -> bytes:
        """Finish the hash, return the digest and reset the context."""
        bit_length = (self._count * 8) & _LENGTH_MASK
        zeros = (self.block_length - 9 - self._count) % self.block_length
        padding = (
            b"\x80"
            + b"\x00" * zeros
            + bit_length.to_bytes(8, self._length_byteorder)
        )
        self.update(padding)
        digest = self._digest()[: self.digest_length]
        self.reset()
        return digest

    @abstractmethod
    def _compress(self, block: bytes) -> None:
        """Mix one full block into the state."""

    @abstractmethod
    def _digest(self) -> bytes:
        """Serialise the state."""


_MD5_K = (
    0xD76AA478, 0xE8C7B756, 0x242070DB, 0xC1BDCEEE, 0xF57C0FAF, 0x4787C62A, 0xA8304613, 0xFD469501,
    0x698098D8, 0x8B44F7AF, 0xFFFF5BB1, 0x895CD7BE, 0x6B901122, 0xFD987193, 0xA679438E, 0x49B40821,
    0xF61E2562, 0xC040B340, 0x265E5A51, 0xE9B6C7AA, 0xD62F105D, 0x02441453, 0xD8A1E681, 0xE7D3FBC8,
    0x21E1CDE6, 0xC33707D6, 0xF4D50D87, 0x455A14ED, 0xA9E3E905, 0xFCEFA3F8, 0x676F02D9, 0x8D2A4C8A,
    0xFFFA3942, 0x8771F681, 0x6D9D6122, 0xFDE5380C, 0xA4BEEA44, 0x4BDECFA9, 0xF6BB4B60, 0xBEBFBC70,
    0x289B7EC6, 0xEAA127FA, 0xD4EF3085, 0x04881D05, 0xD9D4D039, 0xE6DB99E5, 0x1FA27CF8, 0xC4AC5665,
    0xF4292244, 0x432AFF97, 0xAB9423A7, 0xFC93A039, 0x655B59C3, 0x8F0CCC92, 0xFFEFF47D, 0x85845DD1,
    0x6FA87E4F, 0xFE2CE6E0, 0xA3014314, 0x4E0811A1, 0xF7537E82, 0xBD3AF235, 0x2AD7D2BB, 0xEB86D391,
)

_MD5_SHIFTS = (7, 12, 17, 22) * 4 + (5, 9, 14, 20) * 4 + (4, 11, 16, 23) * 4 + (6, 10, 15, 21) * 4


class Md5(HashContext):
    """MD5 digest (16 bytes)."""

    name = "md5"
    digest_length = 16
    _initial_state = (0x67452301, 0xEFCDAB89, 0x98BADCFE, 0x10325476)
    _length_byteorder = "little"

    def _compress(self, block: bytes) -> None:
        words = struct.unpack("<16I", block)
        a, b, c, d = self._state
        for i, (k, shift) in enumerate(zip(_MD5_K, _MD5_SHIFTS)):
            if i < 16:
                f = d ^ (b & (c ^ d))
                g = i
            elif i < 32:
                f = c ^ (d & (b ^ c))
                g = (5 * i + 1) % 16
            elif i < 48:
                f = b ^ c ^ d
                g = (3 * i + 5) % 16
            else:
                f = c ^ (b | (~d & _MASK))
                g = (7 * i) % 16
            f = (f + a + k + words[g]) & _MASK
            a, d, c = d, c, b
            b = (b + _rotl(f, shift)) & _MASK
        self._state = [(s + v) & _MASK for s, v in zip(self._state, (a, b, c, d))]

    def _digest(self) -> bytes:
        return struct.pack("<4I", *self._state)


class Sha1(HashContext):
    """SHA-1 digest (20 bytes)."""

    name = "sha1"
    digest_length = 20
    _initial_state = (0x67452301, 0xEFCDAB89, 0x98BADCFE, 0x10325476, 0xC3D2E1F0)

    def _compress(self, block: bytes) -> None:
        w = list(struct.unpack(">16I", block))
        for i in range(16, 80):
            w.append(_rotl(w[i - 3] ^ w[i - 8] ^ w[i - 14] ^ w[i - 16], 1))
        a, b, c, d, e = self._state
        for i, word in enumerate(w):
            if i < 20:
                t = (d ^ (b & (c ^ d))) + 0x5A827999
            elif i < 40:
                t = (b ^ c ^ d) + 0x6ED9EBA1
            elif i < 60:
                t = ((b & c) | (d & (b | c))) + 0x8F1BBCDC
            else:
                t = (b ^ c ^ d) + 0xCA62C1D6
            t = (t + _rotl(a, 5) + e + word) & _MASK
            a, b, c, d, e = t, a, _rotl(b, 30), c, d
        self._state = [(s + v) & _MASK for s, v in zip(self._state, (a, b, c, d, e))]

    def _digest(self) -> bytes:
        return struct.pack(">5I", *self._state)


_SHA256_K = (
    0x428A2F98, 0x71374491, 0xB5C0FBCF, 0xE9B5DBA5, 0x3956C25B, 0x59F111F1, 0x923F82A4, 0xAB1C5ED5,
    0xD807AA98, 0x12835B01, 0x243185BE, 0x550C7DC3, 0x72BE5D74, 0x80DEB1FE, 0x9BDC06A7, 0xC19BF174,
    0xE49B69C1, 0xEFBE4786, 0x0FC19DC6, 0x240CA1CC, 0x2DE92C6F, 0x4A7484AA, 0x5CB0A9DC, 0x76F988DA,
    0x983E5152, 0xA831C66D, 0xB00327C8, 0xBF597FC7, 0xC6E00BF3, 0xD5A79147, 0x06CA6351, 0x14292967,
    0x27B70A85, 0x2E1B2138, 0x4D2C6DFC, 0x53380D13, 0x650A7354, 0x766A0ABB, 0x81C2C92E, 0x92722C85,
    0xA2BFE8A1, 0xA81A664B, 0xC24B8B70, 0xC76C51A3, 0xD192E819, 0xD6990624, 0xF40E3585, 0x106AA070,
    0x19A4C116, 0x1E376C08, 0x2748774C, 0x34B0BCB5, 0x391C0CB3, 0x4ED8AA4A, 0x5B9CCA4F, 0x682E6FF3,
    0x748F82EE, 0x78A5636F, 0x84C87814, 0x8CC70208, 0x90BEFFFA, 0xA4506CEB, 0xBEF9A3F7, 0xC67178F2,
)


class Sha256(HashContext):
    """SHA-256 digest (32 bytes)."""

    name = "sha256"
    digest_length = 32
    _initial_state = (
        0x6A09E667, 0xBB67AE85, 0x3C6EF372, 0xA54FF53A,
        0x510E527F, 0x9B05688C, 0x1F83D9AB, 0x5BE0CD19,
    )

    def _compress(self, block: bytes) -> None:
        w = list(struct.unpack(">16I", block))
        for i in range(16, 64):
            x, y = w[i - 15], w[i - 2]
            gamma0 = _rotr(x, 7) ^ _rotr(x, 18) ^ (x >> 3)
            gamma1 = _rotr(y, 17) ^ _rotr(y, 19) ^ (y >> 10)
            w.append((gamma1 + w[i - 7] + gamma0 + w[i - 16]) & _MASK)
        a, b, c, d, e, f, g, h = self._state
        for k, word in zip(_SHA256_K, w):
            sigma1 = _rotr(e, 6) ^ _rotr(e, 11) ^ _rotr(e, 25)
            ch = g ^ (e & (f ^ g))
            t0 = (h + sigma1 + ch + k + word) & _MASK
            sigma0 = _rotr(a, 2) ^ _rotr(a, 13) ^ _rotr(a, 22)
            maj = ((a | b) & c) | (a & b)
            t1 = (sigma0 + maj) & _MASK
            a, b, c, d, e, f, g, h = (t0 + t1) & _MASK, a, b, c, (d + t0) & _MASK, e, f, g
        self._state = [
            (s + v) & _MASK for s, v in zip(self._state, (a, b, c, d, e, f, g, h))
        ]

    def _digest(self) -> bytes:
        return struct.pack(">8I", *self._state)


class Sha224(Sha256):
    """SHA-224 digest (28 bytes): SHA-256 with other initial values, truncated."""

    name = "sha224"
    digest_length = 28
    _initial_state = (
        0xC1059ED8, 0x367CD507, 0x3070DD17, 0xF70E5939,
        0xFFC00B31, 0x68581511, 0x64F98FA7, 0xBEFA4FA4,
    )


_ALGORITHMS: dict[str, type[HashContext]] = {
    cls.name: cls for cls in (Md5, Sha1, Sha224, Sha256)
}


def new(name: str) -> HashContext:
    """Return a fresh context for the algorithm called ``name``."""
    try:
        factory = _ALGORITHMS[name.lower()]
    except KeyError:
        raise ValueError(f"unsupported hash algorithm: {name!r}") from None
    return factory()