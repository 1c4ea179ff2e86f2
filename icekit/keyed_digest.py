"""Keyed-hash message authentication (HMAC) over the digests in :mod:`icekit.digest`."""

from __future__ import annotations

from typing import Callable, Union

from icekit.digest import HashContext, new

_INNER_PAD = 0x36
_OUTER_PAD = 0x5C

HashFactory = Union[str, Callable[[], HashContext]]


def _make_context(factory: HashFactory) -> HashContext:
    if isinstance(factory, str):
        return new(factory)
    return factory()


class Hmac:
    """Incremental HMAC computed with any :class:`HashContext` factory.

    ``factory`` is either a hash class such as ``Sha1`` or an algorithm
    name accepted by :func:`icekit.digest.new`.  After ``final`` the
    context is ready to authenticate a new message with the same key.
    """

    def __init__(self, factory: HashFactory, key) -> None:
        self._hash = _make_context(factory)
        self.block_length = self._hash.block_length
        self.digest_length = self._hash.digest_length

        key_bytes = memoryview(key).tobytes()
        if len(key_bytes) > self.block_length:
            self._hash.update(key_bytes)
            key_bytes = self._hash.final()
        key_bytes = key_bytes.ljust(self.block_length, b"\x00")

        self._inner_key = bytes(b ^ _INNER_PAD for b in key_bytes)
        self._outer_key = bytes(b ^ _OUTER_PAD for b in key_bytes)
        self.reset()

    def reset(self) -> None:
        """Discard any message data and start a new inner hash."""
        self._hash.reset()
        self._hash.update(self._inner_key)

    def update(self, data) -> None:
        """Feed a bytes-like object into the authenticated message."""
        self._hash.update(data)

    def final(self) -> bytes:
        """Return the authentication code and start over with the same key."""
        inner_digest = self._hash.final()
        self._hash.update(self._outer_key)
        self._hash.update(inner_digest)
        mac = self._hash.final()
        self.reset()
        return mac


def hmac_digest(factory: HashFactory, key, data) -> bytes:
    """Compute the HMAC of ``data`` under ``key`` in one call."""
    mac = Hmac(factory, key)
    mac.update(data)
    return mac.final()