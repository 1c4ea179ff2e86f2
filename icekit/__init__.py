"""Building blocks for ICE agents: digests, HMAC, configuration types and UDP socket helpers."""

__version__ = "0.1.0"
__all__ = ["config", "digest", "keyed_digest", "udp"]