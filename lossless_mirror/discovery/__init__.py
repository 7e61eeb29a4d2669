"""
Discovery: find what still has to be converted or copied.

    classifier - content-based audio detection, name-based cover detection
    mapper     - source to destination path mirroring (idempotency gate)
    scanner    - the tree walk producing audio and cover jobs
"""

from lossless_mirror.discovery.classifier import FileKind, classify, cover_mime_type
from lossless_mirror.discovery.mapper import identity, map_target, swap_extension
from lossless_mirror.discovery.scanner import Collision, DiscoveryResult, discover

__all__ = [
    "FileKind",
    "classify",
    "cover_mime_type",
    "identity",
    "map_target",
    "swap_extension",
    "Collision",
    "DiscoveryResult",
    "discover",
]
