"""
Tagging: infer metadata from the library layout and write it with mutagen.
"""

from lossless_mirror.tagging.deriver import DerivedTags, derive_tags
from lossless_mirror.tagging.tagger import Tagger, load_cover

__all__ = ["DerivedTags", "derive_tags", "Tagger", "load_cover"]
