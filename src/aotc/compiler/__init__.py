"""Source-to-object compilation pipeline."""

from .merge import merge_architectures
from .objects import ObjectCompiler

__all__ = [
    "ObjectCompiler",
    "merge_architectures",
]
