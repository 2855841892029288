"""Artifact assemblers: glue generation, link and strip per output kind."""

from .base import LinkContext
from .bundle import BundleAssembler
from .dylib import DylibAssembler
from .executable import ExecutableAssembler

__all__ = [
    "BundleAssembler",
    "DylibAssembler",
    "ExecutableAssembler",
    "LinkContext",
]
