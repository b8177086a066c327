"""
Storage submodule: the tagged tasks document on disk.
"""

from .store import TaggedStore, ResolvedTagView
from .io import atomic_write, load_json_file, load_yaml_file

__all__ = [
    'TaggedStore',
    'ResolvedTagView',
    'atomic_write',
    'load_json_file',
    'load_yaml_file',
]
