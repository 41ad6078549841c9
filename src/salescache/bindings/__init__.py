"""Reactive bindings between in-memory state and persistent storage."""

from salescache.bindings.collection import CollectionBinding
from salescache.bindings.scalar import ScalarBinding

__all__ = ["CollectionBinding", "ScalarBinding"]
