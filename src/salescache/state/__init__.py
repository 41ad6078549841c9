"""Persistence policy layer.

Decides whether a pending snapshot may be persisted, and describes the
outcome of every persist attempt as a :class:`~salescache.state.events.PersistEvent`.
"""
