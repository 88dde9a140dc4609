"""
Exception hierarchy for the personalization engine.

Collaborator adapters raise these; engine services catch them at their
public boundary and degrade to a fallback instead of propagating.
"""


class PersonalizationError(Exception):
    """Base class for engine errors."""
    pass


class CollaboratorError(PersonalizationError):
    """A remote collaborator (catalog, preferences, interactions) failed."""
    pass


class CacheCorruptionError(PersonalizationError):
    """A local record could not be decoded. Always treated as a miss."""
    pass
