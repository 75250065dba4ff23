"""
Service-layer exceptions.

Services raise plain ValueError for bad input and PermissionError for access
problems; these subclasses let the route layer pick 404 and 409 responses.
"""


class NotFoundError(ValueError):
    """A referenced resource does not exist."""


class ConflictError(ValueError):
    """The operation would violate a uniqueness or reference constraint."""
