class NotFoundError(LookupError):
    """A user, photo, product or collection item does not exist (or is not owned)."""


class InvalidRequestError(ValueError):
    """The request is well-formed but cannot be applied."""
