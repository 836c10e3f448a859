"""
Sift error hierarchy.

Pipeline code logs and swallows these where a dump must not fail its caller;
service code raises them and the HTTP adapter maps them to status codes.
"""


class SiftError(Exception):
    """Base class for all Sift errors"""


class ExtractionError(SiftError):
    """The generative model failed or returned an unusable proposal"""


class NotFoundError(SiftError):
    """A row does not exist or belongs to another user"""

    kind = "item"

    def __init__(self, object_id: str):
        self.object_id = object_id
        super().__init__(f"{self.kind} not found: {object_id}")


class DumpNotFoundError(NotFoundError):
    kind = "dump"


class InboxEntryNotFoundError(NotFoundError):
    kind = "inbox entry"


class EventNotFoundError(NotFoundError):
    kind = "event"


class PersonNotFoundError(NotFoundError):
    kind = "person"


class ItemNotFoundError(NotFoundError):
    kind = "actionable item"


class InvalidRequestError(SiftError):
    """A service call is missing required fields"""


class DuplicatePersonError(SiftError):
    """Two people with the same name under one user"""

    def __init__(self, user_id: str, name: str):
        self.user_id = user_id
        self.name = name
        super().__init__(f"person named {name!r} already exists")
