"""
Error types raised by the review scheduler.
"""


class ReviewSchedulerError(Exception):
    """Base class for scheduler failures surfaced to callers."""


class InvalidRatingError(ReviewSchedulerError, ValueError):
    def __init__(self, name: str, value):
        super().__init__(f"{name} must be an integer between 1 and 5, got {value!r}")
        self.name = name
        self.value = value


class ItemNotFoundError(ReviewSchedulerError, LookupError):
    def __init__(self, word_id: int):
        super().__init__(f"Word {word_id} not found")
        self.word_id = word_id


class ReviewConflictError(ReviewSchedulerError):
    """The stored review state changed since it was loaded."""

    def __init__(self, user_id: str, word_id: int, expected_version=None, actual_version=None):
        super().__init__(
            f"Review state for word {word_id} (user {user_id}) changed concurrently: "
            f"expected version {expected_version}, found {actual_version}"
        )
        self.user_id = user_id
        self.word_id = word_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class StorageUnavailableError(ReviewSchedulerError):
    """The review store could not be reached or failed mid-operation."""
