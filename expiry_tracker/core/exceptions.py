"""Domain exceptions raised below the HTTP layer."""
from typing import List, Optional


class ExpiryTrackerError(Exception):
    """Base class for application errors."""


class ReminderSchedulingError(ExpiryTrackerError):
    """Submitting or cancelling reminder jobs on the queue failed."""


class DeliveryError(ExpiryTrackerError):
    """A push delivery attempt failed.

    ``retryable`` is False for outcomes another attempt cannot fix, such as a
    user without any registered device. ``invalid_tokens`` lists destinations
    the provider reported as unregistered.
    """

    def __init__(self, message: str, retryable: bool = True, invalid_tokens: Optional[List[str]] = None):
        super().__init__(message)
        self.retryable = retryable
        self.invalid_tokens = list(invalid_tokens or [])


class ImageHostError(ExpiryTrackerError):
    """Uploading or deleting an image on the image host failed."""
