"""
MakerBench Backend — Abstract Screenshot Provider Interface
=============================================================

What:  Abstract base class for services that render a web page to an image.
How:   Concrete implementations inherit from ScreenshotProvider and implement
       capture() and status().
Who:   Called by BookmarkService when a submitted page has no Open Graph image.
When:  After metadata extraction, before the bookmark is inserted.

The submission workflow only depends on this contract, so a different
rendering backend (self-hosted Chrome, a commercial API, or a test double)
can be swapped in without touching the workflow.
"""

from abc import ABC, abstractmethod


class ScreenshotProvider(ABC):
    """
    Contract:
        - capture() returns PNG bytes for a URL
        - Implementations handle their own retry logic and error translation
        - All provider-specific errors are wrapped in ScreenshotServiceError
    """

    @abstractmethod
    async def capture(self, url: str) -> bytes:
        """
        Render `url` and return the image bytes.

        Raises:
            ScreenshotServiceError: provider not configured, or capture failed
                after all retries.
            CircuitBreakerOpenError: too many recent failures; the provider is
                not called at all.
        """
        ...

    @abstractmethod
    def status(self) -> str:
        """
        Lightweight availability report for the health endpoint.

        Returns one of "available", "disabled" or "circuit_open". Never makes
        a network call.
        """
        ...
