"""
Abstract base classes defining the integration contracts for SnapMarket.

Storage backends and inference gateways implement these interfaces so
the Draft Assembler can be wired to real services in production and to
fakes in tests.
"""

from abc import ABC, abstractmethod

from app.core.models import LocalImage


class IObjectStorage(ABC):
    """Interface for durable, publicly readable object storage."""

    @abstractmethod
    async def upload_image(self, image: LocalImage) -> str:
        """
        Store an image under a fresh collision-resistant name.

        Args:
            image: The selected image.

        Returns:
            A publicly resolvable URL for the stored object.

        Raises:
            UploadError: If the write failed.
            UrlResolutionError: If the written object has no public URL.
        """
        ...


class IInferenceGateway(ABC):
    """Interface for reaching the listing-draft inference function."""

    @abstractmethod
    async def generate(self, image_base64: str) -> dict:
        """
        Request a draft listing for a base64-encoded image.

        Args:
            image_base64: The image bytes, base64 encoded.

        Returns:
            The raw response body of the inference function. It may be a
            draft object or an ``{"error": ...}`` payload; callers validate it.

        Raises:
            InferenceError: If the function could not be reached.
        """
        ...
