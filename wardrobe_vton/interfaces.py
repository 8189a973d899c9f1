"""Contracts for the two remote generation calls a run depends on."""

from abc import ABC, abstractmethod

from .models import CritiqueRecord, ImageArtifact, ReferenceImageSet, UserProfile


class VisualSynthesisClient(ABC):
    """Renders one try-on image from reference image sets."""

    @abstractmethod
    async def generate(
        self,
        body: ReferenceImageSet,
        top: ReferenceImageSet,
        bottom: ReferenceImageSet,
        accessories: ReferenceImageSet,
        volumetric_mode: bool,
    ) -> ImageArtifact:
        """Return the synthesized image.

        Raises:
            SynthesisError: (or a subclass) when no image could be produced.
                Implementations never return an empty artifact.
        """


class CritiqueSynthesisClient(ABC):
    """Produces stylist feedback for a rendered look."""

    @abstractmethod
    async def critique(self, image: ImageArtifact, profile: UserProfile) -> CritiqueRecord:
        """Return a critique.

        Implementations absorb their own failures into a degraded record
        unless explicitly configured to raise.
        """
