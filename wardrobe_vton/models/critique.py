"""Stylist critique models."""

from pydantic import BaseModel, Field, computed_field


class CritiqueRecord(BaseModel):
    """Structured styling feedback for one rendered look."""

    rating: float = Field(ge=1, le=10, description="Overall style rating from 1-10")
    suitability: str = Field(description="Fit analysis and how it works with the body type")
    color_analysis: str = Field(description="Seasonal color analysis and harmony assessment")
    verdict: str = Field(description="Punchy, memorable fashion statement")
    best_for_event: str = Field(description="Ideal occasion for this outfit")
    improvements: str | None = Field(default=None, description="Top 3 actionable recommendations")

    # True when the stylist call failed and this is the placeholder record
    degraded: bool = False

    @computed_field
    @property
    def rating_band(self) -> str:
        """Coarse label for the rating scale used in the stylist prompt."""
        if self.rating >= 8:
            return "editorial"
        if self.rating >= 6:
            return "solid"
        if self.rating >= 4:
            return "unremarkable"
        return "needs revision"


FALLBACK_RATING = 5


def fallback_critique() -> CritiqueRecord:
    """The fixed, neutral record used when the stylist cannot be reached."""
    return CritiqueRecord(
        rating=FALLBACK_RATING,
        suitability="Unable to complete detailed analysis due to a technical issue. Please try again.",
        color_analysis="Color analysis temporarily unavailable.",
        verdict="Analysis incomplete - please regenerate for full stylist feedback.",
        best_for_event="Unable to determine",
        improvements="Please regenerate analysis for personalized recommendations.",
        degraded=True,
    )
