"""Stylist critic - structured feedback on a rendered look."""

import logging

from ..config import CritiqueConfig
from ..interfaces import CritiqueSynthesisClient
from ..models import CritiqueRecord, ImageArtifact, UserProfile, fallback_critique
from .llm import create_chat_client, image_message, parse_json_response, response_text

logger = logging.getLogger(__name__)


STYLIST_SYSTEM = """You are a renowned Fashion Director with 20 years of experience at leading fashion magazines. Your critiques are honest, specific and constructive.

You will receive a photo of a client wearing an outfit, together with the client's profile. Analyze the outfit on these dimensions:

1. OVERALL RATING (1-10): 8-10 editorial-worthy, 6-7 solid with minor tweaks, 4-5 functional but unremarkable, 1-3 major revision needed. A 7+ means genuinely impressive.
2. FIT & SUITABILITY: how the proportions work with the body type, whether the silhouette flatters, fit issues (too tight, too loose, wrong length), and how it serves the target occasion.
3. COLOR HARMONY: seasonal color analysis from the skin tone (Spring, Summer, Autumn, Winter), which colors work, which clash, and better alternatives.
4. STYLE VERDICT: one or two memorable sentences.
5. OCCASION: the occasion this outfit best suits.
6. IMPROVEMENTS: top 3 specific changes, including accessory suggestions.

Return ONLY a JSON object, no explanation:
{
  "rating": 7,
  "suitability": "...",
  "color_analysis": "...",
  "verdict": "...",
  "best_for_event": "...",
  "improvements": "..."
}"""


VOLUMETRIC_ANALYSIS = """This client requested a 3D TECHNICAL FIT ANALYSIS based on volumetric scanning:
- Garment clearance: ease between body and fabric at key measurement points, compression zones vs. excess volume.
- Fabric drape mechanics: tension, pulling or bunching, and whether fabric weight suits the body.
- Silhouette volumetrics: shoulder-waist-hip balance and visual weight distribution.
- Fit precision: use technical terms (pitch, break, rise, drop), reference fit standards (slim, regular, relaxed) and suggest alterations (take in, let out, shorten)."""


class StylistCritic(CritiqueSynthesisClient):
    """Critiques a try-on image for a given user profile.

    With ``fallback_on_error`` (the default) any failure of the LLM call is
    absorbed into the fixed degraded record, so a combination is never lost
    over its critique.
    """

    def __init__(
        self,
        config: CritiqueConfig | None = None,
        client=None,
        endpoint: str | None = None,
        deployment: str | None = None,
    ):
        self.config = config or CritiqueConfig()
        self._client = client
        self._endpoint = endpoint
        self._deployment = deployment
        self._agent = None

    @property
    def client(self):
        if self._client is None:
            self._client = create_chat_client(self._endpoint, self._deployment)
        return self._client

    def _get_agent(self):
        """Lazy init for the stylist agent."""
        if self._agent is None:
            self._agent = self.client.as_agent(
                name=self.config.agent_name,
                instructions=STYLIST_SYSTEM,
            )
        return self._agent

    def build_prompt(self, profile: UserProfile) -> str:
        occasion = profile.occasion or "Versatile / Multi-purpose"
        lines = [
            "CLIENT PROFILE:",
            f"- Height: {profile.height or 'Not specified'}",
            f"- Weight: {profile.weight or 'Not specified'}",
            f"- Skin Tone: {profile.skin_tone or 'Not specified'}",
            f"- Body Type: {profile.body_type or 'Not specified'}",
            f"- Target Occasion: {occasion}",
            f"- Style Preferences: {profile.style_preferences or 'Not specified'}",
        ]
        if profile.additional_notes:
            lines.append(f"- Notes: {profile.additional_notes}")
        if profile.volumetric_mode:
            lines.extend(["", VOLUMETRIC_ANALYSIS])
        lines.extend(["", "Analyze the outfit in this image:"])
        return "\n".join(lines)

    async def critique(self, image: ImageArtifact, profile: UserProfile) -> CritiqueRecord:
        try:
            return await self._request_critique(image, profile)
        except Exception as e:
            if not self.config.fallback_on_error:
                raise
            logger.warning("Stylist critique failed, using fallback record: %s", e)
            return fallback_critique()

    async def _request_critique(self, image: ImageArtifact, profile: UserProfile) -> CritiqueRecord:
        agent = self._get_agent()
        response = await agent.run(image_message(self.build_prompt(profile), image))

        data = parse_json_response(response_text(response))
        if not data:
            raise ValueError("No critique returned by the stylist agent")
        return self._to_record(data)

    @staticmethod
    def _to_record(data: dict) -> CritiqueRecord:
        # Accept the camelCase keys some models echo back
        def pick(*keys: str) -> str:
            for key in keys:
                value = data.get(key)
                if value:
                    return str(value).strip()
            return ""

        raw_rating = data.get("rating")
        if raw_rating is None or raw_rating == "":
            raise ValueError("Critique has no rating")
        rating = float(raw_rating)

        fields = {
            "suitability": pick("suitability"),
            "color_analysis": pick("color_analysis", "colorAnalysis"),
            "verdict": pick("verdict"),
            "best_for_event": pick("best_for_event", "bestForEvent"),
        }
        missing = [name for name, value in fields.items() if not value]
        if missing:
            raise ValueError(f"Critique is missing {', '.join(missing)}")

        return CritiqueRecord(
            rating=min(max(rating, 1.0), 10.0),
            improvements=pick("improvements") or None,
            **fields,
        )
