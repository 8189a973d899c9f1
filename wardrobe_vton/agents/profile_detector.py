"""Profile detector - estimates body stats from a full-body photo."""

import logging

from ..errors import ProfileDetectionError
from ..models import DetectedProfile, ImageArtifact
from .llm import create_chat_client, image_message, parse_json_response, response_text

logger = logging.getLogger(__name__)


DETECTION_PROMPT = """You are an expert fashion consultant specializing in body analysis for personalized styling.

Analyze the full-body image for fashion fitting purposes:
1. HEIGHT: from body proportions and visual context, in imperial and metric (e.g. "5'9\\" / 175cm").
2. WEIGHT: from overall build and frame; give a range if uncertain (e.g. "155-165lbs / 70-75kg").
3. SKIN TONE: Porcelain, Fair, Light, Medium, Tan, Olive, Deep or Rich Deep, with undertone (e.g. "Fair with cool undertones").
4. BODY TYPE: Rectangular, Triangle (Pear), Inverted Triangle, Hourglass, Athletic or Oval, with a descriptor (e.g. "Athletic with broad shoulders").
5. NOTES: posture or asymmetries relevant to clothing fit.

Base all estimates on visible evidence. Be conservative and realistic.

Return ONLY a JSON object (use "" if you can't determine a field):
{
  "height": "...",
  "weight": "...",
  "skin_tone": "...",
  "body_type": "...",
  "additional_notes": "..."
}"""

FAILURE_MESSAGE = "Could not auto-detect stats. Please try a clearer image."


class ProfileDetector:
    """Auto-detects height, weight, skin tone and body type from a body photo."""

    def __init__(self, client=None, endpoint: str | None = None, deployment: str | None = None):
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
        """Lazy init for the detection agent."""
        if self._agent is None:
            self._agent = self.client.as_agent(
                name="BodyProfileDetector",
                instructions=DETECTION_PROMPT,
            )
        return self._agent

    async def detect(self, image: ImageArtifact) -> DetectedProfile:
        """Estimate body stats.

        Raises:
            ProfileDetectionError: the model could not be reached or returned no usable stats
        """
        try:
            agent = self._get_agent()
            response = await agent.run(image_message("Analyze this person:", image))
        except Exception as e:
            logger.error("Body analysis call failed: %s", e)
            raise ProfileDetectionError(FAILURE_MESSAGE) from e

        data = parse_json_response(response_text(response))
        detected = DetectedProfile(
            height=str(data.get("height") or ""),
            weight=str(data.get("weight") or ""),
            skin_tone=str(data.get("skin_tone") or data.get("skinTone") or ""),
            body_type=str(data.get("body_type") or data.get("bodyType") or ""),
            additional_notes=str(data.get("additional_notes") or data.get("additionalNotes") or ""),
        )
        if not any(detected.model_dump().values()):
            raise ProfileDetectionError(FAILURE_MESSAGE)

        logger.info("Detected body profile: %s", detected.body_type or "unknown body type")
        return detected
