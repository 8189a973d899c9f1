"""Shared Azure OpenAI agent plumbing for the vision agents."""

import json

from azure.identity import AzureCliCredential
from agent_framework import ChatMessage, Content
from agent_framework.azure import AzureOpenAIResponsesClient

from ..models import ImageArtifact


def create_chat_client(
    endpoint: str | None = None,
    deployment: str | None = None,
) -> AzureOpenAIResponsesClient:
    """Create the Azure OpenAI client; unset values fall back to the AZURE_OPENAI_* env vars."""
    kwargs = {}
    if endpoint:
        kwargs["endpoint"] = endpoint
    if deployment:
        kwargs["deployment_name"] = deployment
    return AzureOpenAIResponsesClient(credential=AzureCliCredential(), **kwargs)


def image_message(text: str, image: ImageArtifact) -> ChatMessage:
    """A user message carrying an instruction and one image."""
    return ChatMessage(
        role="user",
        contents=[
            Content.from_text(text),
            Content.from_data(data=image.data, media_type=image.media_type),
        ],
    )


def response_text(response) -> str:
    """Concatenate the text parts of an agent response."""
    text = ""
    for msg in response.messages:
        for content in msg.contents:
            if getattr(content, "text", None):
                text += content.text
    return text


def parse_json_response(text: str) -> dict:
    """Parse JSON from LLM response, handling markdown code blocks."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        # Remove first and last lines (```json and ```)
        text = "\n".join(lines[1:-1])

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}
