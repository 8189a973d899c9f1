"""ComfyUI API client for multi-reference FLUX 2 Klein outfit rendering."""

import asyncio
import logging
import random
import time
import uuid
from pathlib import Path
from typing import Any

import httpx

from ..agents.prompt_builder import TryOnPromptBuilder
from ..config import ComfyUIConfig, GenerationConfig
from ..errors import InvalidInputError, QuotaExceededError, SynthesisError
from ..interfaces import VisualSynthesisClient
from ..models import ImageArtifact, ReferenceImageSet
from ..utils.images import normalize_to_png

logger = logging.getLogger(__name__)


def error_for_status(status_code: int, message: str, kind: str | None = None) -> SynthesisError:
    """Build the SynthesisError subclass matching an HTTP failure."""
    if status_code == 429:
        return QuotaExceededError(message, status_code=status_code, kind=kind)
    if status_code in (400, 413, 415, 422):
        return InvalidInputError(message, status_code=status_code, kind=kind)
    return SynthesisError(message, status_code=status_code, kind=kind)


class ComfyUIClient(VisualSynthesisClient):
    """Client for ComfyUI's API using a FLUX 2 Klein reference workflow.

    Every reference image (body photos, then top, then bottom, then
    accessories) is encoded and chained into the conditioning as one
    ReferenceLatent, so the prompt can refer to them by position.
    """

    def __init__(
        self,
        config: ComfyUIConfig,
        comfyui_input_dir: Path,
        generation: GenerationConfig | None = None,
        prompt_builder: TryOnPromptBuilder | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.input_dir = comfyui_input_dir
        self.generation = generation or GenerationConfig()
        self.prompt_builder = prompt_builder or TryOnPromptBuilder()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport)
        return self._client

    async def check_connection(self) -> bool:
        """Verify ComfyUI is running and accessible."""
        try:
            response = await self.client.get(f"{self.config.base_url}/system_stats")
            return response.status_code == 200
        except httpx.TransportError:
            return False

    async def generate(
        self,
        body: ReferenceImageSet,
        top: ReferenceImageSet,
        bottom: ReferenceImageSet,
        accessories: ReferenceImageSet,
        volumetric_mode: bool,
    ) -> ImageArtifact:
        """Render the person from ``body`` wearing ``top``, ``bottom`` and ``accessories``."""
        if not body or not top or not bottom:
            raise InvalidInputError("Body, top and bottom references are all required.", kind="invalid_input")

        prompt = self.prompt_builder.build(
            body_count=len(body),
            top_count=len(top),
            bottom_count=len(bottom),
            accessory_count=len(accessories),
            volumetric_mode=volumetric_mode,
        )
        references = [*body, *top, *bottom, *accessories]
        staged = self.stage_references(references)

        try:
            workflow = self.build_workflow(
                reference_filenames=[path.name for path in staged],
                prompt=prompt,
                seed=self.generation.seed if self.generation.seed is not None else self._random_seed(),
            )
            prompt_id = await self._queue_prompt(workflow)
            logger.debug("Queued ComfyUI prompt %s with %d references", prompt_id, len(references))

            output_images = await self._wait_for_completion(prompt_id)
            if not output_images:
                raise SynthesisError("No images generated", kind="empty_output")

            image_data = await self._get_image(output_images[0])
        except httpx.TimeoutException as e:
            raise SynthesisError(f"ComfyUI request timed out: {e}", kind="timeout") from e
        except httpx.TransportError as e:
            raise SynthesisError(
                f"Cannot reach ComfyUI at {self.config.base_url}: {e}", kind="connection_error"
            ) from e
        finally:
            for path in staged:
                path.unlink(missing_ok=True)

        if not image_data:
            raise SynthesisError("ComfyUI returned an empty image", kind="empty_output")
        return ImageArtifact.from_bytes(image_data)

    def stage_references(self, images: list[ImageArtifact]) -> list[Path]:
        """Write reference images into ComfyUI's input directory as PNG."""
        self.input_dir.mkdir(parents=True, exist_ok=True)
        batch = uuid.uuid4().hex[:8]
        staged = []
        try:
            for index, image in enumerate(images):
                dest = self.input_dir / f"wardrobe_{batch}_{index:02d}.png"
                dest.write_bytes(normalize_to_png(image.data))
                staged.append(dest)
        except Exception:
            for path in staged:
                path.unlink(missing_ok=True)
            raise
        return staged

    def build_workflow(
        self,
        reference_filenames: list[str],
        prompt: str,
        seed: int,
    ) -> dict[str, Any]:
        """Build the FLUX 2 Klein workflow with one reference per image.

        The first reference (a body photo) sets the output dimensions.
        """
        gen = self.generation
        workflow: dict[str, Any] = {
            # Models
            "unet": {
                "class_type": "UNETLoader",
                "inputs": {"unet_name": gen.unet_name, "weight_dtype": "default"},
            },
            "clip": {
                "class_type": "CLIPLoader",
                "inputs": {"clip_name": gen.clip_name, "type": "flux2", "device": "default"},
            },
            "vae": {
                "class_type": "VAELoader",
                "inputs": {"vae_name": gen.vae_name},
            },
            # Text encode positive prompt, zeroed copy for negative
            "positive": {
                "class_type": "CLIPTextEncode",
                "inputs": {"clip": ["clip", 0], "text": prompt},
            },
            "negative": {
                "class_type": "ConditioningZeroOut",
                "inputs": {"conditioning": ["positive", 0]},
            },
        }

        positive: list[Any] = ["positive", 0]
        negative: list[Any] = ["negative", 0]
        for index, filename in enumerate(reference_filenames):
            workflow[f"load_{index}"] = {
                "class_type": "LoadImage",
                "inputs": {"image": filename},
            }
            workflow[f"scale_{index}"] = {
                "class_type": "ImageScaleToTotalPixels",
                "inputs": {
                    "image": [f"load_{index}", 0],
                    "upscale_method": "nearest-exact",
                    "megapixels": gen.megapixels,
                    "resolution_steps": 1,
                },
            }
            workflow[f"encode_{index}"] = {
                "class_type": "VAEEncode",
                "inputs": {"pixels": [f"scale_{index}", 0], "vae": ["vae", 0]},
            }
            # Chain each reference after the previous one
            workflow[f"ref_positive_{index}"] = {
                "class_type": "ReferenceLatent",
                "inputs": {"conditioning": positive, "latent": [f"encode_{index}", 0]},
            }
            workflow[f"ref_negative_{index}"] = {
                "class_type": "ReferenceLatent",
                "inputs": {"conditioning": negative, "latent": [f"encode_{index}", 0]},
            }
            positive = [f"ref_positive_{index}", 0]
            negative = [f"ref_negative_{index}", 0]

        workflow.update({
            "size": {
                "class_type": "GetImageSize",
                "inputs": {"image": ["scale_0", 0]},
            },
            "latent": {
                "class_type": "EmptyFlux2LatentImage",
                "inputs": {"width": ["size", 0], "height": ["size", 1], "batch_size": 1},
            },
            "noise": {
                "class_type": "RandomNoise",
                "inputs": {"noise_seed": seed},
            },
            "sampler": {
                "class_type": "KSamplerSelect",
                "inputs": {"sampler_name": "euler"},
            },
            "scheduler": {
                "class_type": "Flux2Scheduler",
                "inputs": {"steps": gen.steps, "width": ["size", 0], "height": ["size", 1]},
            },
            "guider": {
                "class_type": "CFGGuider",
                "inputs": {
                    "model": ["unet", 0],
                    "positive": positive,
                    "negative": negative,
                    "cfg": gen.cfg,
                },
            },
            "sample": {
                "class_type": "SamplerCustomAdvanced",
                "inputs": {
                    "noise": ["noise", 0],
                    "guider": ["guider", 0],
                    "sampler": ["sampler", 0],
                    "sigmas": ["scheduler", 0],
                    "latent_image": ["latent", 0],
                },
            },
            "decode": {
                "class_type": "VAEDecode",
                "inputs": {"samples": ["sample", 0], "vae": ["vae", 0]},
            },
            "save": {
                "class_type": "SaveImage",
                "inputs": {"images": ["decode", 0], "filename_prefix": "wardrobe_tryon"},
            },
        })
        return workflow

    async def _queue_prompt(self, workflow: dict[str, Any]) -> str:
        """Queue a prompt and return the prompt ID."""
        payload = {
            "prompt": workflow,
            "client_id": str(uuid.uuid4()),
        }

        response = await self.client.post(
            f"{self.config.base_url}/prompt",
            json=payload,
        )

        if response.status_code != 200:
            kind, detail = self._parse_error(response)
            raise error_for_status(
                response.status_code,
                f"ComfyUI rejected workflow: {detail[:500]}",
                kind=kind,
            )

        result = response.json()
        return result["prompt_id"]

    async def _wait_for_completion(self, prompt_id: str) -> list[dict[str, Any]]:
        """Poll until the prompt completes, return output image info."""
        start_time = time.monotonic()

        while time.monotonic() - start_time < self.config.timeout:
            response = await self.client.get(f"{self.config.base_url}/history/{prompt_id}")

            if response.status_code == 200:
                history = response.json()
                if prompt_id in history:
                    entry = history[prompt_id]
                    self._raise_for_execution_error(entry)
                    outputs = entry.get("outputs", {})
                    # Find SaveImage node outputs
                    for node_output in outputs.values():
                        if node_output.get("images"):
                            return node_output["images"]
                    if entry.get("status", {}).get("completed"):
                        return []
            elif response.status_code == 429:
                raise error_for_status(429, "ComfyUI is rate limiting history requests", kind="rate_limited")

            await asyncio.sleep(self.config.poll_interval)

        raise SynthesisError(f"Generation timed out after {self.config.timeout}s", kind="timeout")

    async def _get_image(self, image_info: dict[str, Any]) -> bytes:
        """Retrieve a generated image from ComfyUI."""
        params = {
            "filename": image_info["filename"],
            "subfolder": image_info.get("subfolder", ""),
            "type": image_info.get("type", "output"),
        }

        response = await self.client.get(
            f"{self.config.base_url}/view",
            params=params,
        )
        if response.status_code != 200:
            raise error_for_status(
                response.status_code,
                f"Could not download generated image {image_info['filename']}",
            )

        return response.content

    @staticmethod
    def _parse_error(response: httpx.Response) -> tuple[str | None, str]:
        """Pull ComfyUI's ``error.type`` and message out of an error response."""
        try:
            body = response.json()
        except ValueError:
            return None, response.text
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            message = error.get("message") or response.text
            details = error.get("details")
            if details:
                message = f"{message}: {details}"
            return error.get("type"), message
        if isinstance(error, str):
            return None, error
        return None, response.text

    @staticmethod
    def _raise_for_execution_error(entry: dict[str, Any]) -> None:
        status = entry.get("status", {})
        if status.get("status_str") != "error":
            return
        message = "ComfyUI execution failed"
        for event, data in status.get("messages", []):
            if event == "execution_error":
                message = data.get("exception_message") or message
                break
        raise SynthesisError(message.strip(), kind="execution_error")

    def _random_seed(self) -> int:
        """Generate a random seed."""
        return random.randint(0, 2**32 - 1)

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
