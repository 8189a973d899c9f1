"""Configuration management for the wardrobe try-on orchestrator."""

from pathlib import Path
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class ComfyUIConfig(BaseModel):
    """ComfyUI connection settings."""
    host: str = "127.0.0.1"
    port: int = 8188
    timeout: float = 300.0  # per generation, includes polling
    poll_interval: float = 0.5

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class GenerationConfig(BaseModel):
    """Image generation settings."""
    unet_name: str = "flux-2-klein-9b-fp8.safetensors"
    clip_name: str = "qwen_3_8b_fp8mixed.safetensors"
    vae_name: str = "flux2-vae.safetensors"
    steps: int = 4  # distilled model
    cfg: float = 1.0
    megapixels: float = 1.0
    seed: int | None = None  # None = random


class CritiqueConfig(BaseModel):
    """Stylist critique settings."""
    # False: a failed stylist call fails the task instead of degrading
    fallback_on_error: bool = True
    agent_name: str = "WardrobeStylist"


class RunnerConfig(BaseModel):
    """Combination runner settings."""
    # 1 = strict one-task-at-a-time execution in expansion order.
    max_concurrency: int = Field(default=1, ge=1)


class PipelineConfig(BaseSettings):
    """Main pipeline configuration."""

    # Paths
    output_dir: Path = Path("output/runs")
    comfyui_input_dir: Path = Path("ComfyUI/input")
    scan_store_path: Path = Path("output/saved_scans.json")

    # Sub-configs
    comfyui: ComfyUIConfig = Field(default_factory=ComfyUIConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    critique: CritiqueConfig = Field(default_factory=CritiqueConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)

    log_level: str = "INFO"

    # Azure OpenAI (loaded from .env)
    azure_openai_endpoint: str | None = None
    azure_openai_deployment: str | None = None

    class Config:
        env_file = ".env"
        env_prefix = ""
        env_nested_delimiter = "__"
        extra = "ignore"


def load_config() -> PipelineConfig:
    """Load configuration from environment and defaults."""
    return PipelineConfig()
