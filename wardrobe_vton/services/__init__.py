"""External service clients."""

from .comfyui_client import ComfyUIClient, error_for_status

__all__ = ["ComfyUIClient", "error_for_status"]
