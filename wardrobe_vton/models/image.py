"""Image payload model shared by reference images and generated artifacts."""

import uuid

from pydantic import BaseModel, ConfigDict, Field

from ..utils.images import decode_data_url, encode_data_url, sniff_media_type


def new_id() -> str:
    return uuid.uuid4().hex[:12]


class ImageArtifact(BaseModel):
    """An immutable image held in memory."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    id: str = Field(default_factory=new_id)
    data: bytes = Field(repr=False)
    media_type: str = "image/png"

    @classmethod
    def from_bytes(cls, data: bytes, image_id: str | None = None) -> "ImageArtifact":
        if not data:
            raise ValueError("Image data is empty")
        return cls(id=image_id or new_id(), data=data, media_type=sniff_media_type(data))

    @classmethod
    def from_data_url(cls, data_url: str, image_id: str | None = None) -> "ImageArtifact":
        return cls.from_bytes(decode_data_url(data_url), image_id=image_id)

    def to_data_url(self) -> str:
        return encode_data_url(self.data, self.media_type)

    @property
    def size(self) -> int:
        return len(self.data)
