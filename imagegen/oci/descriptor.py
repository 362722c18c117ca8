from hashlib import sha256
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from imagegen.oci.upload import upload_bytes

if TYPE_CHECKING:
    from imagegen.oci.client import Pusher

IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
IMAGE_LAYER = "application/vnd.oci.image.layer.v1.tar"
EMPTY_JSON = "application/vnd.oci.empty.v1+json"

MANIFEST_MEDIA_TYPES = frozenset({IMAGE_MANIFEST, IMAGE_INDEX})


def digest_of(data: bytes) -> str:
    return f"sha256:{sha256(data).hexdigest()}"


class Descriptor(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/descriptor.md

    Descriptors are identified by their digest alone.
    """

    digest: str
    size: int
    mediaType: str
    urls: list[str] | None = None
    annotations: dict[str, str] | None = None
    artifactType: str | None = None
    data: bytes | None = Field(exclude=True, default=None)

    @classmethod
    def from_bytes(cls, media_type: str, data: bytes) -> "Descriptor":
        return cls(
            mediaType=media_type,
            digest=digest_of(data),
            size=len(data),
            data=data,
        )

    def __eq__(self, other):
        if not isinstance(other, Descriptor):
            return NotImplemented
        return self.digest == other.digest

    def __hash__(self):
        return hash(self.digest)

    def push(self, pusher: "Pusher"):
        if self.data is None:
            raise ValueError(f"Missing {self.__class__.__name__}.data")
        upload_bytes(pusher, self, self.data)
