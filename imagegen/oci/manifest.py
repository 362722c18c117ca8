from functools import cached_property

from pydantic import BaseModel

from imagegen.oci.client import Pusher
from imagegen.oci.descriptor import IMAGE_MANIFEST, Descriptor
from imagegen.oci.errors import SerializationError


def serialize(model: BaseModel) -> bytes:
    """Canonical bytes of a manifest or index, the input of its digest"""
    try:
        return model.model_dump_json(exclude_none=True).encode("utf-8")
    except ValueError as e:
        raise SerializationError(
            f"failed to serialize {model.__class__.__name__}: {e}"
        ) from e


class Manifest(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/manifest.md
    """

    config: Descriptor
    artifactType: str | None = None
    layers: list[Descriptor] = []
    subject: Descriptor | None = None
    annotations: dict[str, str] | None = None

    mediaType: str = IMAGE_MANIFEST
    schemaVersion: int = 2

    @cached_property
    def descriptor(self) -> Descriptor:
        return Descriptor.from_bytes(self.mediaType, serialize(self))

    def push(self, pusher: Pusher) -> Descriptor:
        """Push the manifest document itself, referenced content must exist already"""
        self.descriptor.push(pusher)
        return self.descriptor
