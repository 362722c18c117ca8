import logging
from functools import cached_property

from pydantic import BaseModel

from imagegen.oci.client import Pusher
from imagegen.oci.descriptor import IMAGE_INDEX, Descriptor
from imagegen.oci.manifest import serialize

logger = logging.getLogger(__name__)


class Index(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/image-index.md

    `mediaType` is optional in the document, some registries are tested with
    indexes that leave it out. The descriptor always carries the index type.
    """

    artifactType: str | None = None
    manifests: list[Descriptor] = []
    schemaVersion: int = 2
    mediaType: str | None = IMAGE_INDEX

    def add_manifest(self, descriptor: Descriptor):
        if descriptor in self.manifests:
            logger.info("'%s' already in index, skipping.", descriptor.digest)
            return
        self.manifests.append(descriptor)

    @cached_property
    def descriptor(self) -> Descriptor:
        return Descriptor.from_bytes(IMAGE_INDEX, serialize(self))

    def push(self, pusher: Pusher) -> Descriptor:
        self.descriptor.push(pusher)
        return self.descriptor
