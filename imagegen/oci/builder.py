"""Build and push test images, indexes and artifacts.

Content is always pushed before anything that references it: config and
layers before their manifest, manifests before their index, and the
subject before the artifact pointing at it.
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from imagegen.oci.client import Client, Pusher
from imagegen.oci.config import CONFIG_MEDIA_TYPE, EmptyConfig, ImageConfig
from imagegen.oci.descriptor import IMAGE_INDEX, Descriptor
from imagegen.oci.errors import SerializationError
from imagegen.oci.index import Index
from imagegen.oci.layer import Layer
from imagegen.oci.manifest import Manifest

if TYPE_CHECKING:
    from imagegen.oci.matrix import ArtifactConstructOptions
    from imagegen.oci.options import Options

ARTIFACT_TYPE = "application/acr.imagegent.artifact.test"
REPO_PREFIX = "imagegentest"
INDEX_IMAGE_COUNT = 11
IMAGE_LAYER_COUNT = 2


def marshal(config: Any) -> bytes:
    try:
        if isinstance(config, BaseModel):
            return config.model_dump_json(exclude_none=True).encode("utf-8")
        return json.dumps(config).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(f"failed to serialize config: {e}") from e


class Builder:
    def __init__(
        self,
        options: Options,
        client: Client,
        logger: logging.Logger = logging.getLogger(__name__),
    ):
        self.options = options
        self.client = client
        self.logger = logger

    def repository(self) -> str:
        if self.options.repository:
            return self.options.repository
        return f"{REPO_PREFIX}{int(time.time())}"

    def pusher(self, repo: str, tag: str) -> Pusher:
        self.logger.debug("Pushing to %s/%s:%s", self.client.registry_url, repo, tag)
        return self.client.pusher(name=repo, reference=tag)

    def push_image(
        self,
        repo: str,
        tag: str,
        config: Any = None,
        layer_count: int = IMAGE_LAYER_COUNT,
    ) -> Descriptor:
        """Push a simple OCI image with `layer_count` generated layers"""
        if config is None:
            config = ImageConfig()
        pusher = self.pusher(repo, tag)

        config_desc = Descriptor.from_bytes(CONFIG_MEDIA_TYPE, marshal(config))
        config_desc.push(pusher)

        manifest = Manifest(config=config_desc)
        for i in range(layer_count):
            layer = Layer.generate(tag, i)
            layer.push(pusher)
            manifest.layers.append(layer)

        return manifest.push(pusher)

    def push_index(
        self,
        repo: str,
        tag: str,
        count: int = INDEX_IMAGE_COUNT,
        has_media_type: bool = False,
    ) -> Descriptor:
        """Push `count` simple images and an index referencing all of them"""
        index = Index(mediaType=IMAGE_INDEX if has_media_type else None)
        for i in range(count):
            index.add_manifest(self.push_image(repo, f"{tag}-oci-{i}"))

        descriptor = index.push(self.pusher(repo, tag))
        self.logger.info(
            "Pushed index %s with %d manifests to %s:%s",
            descriptor.digest,
            len(index.manifests),
            repo,
            tag,
        )
        return descriptor

    def push_artifact(
        self,
        subject: Descriptor | None,
        repo: str,
        tag: str,
        opts: ArtifactConstructOptions,
    ) -> Descriptor:
        """Push an artifact manifest shaped by `opts`.

        Whatever the registry answers is passed on unchanged, configurations
        the registry should refuse are pushed like any other.
        """
        pusher = self.pusher(repo, tag)
        scratch = EmptyConfig()

        if opts.config_is_scratch:
            config_desc = scratch
        else:
            config_desc = Descriptor.from_bytes(
                CONFIG_MEDIA_TYPE, marshal(ImageConfig())
            )
        config_desc.push(pusher)
        pushed = {config_desc}

        layers = []
        for i in range(opts.layer_count):
            layer = scratch if opts.layers_are_scratch else Layer.generate(tag, i)
            if layer not in pushed:
                layer.push(pusher)
                pushed.add(layer)
            layers.append(layer)

        manifest = Manifest(
            config=config_desc,
            layers=layers,
            subject=subject,
            artifactType=ARTIFACT_TYPE if opts.includes_artifact_type else None,
        )
        return manifest.push(pusher)

    def subject_for(
        self, opts: ArtifactConstructOptions, subject: Descriptor
    ) -> Descriptor | None:
        """The subject an artifact built from `opts` should point at"""
        if not opts.has_subject:
            return None
        if opts.subject_in_registry:
            return subject
        # Random content, so the registry can not have it
        return Descriptor.from_bytes(IMAGE_INDEX, str(uuid.uuid4()).encode("utf-8"))
