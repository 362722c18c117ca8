"""Registry push tests for Python

This module generates OCI images, indexes and artifacts and pushes them to a
registry to check which variations the registry accepts.
"""
import logging
import time

from imagegen.oci.builder import ARTIFACT_TYPE, INDEX_IMAGE_COUNT, Builder
from imagegen.oci.client import Client
from imagegen.oci.config import EmptyConfig, ImageConfig
from imagegen.oci.descriptor import Descriptor
from imagegen.oci.errors import ImagegenError
from imagegen.oci.index import Index
from imagegen.oci.layer import Layer
from imagegen.oci.manifest import Manifest
from imagegen.oci.matrix import (
    DEFAULT_CASES,
    ArtifactConstructOptions,
    CaseResult,
    MatrixRunner,
    Outcome,
)
from imagegen.oci.options import Options

logger = logging.getLogger(__name__)

__all__ = [
    "ARTIFACT_TYPE",
    "DEFAULT_CASES",
    "ArtifactConstructOptions",
    "Builder",
    "CaseResult",
    "Client",
    "Descriptor",
    "EmptyConfig",
    "ImageConfig",
    "ImagegenError",
    "Index",
    "Layer",
    "Manifest",
    "MatrixRunner",
    "Options",
    "Outcome",
    "generate_oci_artifacts",
    "generate_oci_index",
]


def generate_oci_index(
    client: Client,
    options: Options,
    has_media_type: bool = False,
    count: int = INDEX_IMAGE_COUNT,
) -> Descriptor:
    """Push `count` images and an index over them

    The first error aborts the push.
    """
    builder = Builder(options=options, client=client, logger=logger)
    repo = builder.repository()
    tag = str(int(time.time()))
    logger.info("Pushing index of %d images to %s:%s", count, repo, tag)
    return builder.push_index(repo, tag, count=count, has_media_type=has_media_type)


def generate_oci_artifacts(
    client: Client,
    options: Options,
    cases: tuple[ArtifactConstructOptions, ...] = DEFAULT_CASES,
) -> list[CaseResult]:
    """Push every artifact variation in `cases` and report how each went"""
    builder = Builder(options=options, client=client, logger=logger)
    return MatrixRunner(builder, cases=cases, logger=logger).run()
