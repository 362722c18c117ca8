from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING
from urllib.parse import urlparse, urlunparse

import httpx

from imagegen.oci.descriptor import MANIFEST_MEDIA_TYPES, Descriptor, digest_of
from imagegen.oci.errors import (
    AlreadyExistsError,
    RegistryRejectionError,
    UploadError,
)
from imagegen.oci.roundtrip import RoundTripInfo, RoundTripper
from imagegen.oci.transport import RegistryRequest, Transport

if TYPE_CHECKING:
    from imagegen.oci.options import Options

logger = logging.getLogger(__name__)

DOCKER_HUB = "registry-1.docker.io"
OCTET_STREAM = "application/octet-stream"


def _clean_url(registry_url: str) -> str:
    if "://" not in registry_url:
        registry_url = f"https://{registry_url}"
    parts = urlparse(registry_url.rstrip("/"))
    if parts.netloc == "docker.io":
        parts = parts._replace(netloc=DOCKER_HUB)
    return urlunparse(parts)


class Client:
    """Client for the push side of the OCI registry API."""

    def __init__(self, registry_url: str, transport: Transport):
        self.registry_url = _clean_url(registry_url)
        self.transport = transport

    @classmethod
    def from_options(
        cls, options: Options, http_client: httpx.Client | None = None
    ) -> Client:
        transport = Transport(
            RoundTripper(http_client),
            username=options.username,
            password=options.password,
            auth_type=options.auth_type,
        )
        return cls(registry_url=options.registry_url, transport=transport)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self.transport.close()

    def url(self, uri: str) -> str:
        if uri.startswith(("http://", "https://")):
            return uri
        return f"{self.registry_url}{uri}"

    def request(
        self,
        method: str,
        uri: str,
        body: bytes | None = None,
        content_type: str | None = None,
        accept: str | None = None,
    ) -> RoundTripInfo:
        return self.transport.round_trip(
            RegistryRequest(
                method=method,
                url=self.url(uri),
                body=body,
                content_type=content_type,
                accept=accept,
            )
        )

    def head(self, uri, **kwargs) -> RoundTripInfo:
        return self.request("HEAD", uri, **kwargs)

    def post(self, uri, **kwargs) -> RoundTripInfo:
        return self.request("POST", uri, **kwargs)

    def put(self, uri, **kwargs) -> RoundTripInfo:
        return self.request("PUT", uri, **kwargs)

    def pusher(self, name: str, reference: str | None = None) -> Pusher:
        return Pusher(client=self, name=name, reference=reference)


class Pusher:
    """Push content into repository `name`.

    Manifests and indexes are pushed under `reference` when one is given,
    by digest otherwise.
    """

    def __init__(self, client: Client, name: str, reference: str | None = None):
        self.client = client
        self.name = name
        self.reference = reference

    def push(self, descriptor: Descriptor) -> ContentWriter:
        """Open a writer for `descriptor`.

        Raises AlreadyExistsError when the registry has the content already.
        """
        if descriptor.mediaType in MANIFEST_MEDIA_TYPES:
            return self._push_manifest(descriptor)
        return self._push_blob(descriptor)

    def _push_manifest(self, descriptor: Descriptor) -> ContentWriter:
        """
        ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#pushing-manifests
        """
        reference = self.reference or descriptor.digest
        uri = f"/v2/{self.name}/manifests/{reference}"
        info = self.client.head(uri, accept=descriptor.mediaType)
        existing = info.response.content_digest or reference
        if info.response.code == httpx.codes.OK and existing == descriptor.digest:
            raise AlreadyExistsError(descriptor.digest)
        return ManifestWriter(self.client, self.client.url(uri), descriptor)

    def _push_blob(self, descriptor: Descriptor) -> ContentWriter:
        """
        ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#pushing-blobs
        """
        info = self.client.head(f"/v2/{self.name}/blobs/{descriptor.digest}")
        if info.response.code == httpx.codes.OK:
            raise AlreadyExistsError(descriptor.digest)

        # Push the blob using the POST then PUT method
        info = self.client.post(
            f"/v2/{self.name}/blobs/uploads/", content_type=OCTET_STREAM
        )
        if info.response.code != httpx.codes.ACCEPTED:
            raise UploadError(
                f"failed to start upload of {descriptor.digest}: "
                f"expected: 202, got: {info.response.code}"
            )
        if not info.response.location:
            raise UploadError(
                f"registry did not return an upload location for {descriptor.digest}"
            )
        return BlobWriter(self.client, info.response.location, descriptor)


class ContentWriter:
    """Collects the content of one descriptor and sends it on commit."""

    def __init__(self, client: Client, url: str, descriptor: Descriptor):
        self.client = client
        self.url = url
        self.descriptor = descriptor
        self._buffer = io.BytesIO()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def write(self, data: bytes) -> int:
        return self._buffer.write(data)

    def close(self):
        self._buffer.close()

    def commit(self, size: int, digest: str):
        data = self._buffer.getvalue()
        if len(data) != size:
            raise UploadError(
                f"unexpected commit size for {digest}, "
                f"expected: {size}, got: {len(data)}"
            )
        if (actual := digest_of(data)) != digest:
            raise UploadError(
                f"unexpected commit digest, expected: {digest}, got: {actual}"
            )
        self._upload(data)

    def _upload(self, data: bytes):
        raise NotImplementedError


class BlobWriter(ContentWriter):
    def _upload(self, data: bytes):
        url = httpx.URL(self.url).copy_add_param("digest", self.descriptor.digest)
        info = self.client.put(str(url), body=data, content_type=OCTET_STREAM)
        if info.response.code != httpx.codes.CREATED:
            raise UploadError(
                f"failed to upload {self.descriptor.digest}: "
                f"expected: 201, got: {info.response.code}"
            )


class ManifestWriter(ContentWriter):
    def _upload(self, data: bytes):
        logger.debug("Pushing manifest: %s", data)
        info = self.client.put(
            self.url, body=data, content_type=self.descriptor.mediaType
        )
        if not httpx.codes.is_success(info.response.code):
            raise RegistryRejectionError(
                f"registry rejected {self.descriptor.digest} "
                f"with status {info.response.code}: "
                f"{info.response.body.decode('utf-8', errors='replace')}",
                status_code=info.response.code,
                body=info.response.body,
            )
