import base64
import json
import logging
import re
import uuid
from hashlib import sha256

import httpx
import pytest

from imagegen.oci.client import Client
from imagegen.oci.options import Options

REGISTRY_HOST = "registry.test"
REALM = "https://auth.test/token"
TOKEN = "test-token"
USERNAME = "user"
PASSWORD = "secret"

EMPTY_JSON = "application/vnd.oci.empty.v1+json"
IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"

BLOB = re.compile(r"^/v2/(?P<name>.+)/blobs/(?P<digest>sha256:[a-f0-9]{64})$")
UPLOADS = re.compile(r"^/v2/(?P<name>.+)/blobs/uploads/$")
UPLOAD = re.compile(r"^/v2/(?P<name>.+)/blobs/uploads/(?P<id>[a-f0-9-]+)$")
MANIFEST = re.compile(r"^/v2/(?P<name>.+)/manifests/(?P<reference>[^/]+)$")


def error(status_code: int, code: str, message: str) -> httpx.Response:
    return httpx.Response(
        status_code, json={"errors": [{"code": code, "message": message}]}
    )


class FakeRegistry:
    """In-memory OCI registry to serve through an httpx.MockTransport

    With `strict`, manifests are checked like a referrers capable registry
    does: no empty layer list, no scratch config on a referrer without an
    artifactType. Content must be pushed before a manifest references it.
    """

    def __init__(self, bearer: bool = False, strict: bool = True):
        self.bearer = bearer
        self.strict = strict
        self.blobs: dict[tuple[str, str], bytes] = {}
        self.manifests: dict[tuple[str, str], bytes] = {}
        self.tags: dict[tuple[str, str], str] = {}
        self.uploads: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        # digests in the order the registry stored them
        self.pushed: list[str] = []

    def client(self, options: Options) -> Client:
        return Client.from_options(
            options, http_client=httpx.Client(transport=httpx.MockTransport(self))
        )

    def manifest(self, name: str, reference: str) -> dict:
        digest = reference
        if not reference.startswith("sha256:"):
            digest = self.tags[(name, reference)]
        return json.loads(self.manifests[(name, digest)])

    def puts(self, kind: str) -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == "PUT" and f"/{kind}/" in r.url.path
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "auth.test":
            return self.token(request)
        if self.bearer and request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return httpx.Response(
                401,
                headers={
                    "Www-Authenticate": (
                        f'Bearer realm="{REALM}",service="{REGISTRY_HOST}",'
                        'scope="repository:test:pull,push"'
                    )
                },
            )

        path = request.url.path
        if path == "/v2/":
            return httpx.Response(200, json={})
        if match := BLOB.match(path):
            if (match["name"], match["digest"]) in self.blobs:
                return httpx.Response(200)
            return httpx.Response(404)
        if (match := UPLOADS.match(path)) and request.method == "POST":
            upload_id = str(uuid.uuid4())
            self.uploads[upload_id] = match["name"]
            return httpx.Response(
                202, headers={"Location": f"/v2/{match['name']}/blobs/uploads/{upload_id}"}
            )
        if (match := UPLOAD.match(path)) and request.method == "PUT":
            return self.put_blob(request, match["name"], match["id"])
        if match := MANIFEST.match(path):
            if request.method == "HEAD":
                return self.head_manifest(match["name"], match["reference"])
            if request.method == "PUT":
                return self.put_manifest(request, match["name"], match["reference"])
        return error(404, "NOT_FOUND", f"{request.method} {path}")

    def token(self, request: httpx.Request) -> httpx.Response:
        credentials = base64.b64encode(f"{USERNAME}:{PASSWORD}".encode()).decode()
        if request.headers.get("Authorization") != f"Basic {credentials}":
            return error(401, "UNAUTHORIZED", "bad credentials")
        return httpx.Response(200, json={"access_token": TOKEN})

    def put_blob(self, request: httpx.Request, name: str, upload_id: str):
        if self.uploads.pop(upload_id, None) != name:
            return error(404, "BLOB_UPLOAD_UNKNOWN", upload_id)
        digest = request.url.params["digest"]
        if f"sha256:{sha256(request.content).hexdigest()}" != digest:
            return error(400, "DIGEST_INVALID", digest)
        self.blobs[(name, digest)] = request.content
        self.pushed.append(digest)
        return httpx.Response(
            201,
            headers={
                "Location": f"/v2/{name}/blobs/{digest}",
                "Docker-Content-Digest": digest,
            },
        )

    def head_manifest(self, name: str, reference: str) -> httpx.Response:
        digest = self.tags.get((name, reference), reference)
        if (name, digest) not in self.manifests:
            return httpx.Response(404)
        return httpx.Response(200, headers={"Docker-Content-Digest": digest})

    def put_manifest(self, request: httpx.Request, name: str, reference: str):
        body = request.content
        document = json.loads(body)

        if "manifests" in document:
            for entry in document["manifests"]:
                if (name, entry["digest"]) not in self.manifests:
                    return error(400, "MANIFEST_BLOB_UNKNOWN", entry["digest"])
        else:
            for blob in [document["config"], *document.get("layers", [])]:
                if (name, blob["digest"]) not in self.blobs:
                    return error(400, "MANIFEST_BLOB_UNKNOWN", blob["digest"])
            if self.strict and not document.get("layers"):
                return error(400, "MANIFEST_INVALID", "manifest has no layers")
            if (
                self.strict
                and "subject" in document
                and document["config"]["mediaType"] == EMPTY_JSON
                and "artifactType" not in document
            ):
                return error(400, "MANIFEST_INVALID", "artifactType required")

        digest = f"sha256:{sha256(body).hexdigest()}"
        self.manifests[(name, digest)] = body
        if not reference.startswith("sha256:"):
            self.tags[(name, reference)] = digest
        self.pushed.append(digest)
        return httpx.Response(201, headers={"Docker-Content-Digest": digest})


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo the logging setup done by CLI invocations"""
    yield
    for name in ("imagegen", "httpx", "httpcore"):
        log = logging.getLogger(name)
        log.handlers.clear()
        log.propagate = True
        log.setLevel(logging.NOTSET)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def options() -> Options:
    return Options(login_server=REGISTRY_HOST, repository="test")


@pytest.fixture
def client(registry, options):
    with registry.client(options) as client:
        yield client


@pytest.fixture
def bearer_registry() -> FakeRegistry:
    return FakeRegistry(bearer=True)


@pytest.fixture
def lenient_registry() -> FakeRegistry:
    """Registry accepting every well formed manifest"""
    return FakeRegistry(strict=False)


@pytest.fixture
def credentials() -> Options:
    return Options(
        login_server=REGISTRY_HOST,
        username=USERNAME,
        password=PASSWORD,
        repository="test",
    )
