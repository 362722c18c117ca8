"""Single HTTP exchanges with the registry, recorded for trace logging."""
import json
import logging
import time
from datetime import datetime, timezone
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, field_serializer

from imagegen.oci.reader import HashingReader, IterReader

logger = logging.getLogger(__name__)

HEADER_CHALLENGE = "Www-Authenticate"
HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_ACCEPT = "Accept"
HEADER_LINK = "Link"
HEADER_LOCATION = "Location"
HEADER_CONTENT_DIGEST = "Docker-Content-Digest"


class Request(BaseModel):
    method: str
    url: str
    authorization: str | None = None
    started_at: datetime


class Response(BaseModel):
    code: int = 0
    challenge: str | None = None
    location: str | None = None
    link: str | None = None
    content_digest: str | None = None
    size: int = 0
    sha256: str | None = None
    body: bytes = b""

    @field_serializer("body")
    def _serialize_body(self, body: bytes):
        if not body:
            return None
        try:
            return json.loads(body)
        except ValueError:
            # Not JSON, keep the dump readable anyway
            return {"pretty": quote(body.decode("utf-8", errors="replace"))}


class RoundTripInfo(BaseModel):
    """
    What was sent and received during one HTTP round trip.
    """

    request: Request
    response: Response = Field(default_factory=Response)
    elapsed: str | None = None

    def dump(self) -> str:
        return self.model_dump_json(indent=3, exclude_none=True)


class RoundTripper:
    """Send requests over an httpx client and record each exchange."""

    def __init__(self, client: httpx.Client | None = None):
        self.client = client if client is not None else httpx.Client()

    def close(self):
        self.client.close()

    def round_trip(self, request: httpx.Request) -> RoundTripInfo:
        info = RoundTripInfo(
            request=Request(
                method=request.method,
                url=str(request.url),
                authorization=request.headers.get(HEADER_AUTHORIZATION),
                started_at=datetime.now(timezone.utc),
            )
        )
        start = time.monotonic()
        try:
            response = self.client.send(request, stream=True)
            try:
                reader = HashingReader(IterReader(response.iter_bytes()))
                body = reader.read()
            finally:
                response.close()

            location = response.headers.get(HEADER_LOCATION)
            info.response = Response(
                code=response.status_code,
                challenge=response.headers.get(HEADER_CHALLENGE),
                location=str(request.url.join(location)) if location else None,
                link=response.headers.get(HEADER_LINK),
                content_digest=response.headers.get(HEADER_CONTENT_DIGEST),
                size=reader.n,
                sha256=reader.digest,
                body=body,
            )
            return info
        finally:
            info.elapsed = f"{time.monotonic() - start:.3f}s"
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(info.dump())
