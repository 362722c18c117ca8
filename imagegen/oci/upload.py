import io
import logging
from typing import TYPE_CHECKING, BinaryIO

from imagegen.oci.errors import AlreadyExistsError, UploadError
from imagegen.oci.reader import HashingReader

if TYPE_CHECKING:
    from imagegen.oci.client import ContentWriter, Pusher
    from imagegen.oci.descriptor import Descriptor

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def copy(writer: "ContentWriter", source: BinaryIO, size: int, digest: str):
    """Stream exactly `size` bytes from source into writer and commit them.

    Nothing is committed unless the streamed bytes hash to `digest`.
    """
    reader = HashingReader(source)
    while reader.n < size:
        chunk = reader.read(min(CHUNK_SIZE, size - reader.n))
        if not chunk:
            raise UploadError(
                f"unexpected end of content for {digest}: "
                f"read {reader.n} of {size} bytes"
            )
        writer.write(chunk)
    if reader.digest != digest:
        raise UploadError(
            f"unexpected content digest, expected: {digest}, got: {reader.digest}"
        )
    writer.commit(size, digest)


def upload_bytes(pusher: "Pusher", descriptor: "Descriptor", data: bytes):
    """Push `data` as the content of `descriptor`.

    Content the registry already has is skipped, pushing the same
    descriptor twice is not an error.
    """
    try:
        writer = pusher.push(descriptor)
    except AlreadyExistsError:
        logger.info("content %s exists", descriptor.digest)
        return

    with writer:
        copy(writer, io.BytesIO(data), descriptor.size, descriptor.digest)
