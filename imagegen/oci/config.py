from pydantic import BaseModel, Field

from imagegen.oci.descriptor import EMPTY_JSON, Descriptor

CONFIG_MEDIA_TYPE = "application/acr.imagegent.test"
AUTHOR = "imagegen"


class EmptyConfig(Descriptor):
    """The well known `{}` blob used as scratch config and scratch layer."""

    mediaType: str = EMPTY_JSON
    digest: str = (
        "sha256:44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a"
    )
    size: int = 2
    data: bytes | None = Field(exclude=True, default=b"{}")


class ImageConfig(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/config.md
    """

    author: str = AUTHOR
    architecture: str = ""
    os: str = ""
    created: str | None = None
