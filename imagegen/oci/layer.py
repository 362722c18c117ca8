from datetime import datetime

from imagegen.oci.descriptor import IMAGE_LAYER, Descriptor


class Layer(Descriptor):
    @classmethod
    def generate(cls, tag: str, index: int) -> "Layer":
        """Create a new layer with content unique to this tag, position and moment

        The timestamp keeps digests from colliding with layers pushed by earlier runs.
        """
        data = f"TestLayer {tag} {index}-at-time {datetime.now()}".encode("utf-8")
        return cls.from_bytes(IMAGE_LAYER, data)
