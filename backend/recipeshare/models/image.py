"""
Recipe Share Backend — Stored Image Reference
================================================

What:  Value object pairing a stored image's public id with its URL.
Why:   Users (avatar, cover photo) and recipes (dish photo) all keep the same
       two facts about an image. Mapping them as a SQLAlchemy composite keeps
       the pair together in Python while storing two plain columns.
"""

import dataclasses


@dataclasses.dataclass
class ImageRef:
    """
    Attributes:
        public_id: Key in the image store; empty for externally hosted defaults
        url:       Absolute URL clients load the image from
    """

    public_id: str
    url: str
