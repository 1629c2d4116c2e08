"""
Selection of the downloadable asset of a media item: the original file, the
thumbnail, or one of the encoded resolutions.
"""

import re
from dataclasses import dataclass

from pmv_cli.exceptions import AssetError
from pmv_cli.models.vault import MediaMetadata

_RESOLUTION_PATTERN = re.compile(r"^(\d+)x(\d+)(?::(\d+))?$")


@dataclass(frozen=True)
class AssetSelector:
    kind: str
    width: int = 0
    height: int = 0
    fps: int = 0

    def __str__(self) -> str:
        if self.kind != "resolution":
            return self.kind
        if self.fps > 0:
            return f"resolution:{self.width}x{self.height}:{self.fps}"
        return f"resolution:{self.width}x{self.height}"


ORIGINAL = AssetSelector("original")
THUMBNAIL = AssetSelector("thumbnail")


def parse_asset(value: str) -> AssetSelector:
    """
    Parses an asset name such as ``original``, ``thumbnail``,
    ``resolution:1280x720:30`` (video) or ``resolution:800x600`` (image).
    ``res`` and ``r`` are accepted as short forms of ``resolution``.
    """
    kind, _, rest = value.strip().partition(":")
    kind = kind.lower()

    if kind == "original" and not rest:
        return ORIGINAL
    if kind == "thumbnail" and not rest:
        return THUMBNAIL
    if kind in ("resolution", "res", "r"):
        match = _RESOLUTION_PATTERN.match(rest)
        if match:
            width, height, fps = match.groups()
            return AssetSelector("resolution", int(width), int(height), int(fps or 0))

    raise AssetError(f"Invalid asset type: {value}")


def select_asset_path(media: MediaMetadata, asset: AssetSelector) -> str:
    """Returns the vault path of the selected asset, or raises AssetError."""
    if asset.kind == "original":
        if not media.url:
            raise AssetError("Original asset is not ready")
        return media.url

    if asset.kind == "thumbnail":
        if not media.thumbnail:
            raise AssetError("This media asset has no thumbnail")
        return media.thumbnail

    if not media.resolutions:
        raise AssetError("This media asset has no resolutions")
    for resolution in media.resolutions:
        if resolution.matches(asset.width, asset.height, asset.fps):
            if not resolution.url:
                raise AssetError("The resolution is not ready yet")
            return resolution.url
    raise AssetError(f"No resolution found matching {asset}")
