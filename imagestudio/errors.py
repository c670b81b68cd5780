from __future__ import annotations


class ImageEffectsError(Exception):
    """Base class for every failure raised by the effects engine."""


class UnsupportedFormatError(ImageEffectsError, ValueError):
    """Source is not a raster image this pipeline can decode (e.g. SVG)."""


class ImageTooLargeError(ImageEffectsError, ValueError):
    """Source exceeds the decode limits (bytes or pixel dimensions)."""


class DecodeError(ImageEffectsError, ValueError):
    """Source bytes are corrupt or unreadable."""


class FetchError(ImageEffectsError):
    """A remote source could not be retrieved."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnknownEffectError(ImageEffectsError, ValueError):
    def __init__(self, effect_id: str) -> None:
        super().__init__(f"Unknown effect: {effect_id!r}")
        self.effect_id = effect_id
