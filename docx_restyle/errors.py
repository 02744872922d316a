from __future__ import annotations

USER_MESSAGE_LIMIT = 200


class DocxRestyleError(Exception):
    """Base class for every error raised by the analysis/rebuild core."""

    rule = "error"


class PackageReadError(DocxRestyleError):
    rule = "package_read"

    def __init__(self, message: str, part: str | None = None) -> None:
        super().__init__(message)
        self.part = part


class StyleResolutionAnomaly(DocxRestyleError):
    rule = "style_cycle"


class DeepDetectionFailure(DocxRestyleError):
    rule = "deep_detection"


class ImageIntegrityMismatch(DocxRestyleError):
    rule = "image_integrity"


class ImageEmbedFailure(DocxRestyleError):
    rule = "image_embed"


class ModificationBuildError(DocxRestyleError):
    rule = "modification_build"


def user_message(exc: BaseException, limit: int = USER_MESSAGE_LIMIT) -> str:
    text = str(exc).strip() or exc.__class__.__name__
    if limit <= 0 or len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[: limit - 3] + "..."
