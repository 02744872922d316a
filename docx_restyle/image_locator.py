from __future__ import annotations

import posixpath
from dataclasses import dataclass, field

from .analysis_log import AnalysisLogState, warn
from .errors import ImageIntegrityMismatch, PackageReadError
from .models import ExtractedImage
from .ooxml import (
    DOCUMENT_PART,
    DOCUMENT_RELS_PART,
    PKG_REL_NS,
    DocumentTree,
    DocxPackage,
    parse_document,
    parse_xml,
)

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "bmp", "webp", "tiff", "svg")
MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "tiff": "image/tiff",
    "svg": "image/svg+xml",
}
DEFAULT_MIME_TYPE = "image/png"


@dataclass(frozen=True)
class ImageRelationship:
    relationship_id: str
    image_name: str
    target: str
    rel_type: str

    def to_dict(self) -> dict[str, str]:
        return {
            "relationshipId": self.relationship_id,
            "imageName": self.image_name,
            "target": self.target,
            "type": self.rel_type,
        }


@dataclass(frozen=True)
class ImageReference:
    relationship_id: str
    run_index: int


@dataclass(frozen=True)
class ParagraphImages:
    paragraph_index: int
    references: tuple[ImageReference, ...]
    text: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "paragraphIndex": self.paragraph_index,
            "images": [
                {"relationshipId": ref.relationship_id, "runIndex": ref.run_index}
                for ref in self.references
            ],
            "textContent": self.text,
        }


@dataclass
class ImageStatistics:
    total_paragraphs: int = 0
    paragraphs_with_images: int = 0
    total_image_references: int = 0
    matched_images: int = 0
    unlocated_images: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalParagraphs": self.total_paragraphs,
            "paragraphsWithImages": self.paragraphs_with_images,
            "totalImageReferences": self.total_image_references,
            "matchedImages": self.matched_images,
            "unlocatedImages": self.unlocated_images,
        }


@dataclass
class ImageExtractionResult:
    images: list[ExtractedImage] = field(default_factory=list)
    relationships: list[ImageRelationship] = field(default_factory=list)
    paragraph_images: list[ParagraphImages] = field(default_factory=list)
    statistics: ImageStatistics = field(default_factory=ImageStatistics)

    @property
    def total_count(self) -> int:
        return len(self.images)

    def image_relationships(self) -> dict[str, str]:
        return {rel.relationship_id: rel.image_name for rel in self.relationships}

    def located(self) -> list[ExtractedImage]:
        return [image for image in self.images if image.is_located]

    def unlocated(self) -> list[ExtractedImage]:
        return [image for image in self.images if not image.is_located]

    def to_dict(self, include_data: bool = True) -> dict[str, object]:
        return {
            "images": [image.to_dict(include_data=include_data) for image in self.images],
            "imageRelationships": self.image_relationships(),
            "relationshipDetails": [rel.to_dict() for rel in self.relationships],
            "paragraphImages": [info.to_dict() for info in self.paragraph_images],
            "totalCount": self.total_count,
            "statistics": self.statistics.to_dict(),
        }


class ImageLocator:
    """Inventories ``word/media`` and pins each image to the run that draws it.

    The media inventory is authoritative: an image that cannot be joined to
    a drawing reference is still returned, just without a position.
    """

    def __init__(self, log_state: AnalysisLogState | None = None) -> None:
        self.log_state = log_state

    def extract(self, package: DocxPackage, tree: DocumentTree | None = None) -> ImageExtractionResult:
        images = self.inventory(package)
        relationships = self.relationships(package)
        if tree is None:
            try:
                tree = parse_document(package.require(DOCUMENT_PART))
            except PackageReadError as exc:
                warn(self.log_state, rule=exc.rule, reason=str(exc), part=DOCUMENT_PART)
                tree = DocumentTree(paragraphs=())
        paragraph_images = collect_paragraph_images(tree)
        result = ImageExtractionResult(
            images=images,
            relationships=relationships,
            paragraph_images=paragraph_images,
        )
        self._join(result)
        result.statistics.total_paragraphs = len(tree.paragraphs)
        result.statistics.paragraphs_with_images = len(paragraph_images)
        result.statistics.total_image_references = sum(
            len(info.references) for info in paragraph_images
        )
        return result

    def inventory(self, package: DocxPackage) -> list[ExtractedImage]:
        images: list[ExtractedImage] = []
        for name in package.media_names():
            extension = _extension(name)
            if extension not in IMAGE_EXTENSIONS:
                continue
            data = package.read(name) or b""
            images.append(
                ExtractedImage(
                    name=name,
                    mime_type=MIME_TYPES.get(extension, DEFAULT_MIME_TYPE),
                    size=len(data),
                    data=data,
                )
            )
        return images

    def relationships(self, package: DocxPackage) -> list[ImageRelationship]:
        rels_xml = package.read(DOCUMENT_RELS_PART)
        if not rels_xml:
            return []
        try:
            root = parse_xml(rels_xml, DOCUMENT_RELS_PART)
        except PackageReadError as exc:
            warn(self.log_state, rule=exc.rule, reason=str(exc), part=DOCUMENT_RELS_PART)
            return []
        found: list[ImageRelationship] = []
        for rel in root.iter(f"{{{PKG_REL_NS}}}Relationship"):
            rel_id = rel.get("Id")
            rel_type = rel.get("Type") or ""
            target = rel.get("Target") or ""
            if not rel_id or not target:
                continue
            if rel.get("TargetMode") == "External":
                continue
            if "image" not in rel_type and "image" not in target and "media/" not in target:
                continue
            found.append(
                ImageRelationship(
                    relationship_id=rel_id,
                    image_name=posixpath.basename(target),
                    target=_resolve_target(target),
                    rel_type=rel_type,
                )
            )
        return found

    def _join(self, result: ImageExtractionResult) -> None:
        by_id = {rel.relationship_id: rel for rel in result.relationships}
        matched = 0
        for info in result.paragraph_images:
            for ref in info.references:
                rel = by_id.get(ref.relationship_id)
                if rel is None:
                    continue
                image = _match_image(result.images, rel)
                if image is None:
                    warn(
                        self.log_state,
                        rule=ImageIntegrityMismatch.rule,
                        reason=f"relationship {rel.relationship_id} targets {rel.target} which is not in the package",
                        part=DOCUMENT_RELS_PART,
                        paragraph_index=info.paragraph_index,
                        image_name=rel.image_name,
                    )
                    continue
                if image.is_located:
                    continue
                image.paragraph_index = info.paragraph_index
                image.run_index = ref.run_index
                image.relationship_id = rel.relationship_id
                matched += 1
        result.statistics.matched_images = matched
        result.statistics.unlocated_images = len(result.images) - matched


def collect_paragraph_images(tree: DocumentTree) -> list[ParagraphImages]:
    collected: list[ParagraphImages] = []
    for paragraph in tree.paragraphs:
        references: list[ImageReference] = []
        for run in paragraph.runs:
            seen: set[str] = set()
            for drawing in run.drawings:
                for rel_id in drawing.relationship_ids:
                    if rel_id in seen:
                        continue
                    seen.add(rel_id)
                    references.append(ImageReference(relationship_id=rel_id, run_index=run.index))
        if references:
            collected.append(
                ParagraphImages(
                    paragraph_index=paragraph.index,
                    references=tuple(references),
                    text=paragraph.text[:50],
                )
            )
    return collected


def _match_image(images: list[ExtractedImage], rel: ImageRelationship) -> ExtractedImage | None:
    for image in images:
        if image.name == rel.target:
            return image
    for image in images:
        if image.filename == rel.image_name or image.name.endswith("/" + rel.image_name):
            return image
    return None


def _resolve_target(target: str) -> str:
    if target.startswith("/"):
        return target.lstrip("/")
    return posixpath.normpath(posixpath.join("word", target))


def _extension(name: str) -> str:
    _, dot, extension = name.rpartition(".")
    return extension.lower() if dot else ""
