"""Buffer-in, result-out entry points used by every outer surface."""

from __future__ import annotations

from .analysis_log import new_log_state, write_log
from .analyzer import DocumentAnalyzer
from .image_locator import ImageExtractionResult, ImageLocator
from .models import DocxAnalysisResult, FontModificationOptions, FontUsage
from .modifier import DocumentModifier
from .ooxml import DocxPackage
from .presets import get_template, template_options


def analyze_document(document_bytes: bytes, use_deep_detection: bool = True) -> DocxAnalysisResult:
    return DocumentAnalyzer().analyze(document_bytes, use_deep_detection=use_deep_detection)


def modify_fonts(
    document_bytes: bytes,
    title_options: FontModificationOptions | None = None,
    body_options: FontModificationOptions | None = None,
    author_options: FontModificationOptions | None = None,
) -> bytes:
    return DocumentModifier().modify(
        document_bytes,
        title_options=title_options,
        body_options=body_options,
        author_options=author_options,
    )


def get_font_usage(document_bytes: bytes) -> dict[str, FontUsage]:
    result = DocumentAnalyzer().analyze(document_bytes, use_deep_detection=True, include_images=False)
    if result.deep_font_analysis is None:
        return {}
    return dict(result.deep_font_analysis.fonts)


def modify_alignment(
    document_bytes: bytes,
    title_alignment: str | None = None,
    author_alignment: str | None = None,
    body_alignment: str | None = None,
) -> bytes:
    return DocumentModifier().modify_alignment(
        document_bytes,
        title_alignment=title_alignment,
        author_alignment=author_alignment,
        body_alignment=body_alignment,
    )


def modify_title(document_bytes: bytes, prefix: str | None = None, suffix: str | None = None) -> bytes:
    return DocumentModifier().modify_title(document_bytes, prefix=prefix, suffix=suffix)


def extract_images(document_bytes: bytes) -> ImageExtractionResult:
    log_state = new_log_state(None, operation="extract_images")
    try:
        result = ImageLocator(log_state=log_state).extract(DocxPackage.from_bytes(document_bytes))
    except Exception as exc:
        log_state.error = str(exc)
        write_log(log_state)
        raise
    log_state.image_count = result.total_count
    log_state.located_image_count = result.statistics.matched_images
    write_log(log_state)
    return result


def apply_preset(document_bytes: bytes, preset_id: str) -> bytes:
    template = get_template(preset_id)
    if template is None:
        raise ValueError(f"unknown preset template: {preset_id}")
    options = template_options(template)
    return modify_fonts(
        document_bytes,
        title_options=options["title"],
        body_options=options["body"],
        author_options=options["author"],
    )
