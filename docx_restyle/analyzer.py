from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from time import perf_counter

from . import config
from .analysis_log import AnalysisLogState, new_log_state, warn, write_log
from .classifier import RoleKind, classify_roles
from .errors import DeepDetectionFailure, DocxRestyleError, PackageReadError
from .font_detector import FontDeepDetector
from .image_locator import ImageExtractionResult, ImageLocator, ImageStatistics
from .models import (
    DeepFontAnalysis,
    DocxAnalysisResult,
    FontInfo,
    ParagraphRecord,
    RoleText,
    dedupe_styles,
)
from .ooxml import DOCUMENT_PART, DocumentTree, DocxPackage, parse_document
from .text_extractor import StructuralParagraph, extract_paragraphs

ANALYSIS_ERROR_PREFIX = "文档解析失败: "
_CJK_PATTERN = re.compile(r"[一-龥]")
_WHITESPACE = re.compile(r"\s+")


class DocumentAnalyzer:
    def __init__(self, source: str | None = None, workers: int = config.ANALYSIS_WORKERS) -> None:
        self.source = source
        self.workers = max(1, workers)
        self._last_log_state: AnalysisLogState | None = None
        self._last_extraction: ImageExtractionResult | None = None

    @property
    def last_log_state(self) -> AnalysisLogState | None:
        return self._last_log_state

    @property
    def last_extraction(self) -> ImageExtractionResult | None:
        return self._last_extraction

    def analyze(
        self,
        data: bytes,
        use_deep_detection: bool = True,
        include_images: bool = True,
    ) -> DocxAnalysisResult:
        started = perf_counter()
        log_state = new_log_state(self.source, operation="analyze")
        try:
            result = self._analyze(data, use_deep_detection, include_images, log_state)
        except DocxRestyleError as exc:
            log_state.error = str(exc)
            log_state.elapsed_sec = perf_counter() - started
            write_log(log_state)
            self._last_log_state = log_state
            raise PackageReadError(
                f"{ANALYSIS_ERROR_PREFIX}{exc}",
                part=getattr(exc, "part", None),
            ) from exc
        log_state.elapsed_sec = perf_counter() - started
        write_log(log_state)
        self._last_log_state = log_state
        return result

    def _analyze(
        self,
        data: bytes,
        use_deep_detection: bool,
        include_images: bool,
        log_state: AnalysisLogState,
    ) -> DocxAnalysisResult:
        package = DocxPackage.from_bytes(data)
        tree = parse_document(package.require(DOCUMENT_PART))
        structural = extract_paragraphs(data)
        log_state.paragraph_count = len(tree.paragraphs)

        deep: DeepFontAnalysis | None = None
        extraction: ImageExtractionResult | None = None
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            deep_future = (
                pool.submit(_deep_pass, package, tree, log_state) if use_deep_detection else None
            )
            image_future = (
                pool.submit(_image_pass, package, tree, log_state) if include_images else None
            )
            if deep_future is not None:
                deep = deep_future.result()
            if image_future is not None:
                extraction = image_future.result()
        if use_deep_detection:
            log_state.deep_detection = deep is not None
        self._last_extraction = extraction

        records = build_records(structural, deep)
        assignment = classify_roles(records)
        for position, decision in enumerate((assignment.title, assignment.author)):
            if decision is not None and decision.kind is RoleKind.AMBIGUOUS and position < len(records):
                warn(
                    log_state,
                    rule="role_ambiguous",
                    reason=f"{decision.reason}, treated as body",
                    paragraph_index=records[position].index,
                )
        if assignment.has_title:
            records[0] = replace(records[0], is_title=True)
        if assignment.has_author:
            records[1] = replace(records[1], is_author=True)

        result = DocxAnalysisResult(
            paragraphs=records,
            word_count=count_words("\n".join(record.text for record in records)),
            deep_font_analysis=deep,
        )
        if assignment.has_title:
            result.title = RoleText(text=records[0].text, styles=records[0].styles)
        if assignment.has_author and assignment.author is not None:
            result.author = RoleText(text=assignment.author.text or records[1].text, styles=records[1].styles)
        body = records[assignment.body_start:]
        result.body_text = "\n\n".join(record.text for record in body)
        result.body_styles = dedupe_styles(
            (style for record in body for style in record.styles),
            config.DEFAULT_FONT_LABEL,
        )
        if extraction is not None:
            result.images = extraction.images
            log_state.image_count = extraction.total_count
            log_state.located_image_count = extraction.statistics.matched_images
        if deep is not None:
            log_state.style_count = len(deep.styles)
        return result


def build_records(
    structural: list[StructuralParagraph],
    deep: DeepFontAnalysis | None,
) -> list[ParagraphRecord]:
    """Merge shallow paragraph data with deep font attribution by run key."""
    deep_by_key: dict[str, FontInfo] = {}
    if deep is not None:
        for infos in deep.paragraph_fonts.values():
            for info in infos:
                if info.original_style_key:
                    deep_by_key[info.original_style_key] = info
    records: list[ParagraphRecord] = []
    for paragraph in structural:
        if paragraph.is_blank:
            continue
        styles = tuple(
            deep_by_key.get(run.font.original_style_key or "", run.font) for run in paragraph.runs
        )
        alignment = paragraph.alignment
        deep_fonts = deep.paragraph_fonts.get(paragraph.index) if deep is not None else None
        if deep_fonts:
            alignment = deep_fonts[0].alignment
        records.append(
            ParagraphRecord(
                index=paragraph.index,
                text=paragraph.text,
                styles=styles,
                run_texts=tuple(run.text for run in paragraph.runs),
                alignment=alignment or "left",
                style_id=paragraph.style_id,
            )
        )
    return records


def count_words(text: str) -> int:
    compact = _WHITESPACE.sub("", text)
    if not compact:
        return 0
    if len(_CJK_PATTERN.findall(compact)) > len(compact) * 0.5:
        return len(compact)
    return len([word for word in _WHITESPACE.split(text) if word])


def _deep_pass(
    package: DocxPackage,
    tree: DocumentTree,
    log_state: AnalysisLogState,
) -> DeepFontAnalysis | None:
    try:
        return FontDeepDetector.from_package(package, log_state=log_state).analyze(tree)
    except Exception as exc:
        warn(
            log_state,
            rule=DeepDetectionFailure.rule,
            reason=f"deep font detection failed, using run properties only ({exc})",
            part=DOCUMENT_PART,
        )
        return None


def _image_pass(
    package: DocxPackage,
    tree: DocumentTree,
    log_state: AnalysisLogState,
) -> ImageExtractionResult:
    locator = ImageLocator(log_state=log_state)
    try:
        return locator.extract(package, tree)
    except Exception as exc:
        warn(
            log_state,
            rule="image_locate",
            reason=f"image location failed, images left unplaced ({exc})",
        )
        images = locator.inventory(package)
        return ImageExtractionResult(
            images=images,
            statistics=ImageStatistics(unlocated_images=len(images)),
        )
