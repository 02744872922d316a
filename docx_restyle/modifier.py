from __future__ import annotations

import base64
import binascii
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields
from io import BytesIO
from time import perf_counter
from typing import Iterable, Sequence

from docx import Document
from docx.enum.style import WD_STYLE_TYPE
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_UNDERLINE
from docx.image.image import Image
from docx.oxml.ns import qn
from docx.shared import Emu, Pt, RGBColor

from . import config
from .analysis_log import AnalysisLogState, new_log_state, warn, write_log
from .analyzer import ANALYSIS_ERROR_PREFIX, DocumentAnalyzer
from .errors import ImageEmbedFailure, ModificationBuildError, PackageReadError
from .image_locator import ImageExtractionResult, ImageLocator
from .models import (
    ROLES,
    DocxAnalysisResult,
    ExtractedImage,
    FontInfo,
    FontModificationOptions,
    ModificationRule,
    ParagraphRecord,
)
from .ooxml import DocxPackage

MODIFY_ERROR_PREFIX = "修改文档失败: "
EMU_PER_PX = 9525
_DATA_URI_PREFIX = re.compile(r"^data:[^;,]*;base64,")
_ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "justify": WD_ALIGN_PARAGRAPH.JUSTIFY,
}
_TARGET_FIELDS = {
    "target_font_name": "font_name",
    "target_font_size": "font_size_pt",
    "target_bold": "bold",
    "target_italic": "italic",
    "target_underline": "underline",
    "target_color": "color",
    "target_alignment": "alignment",
}


@dataclass(frozen=True)
class RoleStyle:
    font_name: str
    font_size_pt: float
    bold: bool = False
    italic: bool = False
    underline: bool = False
    color: str = "000000"
    alignment: str = "left"
    space_before_pt: float | None = None
    space_after_pt: float | None = None
    first_line_indent_pt: float | None = None

    def override(self, target: FontModificationOptions | ModificationRule | None) -> "RoleStyle":
        if target is None:
            return self
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for source, dest in _TARGET_FIELDS.items():
            value = getattr(target, source, None)
            if value is None:
                continue
            if dest == "color":
                value = str(value).lstrip("#").upper()
            values[dest] = value
        return RoleStyle(**values)


def role_style(role: str, options: FontModificationOptions | None = None) -> RoleStyle:
    """Component default for ``role`` with every set option field replacing it."""
    base = RoleStyle(**config.DEFAULT_ROLE_STYLES[role])
    return base.override(options)


@dataclass
class ImagePlacement:
    leading: list[ExtractedImage] = field(default_factory=list)
    after: dict[int, list[ExtractedImage]] = field(default_factory=dict)
    trailing: list[ExtractedImage] = field(default_factory=list)

    def count(self) -> int:
        return (
            len(self.leading)
            + sum(len(images) for images in self.after.values())
            + len(self.trailing)
        )


def plan_image_placement(
    body_indices: Sequence[int],
    images: Iterable[ExtractedImage],
    tolerance_factor: float = config.IMAGE_PLACEMENT_TOLERANCE_FACTOR,
) -> ImagePlacement:
    """Assign every image a slot relative to the body paragraphs.

    ``after`` is keyed by position in ``body_indices``. Located images follow
    the last body paragraph at or before their own paragraph. Unlocated image
    ``i`` of ``n`` goes to the body paragraph nearest the relative position
    ``(i + 1) / (n + 1)`` when within ``tolerance_factor / (body_count + 1)``.
    """
    plan = ImagePlacement()
    located = [image for image in images if image.is_located]
    unlocated = [image for image in images if not image.is_located]
    located.sort(key=lambda image: (image.paragraph_index, image.run_index or 0))
    body_count = len(body_indices)

    for image in located:
        if body_count == 0:
            plan.trailing.append(image)
            continue
        position = None
        for candidate, index in enumerate(body_indices):
            if index <= image.paragraph_index:
                position = candidate
            else:
                break
        if position is None:
            plan.leading.append(image)
        else:
            plan.after.setdefault(position, []).append(image)

    total = len(unlocated)
    tolerance = tolerance_factor / (body_count + 1)
    for number, image in enumerate(unlocated):
        if body_count == 0:
            plan.trailing.append(image)
            continue
        target = (number + 1) / (total + 1)
        position = min(
            range(body_count),
            key=lambda candidate: abs((candidate + 1) / (body_count + 1) - target),
        )
        if abs((position + 1) / (body_count + 1) - target) <= tolerance:
            plan.after.setdefault(position, []).append(image)
        else:
            plan.trailing.append(image)
    return plan


def decode_data_uri(payload: str) -> bytes:
    cleaned = _DATA_URI_PREFIX.sub("", payload.strip())
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageEmbedFailure(f"image payload is not valid base64: {exc}") from exc


@dataclass
class ModificationReport:
    embedded: list[str] = field(default_factory=list)
    placeholders: list[str] = field(default_factory=list)
    body_paragraphs: int = 0

    @property
    def image_total(self) -> int:
        return len(self.embedded) + len(self.placeholders)


class DocumentModifier:
    def __init__(
        self,
        source: str | None = None,
        workers: int = config.ANALYSIS_WORKERS,
        tolerance_factor: float = config.IMAGE_PLACEMENT_TOLERANCE_FACTOR,
    ) -> None:
        self.source = source
        self.workers = max(1, workers)
        self.tolerance_factor = tolerance_factor
        self._last_log_state: AnalysisLogState | None = None
        self._last_report: ModificationReport | None = None

    @property
    def last_log_state(self) -> AnalysisLogState | None:
        return self._last_log_state

    @property
    def last_report(self) -> ModificationReport | None:
        return self._last_report

    def modify(
        self,
        data: bytes,
        title_options: FontModificationOptions | None = None,
        body_options: FontModificationOptions | None = None,
        author_options: FontModificationOptions | None = None,
    ) -> bytes:
        for options in (title_options, body_options, author_options):
            if options is not None:
                options.validate()
        started = perf_counter()
        log_state = new_log_state(self.source, operation="modify")
        try:
            analysis, extraction = self._collect(data, log_state)
            output = self._build(analysis, extraction, title_options, body_options, author_options, log_state)
        except PackageReadError as exc:
            message = str(exc).removeprefix(ANALYSIS_ERROR_PREFIX)
            self._finish(log_state, started, error=message)
            raise PackageReadError(f"{MODIFY_ERROR_PREFIX}{message}", part=exc.part) from exc
        except Exception as exc:
            # python-docx raises plain TypeError/AttributeError on trees it rejects
            message = str(exc) or exc.__class__.__name__
            self._finish(log_state, started, error=message)
            raise ModificationBuildError(f"{MODIFY_ERROR_PREFIX}{message}") from exc
        self._finish(log_state, started)
        return output

    def modify_alignment(
        self,
        data: bytes,
        title_alignment: str | None = None,
        author_alignment: str | None = None,
        body_alignment: str | None = None,
    ) -> bytes:
        return self.modify(
            data,
            title_options=FontModificationOptions(target_alignment=title_alignment),
            body_options=FontModificationOptions(target_alignment=body_alignment),
            author_options=FontModificationOptions(target_alignment=author_alignment),
        )

    def modify_title(self, data: bytes, prefix: str | None = None, suffix: str | None = None) -> bytes:
        return self.modify(
            data,
            title_options=FontModificationOptions(add_prefix=prefix, add_suffix=suffix),
        )

    def _finish(self, log_state: AnalysisLogState, started: float, error: str | None = None) -> None:
        log_state.error = error
        log_state.elapsed_sec = perf_counter() - started
        write_log(log_state)
        self._last_log_state = log_state

    def _collect(
        self,
        data: bytes,
        log_state: AnalysisLogState,
    ) -> tuple[DocxAnalysisResult, ImageExtractionResult]:
        analyzer = DocumentAnalyzer(source=self.source, workers=self.workers)
        locator = ImageLocator(log_state=log_state)
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            analysis_future = pool.submit(analyzer.analyze, data, True, False)
            images_future = pool.submit(lambda: locator.extract(DocxPackage.from_bytes(data)))
            analysis = analysis_future.result()
            extraction = images_future.result()
        if analyzer.last_log_state is not None:
            log_state.warnings.extend(analyzer.last_log_state.warnings)
            log_state.paragraph_count = analyzer.last_log_state.paragraph_count
            log_state.style_count = analyzer.last_log_state.style_count
        log_state.image_count = extraction.total_count
        log_state.located_image_count = extraction.statistics.matched_images
        return analysis, extraction

    def _build(
        self,
        analysis: DocxAnalysisResult,
        extraction: ImageExtractionResult,
        title_options: FontModificationOptions | None,
        body_options: FontModificationOptions | None,
        author_options: FontModificationOptions | None,
        log_state: AnalysisLogState,
    ) -> bytes:
        document = Document()
        options_by_role = {"title": title_options, "author": author_options, "body": body_options}
        styles = {role: role_style(role, options_by_role[role]) for role in ROLES}
        for role in ROLES:
            _add_paragraph_style(document, config.ROLE_STYLE_NAMES[role], styles[role])

        report = ModificationReport()
        if analysis.title is not None:
            text = _compose(analysis.title.text, title_options)
            _add_role_paragraph(document, "title", text, styles["title"])
        if analysis.author is not None:
            text = _compose(analysis.author.text, author_options)
            _add_role_paragraph(document, "author", text, styles["author"])

        body = analysis.body_paragraphs()
        report.body_paragraphs = len(body)
        plan = plan_image_placement(
            [record.index for record in body],
            extraction.images,
            tolerance_factor=self.tolerance_factor,
        )
        for image in plan.leading:
            self._add_image(document, image, styles["body"], report, log_state)
        for position, record in enumerate(body):
            _add_body_paragraph(document, record, styles["body"], body_options)
            for image in plan.after.get(position, ()):
                self._add_image(document, image, styles["body"], report, log_state)
        for image in plan.trailing:
            self._add_image(document, image, styles["body"], report, log_state)
        self._last_report = report

        buffer = BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    def _add_image(
        self,
        document,
        image: ExtractedImage,
        body_style: RoleStyle,
        report: ModificationReport,
        log_state: AnalysisLogState,
    ) -> None:
        paragraph = document.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = paragraph.add_run()
        try:
            blob = decode_data_uri(image.base64_data)
            width, height = display_size(blob)
            run.add_picture(BytesIO(blob), width=Emu(width), height=Emu(height))
        except Exception as exc:
            warn(
                log_state,
                rule=ImageEmbedFailure.rule,
                reason=f"could not embed image ({exc}), placeholder written",
                paragraph_index=image.paragraph_index,
                image_name=image.name,
            )
            paragraph.style = document.styles[config.ROLE_STYLE_NAMES["body"]]
            run.text = config.IMAGE_PLACEHOLDER_TEMPLATE.format(name=image.name)
            _format_run(run, body_style)
            report.placeholders.append(image.name)
            return
        report.embedded.append(image.name)


def display_size(blob: bytes) -> tuple[int, int]:
    """Return ``(width, height)`` in EMU for the fixed display width."""
    width_px = config.IMAGE_DISPLAY_WIDTH_PX
    ratio = config.IMAGE_FALLBACK_ASPECT_RATIO
    try:
        header = Image.from_blob(blob)
        if header.px_width > 0 and header.px_height > 0:
            ratio = header.px_height / header.px_width
    except Exception:
        ratio = config.IMAGE_FALLBACK_ASPECT_RATIO
    return width_px * EMU_PER_PX, int(round(width_px * ratio)) * EMU_PER_PX


def _compose(text: str, options: FontModificationOptions | None) -> str:
    if options is None:
        return text
    return f"{options.add_prefix or ''}{text}{options.add_suffix or ''}"


def _add_paragraph_style(document, name: str, style: RoleStyle) -> None:
    para_style = document.styles.add_style(name, WD_STYLE_TYPE.PARAGRAPH)
    para_style.base_style = document.styles["Normal"]
    para_style.quick_style = True
    _format_font(para_style.font, para_style.element.get_or_add_rPr(), style)
    fmt = para_style.paragraph_format
    fmt.alignment = _ALIGNMENTS[style.alignment]
    if style.space_before_pt is not None:
        fmt.space_before = Pt(style.space_before_pt)
    if style.space_after_pt is not None:
        fmt.space_after = Pt(style.space_after_pt)
    if style.first_line_indent_pt is not None:
        fmt.first_line_indent = Pt(style.first_line_indent_pt)


def _add_role_paragraph(document, role: str, text: str, style: RoleStyle) -> None:
    paragraph = document.add_paragraph(style=config.ROLE_STYLE_NAMES[role])
    paragraph.alignment = _ALIGNMENTS[style.alignment]
    _format_run(paragraph.add_run(text), style)


def _add_body_paragraph(
    document,
    record: ParagraphRecord,
    style: RoleStyle,
    options: FontModificationOptions | None,
) -> None:
    paragraph = document.add_paragraph(style=config.ROLE_STYLE_NAMES["body"])
    alignment = style.alignment
    segments = list(zip(record.run_texts, record.styles)) or [(record.text, FontInfo())]
    for position, (text, font) in enumerate(segments):
        rule = options.rule_for(font.original_style_key) if options is not None else None
        run_style = style.override(rule)
        if position == 0 and rule is not None and rule.target_alignment is not None:
            alignment = rule.target_alignment
        _format_run(paragraph.add_run(text), run_style)
    paragraph.alignment = _ALIGNMENTS[alignment]


def _format_run(run, style: RoleStyle) -> None:
    _format_font(run.font, run._r.get_or_add_rPr(), style)


def _format_font(font, r_pr, style: RoleStyle) -> None:
    font.name = style.font_name
    r_fonts = r_pr.get_or_add_rFonts()
    r_fonts.set(qn("w:eastAsia"), style.font_name)
    r_fonts.set(qn("w:cs"), style.font_name)
    font.size = Pt(style.font_size_pt)
    font.bold = style.bold
    font.italic = style.italic
    font.underline = WD_UNDERLINE.SINGLE if style.underline else False
    font.color.rgb = RGBColor.from_string(style.color.upper())
