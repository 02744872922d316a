from __future__ import annotations

from typing import Iterable, Mapping

from . import config
from .analysis_log import AnalysisLogState
from .models import DeepFontAnalysis, FontInfo, FontUsage
from .ooxml import (
    DOCUMENT_PART,
    STYLES_PART,
    THEME_PART,
    DocumentTree,
    DocxPackage,
    FontSpec,
    ParagraphNode,
    RunNode,
    map_alignment,
    merge_fonts,
    parse_document,
)
from .style_reader import StyleDefinition, StyleTable


def style_key(paragraph_index: int, run_index: int) -> str:
    return f"p-{paragraph_index}-r-{run_index}"


class FontDeepDetector:
    """Attributes a resolved font to every text-bearing run of a document.

    Lookup order per property: explicit run properties, the run's character
    style, the paragraph style (or the default paragraph style), then
    ``docDefaults``. Font names prefer ``eastAsia`` over ``hAnsi`` over
    ``ascii``.
    """

    def __init__(self, style_table: StyleTable, log_state: AnalysisLogState | None = None) -> None:
        self.style_table = style_table
        self.log_state = log_state

    @classmethod
    def from_package(
        cls,
        package: DocxPackage,
        log_state: AnalysisLogState | None = None,
    ) -> "FontDeepDetector":
        table = StyleTable.from_xml(
            package.read(STYLES_PART),
            package.read(THEME_PART),
            log_state=log_state,
        )
        return cls(table, log_state=log_state)

    def detect(self, package: DocxPackage) -> DeepFontAnalysis:
        tree = parse_document(package.require(DOCUMENT_PART))
        return self.analyze(tree)

    def analyze(self, tree: DocumentTree) -> DeepFontAnalysis:
        paragraph_fonts: dict[int, tuple[FontInfo, ...]] = {}
        usage: dict[str, FontUsage] = {}
        for paragraph in tree.paragraphs:
            attributed = list(self.paragraph_runs(paragraph))
            if not attributed:
                continue
            paragraph_fonts[paragraph.index] = tuple(info for _, info in attributed)
            usage = accumulate_font_usage(
                usage,
                ((info.name, run.text) for run, info in attributed),
            )
        return DeepFontAnalysis(
            fonts=usage,
            paragraph_fonts=paragraph_fonts,
            default_fonts=self.style_table.default_fonts(),
            styles=tuple(self.style_table.resolve_all()),
        )

    def paragraph_runs(self, paragraph: ParagraphNode) -> Iterable[tuple[RunNode, FontInfo]]:
        paragraph_style = self._paragraph_style(paragraph)
        alignment = self.paragraph_alignment(paragraph, paragraph_style)
        for run in paragraph.runs:
            if not run.text:
                continue
            yield run, self.resolve_run(paragraph, run, paragraph_style, alignment)

    def paragraph_alignment(
        self,
        paragraph: ParagraphNode,
        paragraph_style: StyleDefinition | None = None,
    ) -> str:
        alignment = map_alignment(paragraph.jc)
        if alignment is None and paragraph_style is not None:
            alignment = paragraph_style.alignment
        if alignment is None:
            alignment = self.style_table.resolved_defaults().alignment
        return alignment or "left"

    def resolve_run(
        self,
        paragraph: ParagraphNode,
        run: RunNode,
        paragraph_style: StyleDefinition | None,
        alignment: str,
    ) -> FontInfo:
        props = run.properties
        layers: list[object] = [props]
        if props.style_id:
            char_style = self.style_table.resolve(props.style_id)
            if char_style is not None:
                layers.append(char_style)
        if paragraph_style is not None:
            layers.append(paragraph_style)
        layers.append(self.style_table.resolved_defaults())

        fonts = FontSpec()
        for layer in reversed(layers):
            fonts = merge_fonts(fonts, layer.fonts.apply_theme(self.style_table.theme_map))
        name = fonts.preferred_name() or self.style_table.default_font_name()

        return FontInfo(
            name=name,
            half_points=_first_set(layers, "half_points"),
            bold=bool(_first_set(layers, "bold")),
            italic=bool(_first_set(layers, "italic")),
            underline=bool(_first_set(layers, "underline")),
            color=_first_set(layers, "color"),
            alignment=alignment,
            original_style_key=style_key(paragraph.index, run.index),
        )

    def _paragraph_style(self, paragraph: ParagraphNode) -> StyleDefinition | None:
        style_id = paragraph.style_id or self.style_table.default_paragraph_style_id()
        if not style_id:
            return None
        return self.style_table.resolve(style_id)


def accumulate_font_usage(
    usage: Mapping[str, FontUsage],
    observations: Iterable[tuple[str | None, str]],
) -> dict[str, FontUsage]:
    """Fold ``(font_name, run_text)`` pairs into a new usage map."""
    result = dict(usage)
    for name, text in observations:
        key = name or config.UNKNOWN_FONT_LABEL
        current = result.get(key, FontUsage())
        samples = current.samples
        sample = _sample_text(text)
        if sample and sample not in samples and len(samples) < config.SAMPLE_LIMIT:
            samples = samples + (sample,)
        result[key] = FontUsage(count=current.count + 1, samples=samples)
    return result


def _sample_text(text: str) -> str:
    text = text.strip()
    if len(text) > config.SAMPLE_MAX_CHARS:
        return text[: config.SAMPLE_MAX_CHARS] + "..."
    return text


def _first_set(layers: Iterable[object], attribute: str) -> object | None:
    for layer in layers:
        value = getattr(layer, attribute, None)
        if value is not None:
            return value
    return None
