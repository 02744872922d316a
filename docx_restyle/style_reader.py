from __future__ import annotations

from dataclasses import dataclass, field, replace

from lxml import etree

from . import config
from .analysis_log import AnalysisLogState, warn
from .errors import PackageReadError, StyleResolutionAnomaly
from .ooxml import (
    NS,
    STYLES_PART,
    THEME_PART,
    FontSpec,
    attr,
    attr_name,
    map_alignment,
    merge_fonts,
    parse_run_properties,
    parse_xml,
)

_A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"


@dataclass
class StyleDefaults:
    fonts: FontSpec
    half_points: int | None
    bold: bool | None
    italic: bool | None
    underline: bool | None
    color: str | None
    alignment: str | None


@dataclass
class StyleDefinition:
    style_id: str
    name: str | None
    style_type: str | None
    based_on: str | None
    fonts: FontSpec
    half_points: int | None = None
    bold: bool | None = None
    italic: bool | None = None
    underline: bool | None = None
    color: str | None = None
    alignment: str | None = None
    is_default: bool = False

    @property
    def size(self) -> float | None:
        if self.half_points is None:
            return None
        return self.half_points / 2

    def to_dict(self) -> dict[str, object | None]:
        return {
            "id": self.style_id,
            "name": self.name or self.style_id,
            "type": self.style_type,
            "fonts": self.fonts.to_dict(),
            "size": self.size,
            "isBold": self.bold,
            "isItalic": self.italic,
            "isUnderline": self.underline,
            "color": self.color,
            "alignment": self.alignment,
            "basedOn": self.based_on,
        }


def _empty_defaults() -> StyleDefaults:
    return StyleDefaults(
        fonts=FontSpec(),
        half_points=None,
        bold=None,
        italic=None,
        underline=None,
        color=None,
        alignment=None,
    )


@dataclass
class StyleTable:
    """Styles of one package with ``basedOn`` inheritance resolved on demand.

    ``resolve`` merges a style's explicit fields over its resolved parent and,
    at the root of the chain, over ``docDefaults``. Results are memoised in
    ``_resolved`` for the lifetime of the table only.
    """

    styles: dict[str, StyleDefinition] = field(default_factory=dict)
    defaults: StyleDefaults = field(default_factory=_empty_defaults)
    theme_map: dict[str, str] = field(default_factory=dict)
    log_state: AnalysisLogState | None = None
    _resolved: dict[str, StyleDefinition] = field(default_factory=dict, repr=False)

    @classmethod
    def from_xml(
        cls,
        styles_xml: bytes | None,
        theme_xml: bytes | None = None,
        log_state: AnalysisLogState | None = None,
    ) -> "StyleTable":
        theme_map = parse_theme_map(theme_xml, log_state=log_state)
        if not styles_xml:
            warn(
                log_state,
                rule=PackageReadError.rule,
                reason="styles.xml not found, using fallback fonts",
                part=STYLES_PART,
            )
            return cls(theme_map=theme_map, log_state=log_state)
        styles, defaults = parse_styles_xml(styles_xml)
        return cls(styles=styles, defaults=defaults, theme_map=theme_map, log_state=log_state)

    def __contains__(self, style_id: object) -> bool:
        return style_id in self.styles

    def __len__(self) -> int:
        return len(self.styles)

    def default_paragraph_style_id(self) -> str | None:
        for style in self.styles.values():
            if style.is_default and style.style_type == "paragraph":
                return style.style_id
        return None

    def resolve(self, style_id: str) -> StyleDefinition | None:
        if style_id not in self.styles:
            return None
        return self._resolve(style_id, set())

    def resolve_all(self) -> list[StyleDefinition]:
        return [self._resolve(style_id, set()) for style_id in self.styles]

    def _resolve(self, style_id: str, visited: set[str]) -> StyleDefinition:
        cached = self._resolved.get(style_id)
        if cached is not None:
            return cached
        style = self.styles[style_id]
        # theme tokens bind at their own layer, before inherited names fill the gaps
        style = replace(style, fonts=style.fonts.apply_theme(self.theme_map))
        if style_id in visited:
            warn(
                self.log_state,
                rule=StyleResolutionAnomaly.rule,
                reason=f"basedOn cycle through {' -> '.join(sorted(visited))}",
                part=STYLES_PART,
                style_id=style_id,
            )
            return style
        visited.add(style_id)
        if style.based_on and style.based_on in self.styles:
            parent = self._resolve(style.based_on, visited)
            resolved = _merge_style(parent, style)
        else:
            resolved = _merge_defaults(self.resolved_defaults(), style)
        self._resolved[style_id] = resolved
        return resolved

    def resolved_defaults(self) -> StyleDefaults:
        return replace(self.defaults, fonts=self.defaults.fonts.apply_theme(self.theme_map))

    def default_fonts(self) -> dict[str, str]:
        fonts = self.resolved_defaults().fonts
        latin = fonts.hAnsi or fonts.ascii or config.FALLBACK_LATIN_FONT
        return {
            "eastAsia": fonts.eastAsia or config.FALLBACK_EAST_ASIA_FONT,
            "ascii": fonts.ascii or latin,
            "hAnsi": fonts.hAnsi or latin,
            "cs": fonts.cs or config.FALLBACK_LATIN_FONT,
        }

    def default_font_name(self) -> str:
        fonts = self.resolved_defaults().fonts
        return fonts.preferred_name() or config.FALLBACK_EAST_ASIA_FONT


def parse_styles_xml(xml_bytes: bytes) -> tuple[dict[str, StyleDefinition], StyleDefaults]:
    root = parse_xml(xml_bytes, STYLES_PART)
    defaults = _parse_doc_defaults(root)
    styles: dict[str, StyleDefinition] = {}
    for style in root.findall("w:style", namespaces=NS):
        style_id = style.get(attr_name("styleId"))
        if not style_id:
            continue
        name = attr(style.find("w:name", namespaces=NS), "val")
        based_on = attr(style.find("w:basedOn", namespaces=NS), "val")
        run_props = parse_run_properties(style.find("w:rPr", namespaces=NS))
        alignment = None
        p_pr = style.find("w:pPr", namespaces=NS)
        if p_pr is not None:
            alignment = map_alignment(attr(p_pr.find("w:jc", namespaces=NS), "val"))
        default_flag = style.get(attr_name("default"))
        styles[style_id] = StyleDefinition(
            style_id=style_id,
            name=name or style_id,
            style_type=style.get(attr_name("type")),
            based_on=based_on,
            fonts=run_props.fonts,
            half_points=run_props.half_points,
            bold=run_props.bold,
            italic=run_props.italic,
            underline=run_props.underline,
            color=run_props.color,
            alignment=alignment,
            is_default=default_flag in {"1", "true", "on"},
        )
    return styles, defaults


def parse_theme_map(
    theme_xml: bytes | None,
    log_state: AnalysisLogState | None = None,
) -> dict[str, str]:
    if not theme_xml:
        return {}
    try:
        root = parse_xml(theme_xml, THEME_PART)
    except PackageReadError as exc:
        warn(log_state, rule="theme_font", reason=f"failed to parse theme1.xml ({exc})", part=THEME_PART)
        return {}
    ns = {"a": _A_NS}
    scheme = root.find(".//a:fontScheme", namespaces=ns)
    if scheme is None:
        return {}
    mapping: dict[str, str] = {}

    def _read_font(prefix: str, elem: etree._Element | None) -> None:
        if elem is None:
            return
        latin = elem.find("a:latin", namespaces=ns)
        if latin is not None:
            typeface = latin.get("typeface")
            if typeface:
                mapping[f"{prefix}Ascii"] = typeface
                mapping[f"{prefix}HAnsi"] = typeface
        ea = elem.find("a:ea", namespaces=ns)
        if ea is not None:
            typeface = ea.get("typeface")
            if typeface:
                mapping[f"{prefix}EastAsia"] = typeface
        cs = elem.find("a:cs", namespaces=ns)
        if cs is not None:
            typeface = cs.get("typeface")
            if typeface:
                mapping[f"{prefix}Bidi"] = typeface

    _read_font("major", scheme.find("a:majorFont", namespaces=ns))
    _read_font("minor", scheme.find("a:minorFont", namespaces=ns))
    return mapping


def _parse_doc_defaults(root: etree._Element) -> StyleDefaults:
    run_props = parse_run_properties(
        root.find("w:docDefaults/w:rPrDefault/w:rPr", namespaces=NS)
    )
    p_pr = root.find("w:docDefaults/w:pPrDefault/w:pPr", namespaces=NS)
    alignment = None
    if p_pr is not None:
        alignment = map_alignment(attr(p_pr.find("w:jc", namespaces=NS), "val"))
    return StyleDefaults(
        fonts=run_props.fonts,
        half_points=run_props.half_points,
        bold=run_props.bold,
        italic=run_props.italic,
        underline=run_props.underline,
        color=run_props.color,
        alignment=alignment,
    )


def _merge_style(base: StyleDefinition, own: StyleDefinition) -> StyleDefinition:
    return replace(
        own,
        fonts=merge_fonts(base.fonts, own.fonts),
        half_points=own.half_points if own.half_points is not None else base.half_points,
        bold=own.bold if own.bold is not None else base.bold,
        italic=own.italic if own.italic is not None else base.italic,
        underline=own.underline if own.underline is not None else base.underline,
        color=own.color or base.color,
        alignment=own.alignment if own.alignment is not None else base.alignment,
    )


def _merge_defaults(defaults: StyleDefaults, own: StyleDefinition) -> StyleDefinition:
    return replace(
        own,
        fonts=merge_fonts(defaults.fonts, own.fonts),
        half_points=own.half_points if own.half_points is not None else defaults.half_points,
        bold=own.bold if own.bold is not None else defaults.bold,
        italic=own.italic if own.italic is not None else defaults.italic,
        underline=own.underline if own.underline is not None else defaults.underline,
        color=own.color or defaults.color,
        alignment=own.alignment if own.alignment is not None else defaults.alignment,
    )
