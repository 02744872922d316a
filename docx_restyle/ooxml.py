"""Package access and a typed view of the WordprocessingML subset we read.

``document.xml`` is turned into ``ParagraphNode`` / ``RunNode`` /
``TextNode`` / ``DrawingNode`` values once, and every later stage (font
attribution, image location) walks those values instead of raw elements.
Paragraph indices are the document-order position of each ``w:p`` under
``w:body`` (table cells and text boxes included); this is the join key
shared by text, font and image data.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from io import BytesIO
from typing import Iterable, Union
from zipfile import BadZipFile, ZipFile

from lxml import etree

from . import config
from .errors import PackageReadError

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
WP_NS = "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing"
V_NS = "urn:schemas-microsoft-com:vml"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
NS = {"w": W_NS}

STYLES_PART = "word/styles.xml"
DOCUMENT_PART = "word/document.xml"
DOCUMENT_RELS_PART = "word/_rels/document.xml.rels"
THEME_PART = "word/theme/theme1.xml"
MEDIA_PREFIX = "word/media/"

RELATIONSHIP_ID_PATTERN = re.compile(r"^rId\d+$")
_RELATIONSHIP_ATTRS = (f"{{{R_NS}}}embed", f"{{{R_NS}}}id", f"{{{R_NS}}}link")
_DRAWING_MARKERS = {
    f"{{{A_NS}}}blip": "blip",
    f"{{{W_NS}}}drawing": "drawing",
    f"{{{W_NS}}}pict": "pict",
    f"{{{WP_NS}}}inline": "inline",
    f"{{{WP_NS}}}anchor": "anchor",
    f"{{{V_NS}}}imagedata": "imagedata",
}
_W_P = f"{{{W_NS}}}p"
_W_R = f"{{{W_NS}}}r"
_W_T = f"{{{W_NS}}}t"
_W_TAB = f"{{{W_NS}}}tab"
_W_BR = f"{{{W_NS}}}br"
_W_CR = f"{{{W_NS}}}cr"


@dataclass
class FontSpec:
    ascii: str | None = None
    hAnsi: str | None = None
    eastAsia: str | None = None
    cs: str | None = None
    ascii_theme: str | None = None
    hAnsi_theme: str | None = None
    eastAsia_theme: str | None = None
    cs_theme: str | None = None

    def preferred_name(self) -> str | None:
        return self.eastAsia or self.hAnsi or self.ascii

    def apply_theme(self, theme_map: dict[str, str] | None) -> "FontSpec":
        if not theme_map:
            return self
        return FontSpec(
            ascii=self.ascii or _resolve_theme_font(theme_map, self.ascii_theme),
            hAnsi=self.hAnsi or _resolve_theme_font(theme_map, self.hAnsi_theme),
            eastAsia=self.eastAsia or _resolve_theme_font(theme_map, self.eastAsia_theme),
            cs=self.cs or _resolve_theme_font(theme_map, self.cs_theme),
            ascii_theme=self.ascii_theme,
            hAnsi_theme=self.hAnsi_theme,
            eastAsia_theme=self.eastAsia_theme,
            cs_theme=self.cs_theme,
        )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "eastAsia": self.eastAsia,
            "ascii": self.ascii,
            "hAnsi": self.hAnsi,
            "cs": self.cs,
        }


def merge_fonts(base: FontSpec, override: FontSpec) -> FontSpec:
    return FontSpec(
        ascii=override.ascii or base.ascii,
        hAnsi=override.hAnsi or base.hAnsi,
        eastAsia=override.eastAsia or base.eastAsia,
        cs=override.cs or base.cs,
        ascii_theme=override.ascii_theme or base.ascii_theme,
        hAnsi_theme=override.hAnsi_theme or base.hAnsi_theme,
        eastAsia_theme=override.eastAsia_theme or base.eastAsia_theme,
        cs_theme=override.cs_theme or base.cs_theme,
    )


@dataclass(frozen=True)
class RunProperties:
    fonts: FontSpec = field(default_factory=FontSpec)
    half_points: int | None = None
    bold: bool | None = None
    italic: bool | None = None
    underline: bool | None = None
    color: str | None = None
    style_id: str | None = None


@dataclass(frozen=True)
class TextNode:
    text: str


@dataclass(frozen=True)
class DrawingNode:
    kind: str
    relationship_ids: tuple[str, ...] = ()


RunChild = Union[TextNode, DrawingNode]


@dataclass(frozen=True)
class RunNode:
    index: int
    properties: RunProperties
    children: tuple[RunChild, ...] = ()

    @property
    def text(self) -> str:
        return "".join(child.text for child in self.children if isinstance(child, TextNode))

    @property
    def drawings(self) -> tuple[DrawingNode, ...]:
        return tuple(child for child in self.children if isinstance(child, DrawingNode))


@dataclass(frozen=True)
class ParagraphNode:
    index: int
    style_id: str | None
    jc: str | None
    runs: tuple[RunNode, ...] = ()

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)


@dataclass(frozen=True)
class DocumentTree:
    paragraphs: tuple[ParagraphNode, ...]


class DocxPackage:
    """Read-only view of a DOCX zip held in memory."""

    def __init__(self, parts: dict[str, bytes]) -> None:
        self._parts = parts

    @classmethod
    def from_bytes(cls, data: bytes) -> "DocxPackage":
        if not data:
            raise PackageReadError("empty document buffer")
        if len(data) > config.MAX_PACKAGE_BYTES:
            raise PackageReadError(
                f"document exceeds {config.MAX_PACKAGE_BYTES} bytes ({len(data)})"
            )
        parts: dict[str, bytes] = {}
        total = 0
        try:
            with ZipFile(BytesIO(data)) as archive:
                for info in archive.infolist():
                    if info.is_dir():
                        continue
                    if info.file_size > config.MAX_PART_BYTES:
                        raise PackageReadError(
                            f"part {info.filename} exceeds {config.MAX_PART_BYTES} bytes",
                            part=info.filename,
                        )
                    total += info.file_size
                    if total > config.MAX_PACKAGE_BYTES:
                        raise PackageReadError(
                            f"uncompressed package exceeds {config.MAX_PACKAGE_BYTES} bytes"
                        )
                    parts[info.filename] = archive.read(info.filename)
        except BadZipFile as exc:
            raise PackageReadError(f"invalid docx file: {exc}") from exc
        return cls(parts)

    def names(self) -> list[str]:
        return list(self._parts)

    def read(self, name: str) -> bytes | None:
        return self._parts.get(name)

    def require(self, name: str) -> bytes:
        content = self._parts.get(name)
        if content is None:
            raise PackageReadError(f"missing required part in docx: {name}", part=name)
        return content

    def media_names(self) -> list[str]:
        return [name for name in self._parts if name.startswith(MEDIA_PREFIX)]


def parse_xml(data: bytes, part: str) -> etree._Element:
    parser = etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        huge_tree=False,
        remove_comments=True,
    )
    try:
        return etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as exc:
        raise PackageReadError(f"malformed XML in {part}: {exc}", part=part) from exc


def parse_document(xml_bytes: bytes) -> DocumentTree:
    root = parse_xml(xml_bytes, DOCUMENT_PART)
    body = root.find("w:body", namespaces=NS)
    if body is None:
        return DocumentTree(paragraphs=())
    paragraphs = [
        _build_paragraph(index, element)
        for index, element in enumerate(body.iter(_W_P))
    ]
    return DocumentTree(paragraphs=tuple(paragraphs))


def _build_paragraph(index: int, element: etree._Element) -> ParagraphNode:
    p_pr = element.find("w:pPr", namespaces=NS)
    style_id = None
    jc = None
    if p_pr is not None:
        style_id = attr(p_pr.find("w:pStyle", namespaces=NS), "val")
        jc = attr(p_pr.find("w:jc", namespaces=NS), "val")
    runs = [
        _build_run(run_index, run)
        for run_index, run in enumerate(own_runs(element))
    ]
    return ParagraphNode(index=index, style_id=style_id, jc=jc, runs=tuple(runs))


def own_runs(paragraph: etree._Element) -> Iterable[etree._Element]:
    for run in paragraph.iter(_W_R):
        if _owning_paragraph(run) is paragraph:
            yield run


def _owning_paragraph(element: etree._Element) -> etree._Element | None:
    parent = element.getparent()
    while parent is not None and parent.tag != _W_P:
        parent = parent.getparent()
    return parent


def _build_run(index: int, run: etree._Element) -> RunNode:
    properties = parse_run_properties(run.find("w:rPr", namespaces=NS))
    children: list[RunChild] = []
    for child in run:
        tag = child.tag
        if tag == _W_T:
            if child.text:
                children.append(TextNode(child.text))
        elif tag == _W_TAB:
            children.append(TextNode("\t"))
        elif tag == _W_CR:
            children.append(TextNode("\n"))
        elif tag == _W_BR:
            # page and column breaks carry no text
            if attr(child, "type") in (None, "textWrapping"):
                children.append(TextNode("\n"))
    drawing = _detect_drawing(run)
    if drawing is not None:
        children.append(drawing)
    return RunNode(index=index, properties=properties, children=tuple(children))


def _detect_drawing(run: etree._Element) -> DrawingNode | None:
    kind = None
    relationship_ids: list[str] = []
    for element in run.iter():
        if not isinstance(element.tag, str):
            continue
        if kind is None:
            kind = _DRAWING_MARKERS.get(element.tag)
        for attr_name in _RELATIONSHIP_ATTRS:
            value = element.get(attr_name)
            if value is None:
                continue
            if kind is None:
                kind = "reference"
            if RELATIONSHIP_ID_PATTERN.match(value) and value not in relationship_ids:
                relationship_ids.append(value)
    if kind is None:
        return None
    return DrawingNode(kind=kind, relationship_ids=tuple(relationship_ids))


def parse_run_properties(r_pr: etree._Element | None) -> RunProperties:
    if r_pr is None:
        return RunProperties()
    fonts = FontSpec()
    r_fonts = r_pr.find("w:rFonts", namespaces=NS)
    if r_fonts is not None:
        fonts = FontSpec(
            ascii=attr(r_fonts, "ascii"),
            hAnsi=attr(r_fonts, "hAnsi"),
            eastAsia=attr(r_fonts, "eastAsia"),
            cs=attr(r_fonts, "cs"),
            ascii_theme=attr(r_fonts, "asciiTheme"),
            hAnsi_theme=attr(r_fonts, "hAnsiTheme"),
            eastAsia_theme=attr(r_fonts, "eastAsiaTheme"),
            cs_theme=attr(r_fonts, "cstheme"),
        )
    half_points = parse_int(attr(r_pr.find("w:sz", namespaces=NS), "val"))
    if half_points is not None and half_points <= 0:
        half_points = None
    underline = None
    u_elem = r_pr.find("w:u", namespaces=NS)
    if u_elem is not None:
        u_val = attr(u_elem, "val")
        underline = u_val is None or u_val.lower() != "none"
    return RunProperties(
        fonts=fonts,
        half_points=half_points,
        bold=_on_off_child(r_pr, "w:b"),
        italic=_on_off_child(r_pr, "w:i"),
        underline=underline,
        color=normalize_color(attr(r_pr.find("w:color", namespaces=NS), "val")),
        style_id=attr(r_pr.find("w:rStyle", namespaces=NS), "val"),
    )


def normalize_color(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip().lstrip("#")
    if not cleaned or cleaned.lower() == "auto":
        return None
    return cleaned.upper()


def map_alignment(val: str | None) -> str | None:
    if val is None:
        return None
    val_lower = val.lower()
    if val_lower in {"center", "centercontinuous"}:
        return "center"
    if val_lower in {"right", "end"}:
        return "right"
    if val_lower in {"both", "distribute", "distributed", "justify"}:
        return "justify"
    return "left"


def attr(elem: etree._Element | None, name: str) -> str | None:
    if elem is None:
        return None
    return elem.get(attr_name(name))


def attr_name(name: str) -> str:
    return f"{{{W_NS}}}{name}"


def parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        try:
            return int(float(value))
        except ValueError:
            return None


def parse_on_off(elem: etree._Element) -> bool:
    val = attr(elem, "val")
    if val is None:
        return True
    return val.lower() not in {"0", "false", "off", "none"}


def _on_off_child(parent: etree._Element, tag: str) -> bool | None:
    elem = parent.find(tag, namespaces=NS)
    if elem is None:
        return None
    return parse_on_off(elem)


def _resolve_theme_font(theme_map: dict[str, str], token: str | None) -> str | None:
    if token is None:
        return None
    return theme_map.get(token)
