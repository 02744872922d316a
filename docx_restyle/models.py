from __future__ import annotations

import base64
from dataclasses import dataclass, field, fields
from typing import Any, Iterable, Mapping

from .font_sizes import font_size_name, half_points_to_pt, parse_font_size
from .style_reader import StyleDefinition

ALIGNMENTS = {"left", "center", "right", "justify"}
ROLES = ("title", "author", "body")


@dataclass(frozen=True)
class FontInfo:
    name: str | None = None
    half_points: int | None = None
    bold: bool = False
    italic: bool = False
    underline: bool = False
    color: str | None = None
    alignment: str | None = None
    original_style_key: str | None = None

    @property
    def size(self) -> float | None:
        if self.half_points is None:
            return None
        return half_points_to_pt(self.half_points)

    def identity(self) -> tuple[object, ...]:
        return (
            self.name,
            self.half_points,
            self.bold,
            self.italic,
            self.underline,
            self.color or None,
            self.alignment or None,
        )

    def to_dict(self) -> dict[str, object | None]:
        return {
            "name": self.name,
            "size": self.size,
            "sizeName": font_size_name(self.size),
            "isBold": self.bold,
            "isItalic": self.italic,
            "isUnderline": self.underline,
            "color": self.color,
            "alignment": self.alignment,
            "originalStyleKey": self.original_style_key,
        }


@dataclass(frozen=True)
class ParagraphRecord:
    index: int
    text: str
    styles: tuple[FontInfo, ...] = ()
    run_texts: tuple[str, ...] = ()
    alignment: str | None = None
    style_id: str | None = None
    is_title: bool = False
    is_author: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "index": self.index,
            "text": self.text,
            "isTitle": self.is_title,
            "isAuthor": self.is_author,
            "alignment": self.alignment,
            "styleId": self.style_id,
            "styles": [style.to_dict() for style in self.styles],
        }


@dataclass
class ExtractedImage:
    name: str
    mime_type: str
    size: int
    data: bytes = field(repr=False)
    paragraph_index: int | None = None
    run_index: int | None = None
    relationship_id: str | None = None

    @property
    def filename(self) -> str:
        return self.name.rsplit("/", 1)[-1]

    @property
    def base64_data(self) -> str:
        payload = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{payload}"

    @property
    def is_located(self) -> bool:
        return self.paragraph_index is not None

    def to_dict(self, include_data: bool = True) -> dict[str, object | None]:
        data: dict[str, object | None] = {
            "name": self.name,
            "mimeType": self.mime_type,
            "size": self.size,
            "paragraphIndex": self.paragraph_index,
            "runIndex": self.run_index,
            "relationshipId": self.relationship_id,
        }
        if include_data:
            data["base64Data"] = self.base64_data
        return data


@dataclass(frozen=True)
class RoleText:
    text: str
    styles: tuple[FontInfo, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "text": self.text,
            "exists": True,
            "styles": [style.to_dict() for style in self.styles],
        }


@dataclass(frozen=True)
class FontUsage:
    count: int = 0
    samples: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {"count": self.count, "samples": list(self.samples)}


@dataclass(frozen=True)
class DeepFontAnalysis:
    fonts: dict[str, FontUsage]
    paragraph_fonts: dict[int, tuple[FontInfo, ...]]
    default_fonts: dict[str, str]
    styles: tuple[StyleDefinition, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "fonts": {name: usage.to_dict() for name, usage in self.fonts.items()},
            "paragraphFonts": {
                str(index): [info.to_dict() for info in infos]
                for index, infos in self.paragraph_fonts.items()
            },
            "defaultFonts": dict(self.default_fonts),
            "styles": [style.to_dict() for style in self.styles],
        }


@dataclass
class DocxAnalysisResult:
    paragraphs: list[ParagraphRecord] = field(default_factory=list)
    body_styles: list[FontInfo] = field(default_factory=list)
    title: RoleText | None = None
    author: RoleText | None = None
    body_text: str = ""
    word_count: int = 0
    images: list[ExtractedImage] = field(default_factory=list)
    deep_font_analysis: DeepFontAnalysis | None = None

    def body_paragraphs(self) -> list[ParagraphRecord]:
        return [p for p in self.paragraphs if not p.is_title and not p.is_author]

    def to_dict(self, include_image_data: bool = True) -> dict[str, object]:
        payload: dict[str, object] = {
            "paragraphs": [paragraph.to_dict() for paragraph in self.paragraphs],
            "bodyStyles": [style.to_dict() for style in self.body_styles],
            "bodyText": self.body_text,
            "wordCount": self.word_count,
            "images": [image.to_dict(include_data=include_image_data) for image in self.images],
        }
        if self.title is not None:
            payload["title"] = self.title.to_dict()
        if self.author is not None:
            payload["author"] = self.author.to_dict()
        if self.deep_font_analysis is not None:
            payload["deepFontAnalysis"] = self.deep_font_analysis.to_dict()
        return payload


@dataclass(frozen=True)
class ModificationRule:
    original_style_key: str
    target_font_name: str | None = None
    target_font_size: float | None = None
    target_bold: bool | None = None
    target_italic: bool | None = None
    target_underline: bool | None = None
    target_color: str | None = None
    target_alignment: str | None = None

    def validate(self) -> None:
        if not self.original_style_key:
            raise ValueError("modification rule requires original_style_key")
        _validate_targets(self)


@dataclass(frozen=True)
class FontModificationOptions:
    target_font_name: str | None = None
    target_font_size: float | None = None
    target_bold: bool | None = None
    target_italic: bool | None = None
    target_underline: bool | None = None
    target_color: str | None = None
    target_alignment: str | None = None
    add_prefix: str | None = None
    add_suffix: str | None = None
    modification_rules: tuple[ModificationRule, ...] = ()

    def validate(self) -> None:
        _validate_targets(self)
        for rule in self.modification_rules:
            rule.validate()

    def rule_for(self, original_style_key: str | None) -> ModificationRule | None:
        if original_style_key is None:
            return None
        for rule in self.modification_rules:
            if rule.original_style_key == original_style_key:
                return rule
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "FontModificationOptions | None":
        """Build options from a request payload (camelCase keys, named sizes allowed)."""
        if data is None:
            return None
        rules = tuple(
            ModificationRule(
                original_style_key=str(item.get("originalStyleKey", "")),
                **_target_kwargs(item),
            )
            for item in data.get("modificationRules") or ()
        )
        options = cls(
            add_prefix=data.get("addPrefix") or None,
            add_suffix=data.get("addSuffix") or None,
            modification_rules=rules,
            **_target_kwargs(data),
        )
        options.validate()
        return options


_TARGET_KEYS = {
    "targetFontName": "target_font_name",
    "targetFontSize": "target_font_size",
    "targetIsBold": "target_bold",
    "targetIsItalic": "target_italic",
    "targetIsUnderline": "target_underline",
    "targetColor": "target_color",
    "targetAlignment": "target_alignment",
}


def _target_kwargs(data: Mapping[str, Any]) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    for key, attr_name in _TARGET_KEYS.items():
        value = data.get(key)
        if value is None or value == "":
            continue
        if attr_name == "target_font_size":
            value = parse_font_size(value)
            if value is None:
                raise ValueError(f"{key} must be a point size or a Chinese size name, got {data.get(key)!r}")
        elif attr_name == "target_color":
            value = str(value).lstrip("#")
        kwargs[attr_name] = value
    return kwargs


def _validate_targets(target: object) -> None:
    name = getattr(target, "target_font_name", None)
    if name is not None and (not isinstance(name, str) or not name.strip()):
        raise ValueError(f"target_font_name must be a non-empty string, got {name!r}")
    alignment = getattr(target, "target_alignment", None)
    if alignment is not None and alignment not in ALIGNMENTS:
        allowed = ", ".join(sorted(ALIGNMENTS))
        raise ValueError(f"target_alignment must be one of {allowed}, got {alignment!r}")
    size = getattr(target, "target_font_size", None)
    if size is not None and size <= 0:
        raise ValueError(f"target_font_size must be positive, got {size!r}")
    color = getattr(target, "target_color", None)
    if color is not None:
        cleaned = color.lstrip("#")
        if len(cleaned) != 6 or any(ch not in "0123456789abcdefABCDEF" for ch in cleaned):
            raise ValueError(f"target_color must be a 6-digit hex colour, got {color!r}")


def dedupe_styles(styles: Iterable[FontInfo], default_label: str) -> list[FontInfo]:
    unique: list[FontInfo] = []
    seen: set[tuple[object, ...]] = set()
    for style in styles:
        if not style.name or style.name == "undefined":
            style = _with_name(style, default_label)
        key = style.identity()
        if key in seen:
            continue
        seen.add(key)
        unique.append(style)
    return unique


def _with_name(style: FontInfo, name: str) -> FontInfo:
    values = {f.name: getattr(style, f.name) for f in fields(style)}
    values["name"] = name
    return FontInfo(**values)
