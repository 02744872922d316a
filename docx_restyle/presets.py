from __future__ import annotations

from dataclasses import dataclass

from .font_sizes import parse_font_size
from .models import FontModificationOptions


@dataclass(frozen=True)
class PresetStyle:
    font_name: str
    font_size: str
    alignment: str
    bold: bool | None = None
    color: str = "#000000"

    def to_options(self) -> FontModificationOptions:
        size = parse_font_size(self.font_size)
        if size is None:
            raise ValueError(f"unknown preset font size: {self.font_size!r}")
        return FontModificationOptions(
            target_font_name=self.font_name,
            target_font_size=size,
            target_bold=self.bold,
            target_color=self.color.lstrip("#"),
            target_alignment=self.alignment,
        )


@dataclass(frozen=True)
class DocumentTemplate:
    template_id: str
    name: str
    description: str
    title: PresetStyle
    author: PresetStyle
    body: PresetStyle

    def to_dict(self) -> dict[str, object]:
        def _style(style: PresetStyle) -> dict[str, object | None]:
            return {
                "fontName": style.font_name,
                "fontSize": style.font_size,
                "isBold": style.bold,
                "alignment": style.alignment,
                "color": style.color,
            }

        return {
            "id": self.template_id,
            "name": self.name,
            "description": self.description,
            "isPreset": True,
            "titleStyle": _style(self.title),
            "authorStyle": _style(self.author),
            "bodyStyle": _style(self.body),
        }


PRESET_TEMPLATES: tuple[DocumentTemplate, ...] = (
    DocumentTemplate(
        template_id="academic-paper",
        name="学术论文",
        description="适用于学术论文：标题黑体4号居中，正文宋体5号两端对齐，作者宋体小四居中",
        title=PresetStyle("黑体", "4号", "center", bold=True),
        author=PresetStyle("宋体", "小四", "center"),
        body=PresetStyle("宋体", "5号", "justify"),
    ),
    DocumentTemplate(
        template_id="official-document",
        name="公文格式",
        description="适用于公文：标题宋体二号加粗居中，正文仿宋三号，作者宋体四号右对齐",
        title=PresetStyle("宋体", "二号", "center", bold=True),
        author=PresetStyle("宋体", "四号", "right"),
        body=PresetStyle("仿宋", "三号", "justify"),
    ),
    DocumentTemplate(
        template_id="business-report",
        name="商务报告",
        description="适用于商务报告：标题微软雅黑三号加粗，正文微软雅黑小四，作者微软雅黑五号",
        title=PresetStyle("微软雅黑", "三号", "center", bold=True),
        author=PresetStyle("微软雅黑", "五号", "center"),
        body=PresetStyle("微软雅黑", "小四", "justify"),
    ),
    DocumentTemplate(
        template_id="simple-document",
        name="简洁文档",
        description="适用于一般文档：标题宋体小二加粗居中，正文宋体小四，作者宋体五号",
        title=PresetStyle("宋体", "小二", "center", bold=True),
        author=PresetStyle("宋体", "五号", "center"),
        body=PresetStyle("宋体", "小四", "justify"),
    ),
)


def get_template(template_id: str) -> DocumentTemplate | None:
    for template in PRESET_TEMPLATES:
        if template.template_id == template_id:
            return template
    return None


def default_template() -> DocumentTemplate:
    return PRESET_TEMPLATES[0]


def template_choices() -> list[dict[str, str]]:
    return [
        {"value": t.template_id, "label": t.name, "description": t.description}
        for t in PRESET_TEMPLATES
    ]


def template_options(template: DocumentTemplate) -> dict[str, FontModificationOptions]:
    return {
        "title": template.title.to_options(),
        "author": template.author.to_options(),
        "body": template.body.to_options(),
    }
