from __future__ import annotations

from typing import Iterable


def format_analysis(payload: object) -> str:
    """Render an analysis payload (``DocxAnalysisResult.to_dict()``) as text."""
    if not isinstance(payload, dict):
        return "分析结果格式异常"
    lines: list[str] = []

    title = payload.get("title")
    if isinstance(title, dict):
        lines.append("【标题】")
        lines.append(f"文本：{_format_text(title.get('text'))}")
        lines.extend(_format_styles(title.get("styles")))
        lines.append("")
    else:
        lines.append("【标题】未识别")
        lines.append("")

    author = payload.get("author")
    if isinstance(author, dict):
        lines.append("【作者】")
        lines.append(f"文本：{_format_text(author.get('text'))}")
        lines.extend(_format_styles(author.get("styles")))
        lines.append("")

    body_styles = payload.get("bodyStyles")
    lines.append("【正文样式】")
    if isinstance(body_styles, list) and body_styles:
        lines.extend(_format_styles(body_styles))
    else:
        lines.append("未提供")
    paragraphs = payload.get("paragraphs")
    paragraph_count = len(paragraphs) if isinstance(paragraphs, list) else 0
    lines.append(f"段落数：{paragraph_count}")
    lines.append(f"字数：{_format_number(payload.get('wordCount'))}")
    lines.append("")

    deep = payload.get("deepFontAnalysis")
    if isinstance(deep, dict):
        lines.extend(format_font_usage(deep.get("fonts")).splitlines())
        defaults = deep.get("defaultFonts")
        if isinstance(defaults, dict) and defaults:
            lines.append(
                "默认字体："
                + "，".join(
                    f"{label}={_format_text(defaults.get(key), empty='-')}"
                    for label, key in (("东亚", "eastAsia"), ("西文", "hAnsi"), ("ASCII", "ascii"))
                )
            )
        lines.append("")

    images = payload.get("images")
    lines.extend(format_images(images if isinstance(images, list) else []).splitlines())

    while lines and lines[-1] == "":
        lines.pop()
    return "\n".join(lines)


def format_font_usage(fonts: object) -> str:
    if not isinstance(fonts, dict) or not fonts:
        return "【字体使用】未检测到字体"
    lines = ["【字体使用】"]
    for name, usage in fonts.items():
        if not isinstance(usage, dict):
            continue
        samples = usage.get("samples") or []
        sample_text = " / ".join(str(sample) for sample in samples) if samples else "-"
        lines.append(f"{name}：{_format_number(usage.get('count'))} 处，示例：{sample_text}")
    return "\n".join(lines)


def format_images(images: Iterable[object]) -> str:
    entries = [image for image in images if isinstance(image, dict)]
    if not entries:
        return "【图片】无"
    located = sum(1 for image in entries if image.get("paragraphIndex") is not None)
    lines = [f"【图片】共 {len(entries)} 张，已定位 {located} 张"]
    for image in entries:
        position = image.get("paragraphIndex")
        where = f"段落 {position}" if position is not None else "位置未知"
        if position is not None and image.get("runIndex") is not None:
            where += f"，Run {image.get('runIndex')}"
        lines.append(
            f"{_format_text(image.get('name'))}（{_format_text(image.get('mimeType'))}，"
            f"{_format_size(image.get('size'))}）：{where}"
        )
    return "\n".join(lines)


def _format_styles(styles: object) -> list[str]:
    if not isinstance(styles, list) or not styles:
        return ["样式：未提供"]
    lines: list[str] = []
    for position, style in enumerate(styles, start=1):
        if not isinstance(style, dict):
            continue
        parts = [
            f"字体={_format_text(style.get('name'))}",
            f"字号={_format_font_size(style.get('sizeName'), style.get('size'))}",
            f"粗体={_format_bool(style.get('isBold'))}",
        ]
        if style.get("isItalic"):
            parts.append("斜体=是")
        if style.get("isUnderline"):
            parts.append("下划线=是")
        if style.get("color"):
            parts.append(f"颜色=#{style.get('color')}")
        parts.append(f"对齐={_format_alignment(style.get('alignment'))}")
        lines.append(f"样式{position}：" + "，".join(parts))
    return lines


def _format_text(value: object, empty: str = "未提供") -> str:
    if value is None:
        return empty
    return str(value)


def _format_number(value: object) -> str:
    if value is None:
        return "未提供"
    if isinstance(value, (int, float)):
        return f"{value:g}"
    return str(value)


def _format_font_size(name: object, pt: object) -> str:
    name_text = str(name).strip() if name else ""
    if isinstance(pt, (int, float)):
        pt_text = f"{pt:g} pt"
    else:
        pt_text = ""
    if name_text and pt_text:
        return f"{name_text} ({pt_text})"
    if name_text:
        return name_text
    if pt_text:
        return pt_text
    return "未提供"


def _format_bool(value: object) -> str:
    if value is None:
        return "未提供"
    return "是" if bool(value) else "否"


def _format_alignment(value: object) -> str:
    if value is None:
        return "未提供"
    mapping = {
        "left": "左对齐",
        "center": "居中",
        "right": "右对齐",
        "justify": "两端对齐",
    }
    return mapping.get(str(value).lower(), str(value))


def _format_size(value: object) -> str:
    if not isinstance(value, int):
        return "大小未知"
    if value >= 1024 * 1024:
        return f"{value / (1024 * 1024):.1f} MB"
    if value >= 1024:
        return f"{value / 1024:.1f} KB"
    return f"{value} B"
