from __future__ import annotations

import re

CHINESE_FONT_SIZES: tuple[tuple[str, float], ...] = (
    ("初号", 42.0),
    ("小初", 36.0),
    ("一号", 26.0),
    ("小一", 24.0),
    ("二号", 22.0),
    ("小二", 18.0),
    ("三号", 16.0),
    ("小三", 15.0),
    ("四号", 14.0),
    ("小四", 12.0),
    ("五号", 10.5),
    ("小五", 9.0),
    ("六号", 7.5),
    ("小六", 6.5),
    ("七号", 5.5),
    ("八号", 5.0),
)
_SIZE_BY_NAME = dict(CHINESE_FONT_SIZES)
_DIGIT_TO_CHINESE = {
    "0": "初",
    "1": "一",
    "2": "二",
    "3": "三",
    "4": "四",
    "5": "五",
    "6": "六",
    "7": "七",
    "8": "八",
}
_DIGIT_NAME_PATTERN = re.compile(r"^(小)?\s*([0-8])\s*号$")
_NUMERIC_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(?:pt|磅)?\s*$", re.IGNORECASE)
_NAME_TOLERANCE = 0.25


def pt_to_half_points(value: float) -> int:
    return int(round(value * 2))


def half_points_to_pt(value: int) -> float:
    return value / 2


def parse_font_size(value: object) -> float | None:
    """Return points for ``12``, ``"10.5"``, ``"小四"`` or ``"5号"``; ``None`` otherwise."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    text = str(value).strip()
    if not text:
        return None
    if text in _SIZE_BY_NAME:
        return _SIZE_BY_NAME[text]
    digit_match = _DIGIT_NAME_PATTERN.match(text)
    if digit_match:
        prefix, digit = digit_match.groups()
        chinese = _DIGIT_TO_CHINESE[digit]
        name = f"小{chinese}" if prefix else f"{chinese}号"
        if chinese == "初":
            name = "小初" if prefix else "初号"
        return _SIZE_BY_NAME.get(name)
    numeric_match = _NUMERIC_PATTERN.match(text)
    if numeric_match:
        size = float(numeric_match.group(1))
        return size if size > 0 else None
    return None


def font_size_name(value: float | None) -> str | None:
    if value is None:
        return None
    for name, pt in CHINESE_FONT_SIZES:
        if abs(value - pt) <= _NAME_TOLERANCE:
            return name
    return None


def font_size_options() -> list[dict[str, object]]:
    return [
        {"value": name, "label": f"{name} ({pt:g}磅)", "pt": pt}
        for name, pt in CHINESE_FONT_SIZES
    ]
