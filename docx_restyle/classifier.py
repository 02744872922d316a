from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from . import config
from .models import ParagraphRecord

AUTHOR_PATTERN = re.compile(r"[（(](.+)[)）]|作者[：:]\s*(.+)")
SENTENCE_TERMINALS = ("。", ".")


class RoleKind(str, Enum):
    TITLE = "title"
    AUTHOR = "author"
    BODY = "body"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class RoleDecision:
    kind: RoleKind
    reason: str
    text: str | None = None

    @property
    def accepted(self) -> bool:
        return self.kind in (RoleKind.TITLE, RoleKind.AUTHOR)


@dataclass(frozen=True)
class RoleAssignment:
    title: RoleDecision
    author: RoleDecision | None = None

    @property
    def has_title(self) -> bool:
        return self.title.kind is RoleKind.TITLE

    @property
    def has_author(self) -> bool:
        return self.author is not None and self.author.kind is RoleKind.AUTHOR

    @property
    def body_start(self) -> int:
        if self.has_author:
            return 2
        if self.has_title:
            return 1
        return 0


TitleRule = Callable[[ParagraphRecord, "ParagraphRecord | None"], bool]


def _is_centered(first: ParagraphRecord, second: ParagraphRecord | None) -> bool:
    if first.alignment == "center":
        return True
    return bool(first.styles) and first.styles[0].alignment == "center"


def _is_larger(first: ParagraphRecord, second: ParagraphRecord | None) -> bool:
    if second is None or not first.styles or not second.styles:
        return False
    return _leading_size(first) > _leading_size(second)


def _is_bolder(first: ParagraphRecord, second: ParagraphRecord | None) -> bool:
    if second is None or not first.styles or not second.styles:
        return False
    return first.styles[0].bold and not second.styles[0].bold


def _is_headline_text(first: ParagraphRecord, second: ParagraphRecord | None) -> bool:
    return second is not None and _looks_like_headline(first.text)


TITLE_RULES: tuple[tuple[str, TitleRule], ...] = (
    ("centered", _is_centered),
    ("larger than the next paragraph", _is_larger),
    ("bold while the next paragraph is not", _is_bolder),
    ("short without sentence punctuation", _is_headline_text),
)


def classify_title(first: ParagraphRecord | None, second: ParagraphRecord | None) -> RoleDecision:
    if first is None:
        return RoleDecision(RoleKind.BODY, "document has no text")
    for reason, rule in TITLE_RULES:
        if rule(first, second):
            return RoleDecision(RoleKind.TITLE, reason, text=first.text)
    if second is None and _looks_like_headline(first.text):
        return RoleDecision(RoleKind.AMBIGUOUS, "short single paragraph with no following text")
    return RoleDecision(RoleKind.BODY, "no title signal")


def classify_author(second: ParagraphRecord | None, title: RoleDecision) -> RoleDecision:
    if title.kind is not RoleKind.TITLE:
        return RoleDecision(RoleKind.BODY, "no title accepted")
    if second is None:
        return RoleDecision(RoleKind.BODY, "no second paragraph")
    text = second.text.strip()
    if len(text) >= config.AUTHOR_MAX_CHARS:
        return RoleDecision(RoleKind.BODY, "second paragraph too long")
    match = AUTHOR_PATTERN.search(text)
    if match is None:
        return RoleDecision(RoleKind.AMBIGUOUS, "short second paragraph without author marker")
    name = (match.group(1) or match.group(2) or "").strip()
    if not name:
        return RoleDecision(RoleKind.AMBIGUOUS, "author marker without a name")
    return RoleDecision(RoleKind.AUTHOR, "author marker", text=name)


def classify_roles(records: Sequence[ParagraphRecord]) -> RoleAssignment:
    """Decide title and author over the first two text paragraphs."""
    first = records[0] if records else None
    second = records[1] if len(records) > 1 else None
    title = classify_title(first, second)
    if title.kind is not RoleKind.TITLE:
        return RoleAssignment(title=title)
    return RoleAssignment(title=title, author=classify_author(second, title))


def _leading_size(record: ParagraphRecord) -> float:
    size = record.styles[0].size
    return size if size is not None else config.COMPARISON_FONT_SIZE_PT


def _looks_like_headline(text: str) -> bool:
    text = text.strip()
    if not text or len(text) >= config.TITLE_MAX_CHARS:
        return False
    return not any(mark in text for mark in SENTENCE_TERMINALS)
