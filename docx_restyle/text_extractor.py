from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO

from docx import Document
from docx.enum.text import WD_UNDERLINE
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from docx.text.paragraph import Paragraph
from docx.text.run import Run

from .errors import PackageReadError
from .font_detector import style_key
from .font_sizes import pt_to_half_points
from .models import FontInfo
from .ooxml import map_alignment, normalize_color, own_runs


@dataclass(frozen=True)
class StructuralRun:
    index: int
    text: str
    font: FontInfo


@dataclass(frozen=True)
class StructuralParagraph:
    index: int
    text: str
    style_id: str | None
    alignment: str | None
    runs: tuple[StructuralRun, ...]

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


def load_document(data: bytes):
    try:
        return Document(BytesIO(data))
    except PackageNotFoundError as exc:
        raise PackageReadError(f"invalid docx file: {exc}") from exc
    except (KeyError, ValueError) as exc:
        raise PackageReadError(f"not a Word document: {exc}") from exc


def extract_paragraphs(data: bytes) -> list[StructuralParagraph]:
    """Shallow pass over every ``w:p`` in document order.

    Only the properties written directly on each run are read; nothing is
    inherited from styles. Indices match ``ooxml.parse_document``.
    """
    document = load_document(data)
    body = document.element.body
    paragraphs: list[StructuralParagraph] = []
    for index, p in enumerate(body.iter(qn("w:p"))):
        paragraph = Paragraph(p, document._body)
        alignment = _paragraph_alignment(p)
        runs = []
        for run_index, r in enumerate(own_runs(p)):
            run = Run(r, paragraph)
            text = run.text
            if not text:
                continue
            runs.append(
                StructuralRun(
                    index=run_index,
                    text=text,
                    font=_shallow_font(run, alignment, style_key(index, run_index)),
                )
            )
        paragraphs.append(
            StructuralParagraph(
                index=index,
                text="".join(run.text for run in runs).strip(),
                style_id=_paragraph_style_id(p),
                alignment=alignment,
                runs=tuple(runs),
            )
        )
    return paragraphs


def _shallow_font(run: Run, alignment: str | None, key: str) -> FontInfo:
    font = run.font
    name = None
    r_pr = run._r.rPr
    if r_pr is not None:
        r_fonts = r_pr.find(qn("w:rFonts"))
        if r_fonts is not None:
            name = r_fonts.get(qn("w:eastAsia")) or r_fonts.get(qn("w:hAnsi"))
    name = name or font.name
    half_points = None
    if font.size is not None:
        half_points = pt_to_half_points(font.size.pt)
    color = None
    if font.color is not None and font.color.type is not None and font.color.rgb is not None:
        color = normalize_color(str(font.color.rgb))
    underline = font.underline
    return FontInfo(
        name=name,
        half_points=half_points,
        bold=bool(font.bold),
        italic=bool(font.italic),
        underline=underline not in (None, False, WD_UNDERLINE.NONE),
        color=color,
        alignment=alignment,
        original_style_key=key,
    )


def _paragraph_alignment(p) -> str | None:
    values = p.xpath("./w:pPr/w:jc/@w:val")
    return map_alignment(values[0] if values else None)


def _paragraph_style_id(p) -> str | None:
    values = p.xpath("./w:pPr/w:pStyle/@w:val")
    return values[0] if values else None
