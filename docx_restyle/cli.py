from __future__ import annotations

import argparse
import json
import sys
from dataclasses import fields
from pathlib import Path
from typing import Sequence

from . import config
from .errors import DocxRestyleError, user_message
from .font_sizes import font_size_options, parse_font_size
from .models import ALIGNMENTS, FontModificationOptions
from .presets import PRESET_TEMPLATES, default_template, get_template, template_choices, template_options
from .processor import analyze_document, extract_images, get_font_usage, modify_fonts
from .report_formatter import format_analysis, format_font_usage, format_images

ROLE_ARGUMENTS = ("title", "author", "body")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docx-restyle",
        description="Analyse the styles of a Word document and rebuild it with new fonts.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  docx-restyle analyze paper.docx
  docx-restyle analyze paper.docx --json --no-deep
  docx-restyle fonts paper.docx
  docx-restyle presets
  docx-restyle modify paper.docx out.docx --preset official-document
  docx-restyle modify paper.docx out.docx --body-font 宋体 --body-size 小四 --title-prefix "【终稿】"
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="print title, author, body styles and images")
    analyze.add_argument("input", type=Path)
    analyze.add_argument("--no-deep", action="store_true", help="skip style inheritance resolution")
    analyze.add_argument("--json", action="store_true", help="print the JSON payload")

    fonts = sub.add_parser("fonts", help="print the font usage histogram")
    fonts.add_argument("input", type=Path)

    images = sub.add_parser("images", help="print the embedded images and their positions")
    images.add_argument("input", type=Path)
    images.add_argument("--json", action="store_true", help="print the JSON payload")

    sub.add_parser("presets", help="list the preset templates and the named font sizes")

    modify = sub.add_parser("modify", help="rebuild the document with new role styles")
    modify.add_argument("input", type=Path)
    modify.add_argument("output", type=Path, nargs="?")
    modify.add_argument(
        "--preset",
        choices=[template.template_id for template in PRESET_TEMPLATES],
        help="start from a preset template",
    )
    for role in ROLE_ARGUMENTS:
        group = modify.add_argument_group(f"{role} options")
        group.add_argument(f"--{role}-font", dest=f"{role}_font")
        group.add_argument(f"--{role}-size", dest=f"{role}_size", help="points or a Chinese size name (小四, 五号)")
        group.add_argument(f"--{role}-bold", dest=f"{role}_bold", action=argparse.BooleanOptionalAction)
        group.add_argument(f"--{role}-italic", dest=f"{role}_italic", action=argparse.BooleanOptionalAction)
        group.add_argument(f"--{role}-underline", dest=f"{role}_underline", action=argparse.BooleanOptionalAction)
        group.add_argument(f"--{role}-color", dest=f"{role}_color", help="hex colour, e.g. 000000")
        group.add_argument(f"--{role}-align", dest=f"{role}_align", choices=sorted(ALIGNMENTS))
        if role != "body":
            group.add_argument(f"--{role}-prefix", dest=f"{role}_prefix")
            group.add_argument(f"--{role}-suffix", dest=f"{role}_suffix")
    return parser


def options_from_args(args: argparse.Namespace) -> dict[str, FontModificationOptions | None]:
    base: dict[str, FontModificationOptions | None] = {role: None for role in ROLE_ARGUMENTS}
    if args.preset:
        template = get_template(args.preset)
        if template is not None:
            base.update(template_options(template))
    result: dict[str, FontModificationOptions | None] = {}
    for role in ROLE_ARGUMENTS:
        values: dict[str, object] = {}
        current = base[role]
        if current is not None:
            values.update({f.name: getattr(current, f.name) for f in fields(current)})
        size_text = getattr(args, f"{role}_size")
        overrides = {
            "target_font_name": getattr(args, f"{role}_font"),
            "target_font_size": _parse_size_argument(size_text) if size_text else None,
            "target_bold": getattr(args, f"{role}_bold"),
            "target_italic": getattr(args, f"{role}_italic"),
            "target_underline": getattr(args, f"{role}_underline"),
            "target_color": getattr(args, f"{role}_color"),
            "target_alignment": getattr(args, f"{role}_align"),
            "add_prefix": getattr(args, f"{role}_prefix", None),
            "add_suffix": getattr(args, f"{role}_suffix", None),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        result[role] = FontModificationOptions(**values) if values else None
    return result


def _parse_size_argument(value: str) -> float:
    size = parse_font_size(value)
    if size is None:
        raise argparse.ArgumentTypeError(f"unknown font size: {value}")
    return size


def format_presets() -> str:
    default_id = default_template().template_id
    lines = ["【预设模板】"]
    for choice in template_choices():
        marker = "（默认）" if choice["value"] == default_id else ""
        lines.append(f"{choice['value']}  {choice['label']}{marker}：{choice['description']}")
    lines.append("")
    lines.append("【字号】")
    lines.append("，".join(str(option["label"]) for option in font_size_options()))
    return "\n".join(lines)


def _read_input(path: Path) -> bytes:
    if not path.exists():
        raise FileNotFoundError(f"input file not found: {path}")
    return path.read_bytes()


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if config.WRITE_LOGS:
        config.cleanup_logs()
    if args.command == "presets":
        print(format_presets())
        return 0
    try:
        data = _read_input(args.input)
        if args.command == "analyze":
            result = analyze_document(data, use_deep_detection=not args.no_deep)
            payload = result.to_dict(include_image_data=False)
            if args.json:
                print(json.dumps(payload, ensure_ascii=False, indent=2))
            else:
                print(format_analysis(payload))
        elif args.command == "fonts":
            usage = get_font_usage(data)
            print(format_font_usage({name: item.to_dict() for name, item in usage.items()}))
        elif args.command == "images":
            extraction = extract_images(data)
            payload = extraction.to_dict(include_data=False)
            if args.json:
                print(json.dumps(payload, ensure_ascii=False, indent=2))
            else:
                print(format_images(payload["images"]))
        elif args.command == "modify":
            options = options_from_args(args)
            output = modify_fonts(
                data,
                title_options=options["title"],
                body_options=options["body"],
                author_options=options["author"],
            )
            target = args.output or config.OUTPUT_DIR / config.DEFAULT_OUTPUT_NAME
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(output)
            print(f"已保存：{target}")
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))
    except (DocxRestyleError, OSError, ValueError) as exc:
        print(f"错误：{user_message(exc)}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
