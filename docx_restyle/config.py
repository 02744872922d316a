from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
OUTPUT_DIR = PROJECT_ROOT / "output"
LOG_DIR = PROJECT_ROOT / "logs"
DEFAULT_OUTPUT_NAME = "restyled.docx"

LOG_FILE_PREFIX = "docx_restyle"
LOG_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S_%f"
LOG_RETENTION_DAYS = 5
WRITE_LOGS = True

FALLBACK_EAST_ASIA_FONT = "等线"
FALLBACK_LATIN_FONT = "Times New Roman"
DEFAULT_FONT_LABEL = "默认字体"
UNKNOWN_FONT_LABEL = "未知字体"
COMPARISON_FONT_SIZE_PT = 12.0

TITLE_MAX_CHARS = 50
AUTHOR_MAX_CHARS = 30
SAMPLE_LIMIT = 3
SAMPLE_MAX_CHARS = 50

DEFAULT_ROLE_STYLES: dict[str, dict[str, object]] = {
    "title": {
        "font_name": "黑体",
        "font_size_pt": 16.0,
        "bold": True,
        "italic": False,
        "underline": False,
        "color": "000000",
        "alignment": "center",
        "space_before_pt": 12.0,
        "space_after_pt": 6.0,
        "first_line_indent_pt": None,
    },
    "author": {
        "font_name": "宋体",
        "font_size_pt": 12.0,
        "bold": False,
        "italic": False,
        "underline": False,
        "color": "000000",
        "alignment": "center",
        "space_before_pt": 6.0,
        "space_after_pt": 12.0,
        "first_line_indent_pt": None,
    },
    "body": {
        "font_name": "宋体",
        "font_size_pt": 12.0,
        "bold": False,
        "italic": False,
        "underline": False,
        "color": "000000",
        "alignment": "left",
        "space_before_pt": 6.0,
        "space_after_pt": 6.0,
        "first_line_indent_pt": 24.0,
    },
}
ROLE_STYLE_NAMES = {
    "title": "Document Title",
    "author": "Document Author",
    "body": "Document Body",
}

IMAGE_DISPLAY_WIDTH_PX = 400
IMAGE_FALLBACK_ASPECT_RATIO = 0.75
IMAGE_PLACEMENT_TOLERANCE_FACTOR = 1.0
IMAGE_PLACEHOLDER_TEMPLATE = "[图片: {name}]"

MAX_PACKAGE_BYTES = 200 * 1024 * 1024
MAX_PART_BYTES = 64 * 1024 * 1024
ANALYSIS_WORKERS = 2


@dataclass(frozen=True)
class RetentionPolicy:
    retention_days: float = LOG_RETENTION_DAYS

    def should_evict(self, age_seconds: float) -> bool:
        if self.retention_days <= 0:
            return False
        return age_seconds > self.retention_days * 86400


def ensure_base_dirs() -> None:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)


def build_log_path(ts: datetime | None = None) -> Path:
    if ts is None:
        ts = datetime.now()
    name = f"{LOG_FILE_PREFIX}_{ts.strftime(LOG_TIMESTAMP_FORMAT)}.log"
    return LOG_DIR / name


def cleanup_logs(policy: RetentionPolicy | None = None, now: datetime | None = None) -> int:
    if policy is None:
        policy = RetentionPolicy()
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
    except OSError:
        return 0
    base_time = (now or datetime.now()).timestamp()
    removed = 0
    for path in LOG_DIR.glob(f"{LOG_FILE_PREFIX}_*.log"):
        try:
            if policy.should_evict(base_time - path.stat().st_mtime):
                path.unlink()
                removed += 1
        except OSError:
            continue
    return removed
