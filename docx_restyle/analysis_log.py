from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from . import config


@dataclass
class WarningEntry:
    rule: str
    reason: str
    part: str | None = None
    style_id: str | None = None
    paragraph_index: int | None = None
    image_name: str | None = None


@dataclass
class AnalysisLogState:
    source: str
    start_time: datetime
    operation: str = "analyze"
    warnings: list[WarningEntry] = field(default_factory=list)
    paragraph_count: int = 0
    style_count: int = 0
    image_count: int = 0
    located_image_count: int = 0
    deep_detection: bool | None = None
    error: str | None = None
    elapsed_sec: float | None = None

    def rules(self) -> list[str]:
        return [warning.rule for warning in self.warnings]


def new_log_state(source: str | None, operation: str = "analyze") -> AnalysisLogState:
    return AnalysisLogState(
        source=source or "<buffer>",
        start_time=datetime.now(),
        operation=operation,
    )


def warn(
    log_state: AnalysisLogState | None,
    rule: str,
    reason: str,
    part: str | None = None,
    style_id: str | None = None,
    paragraph_index: int | None = None,
    image_name: str | None = None,
) -> None:
    if log_state is None:
        return
    log_state.warnings.append(
        WarningEntry(
            rule=rule,
            reason=reason,
            part=part,
            style_id=style_id,
            paragraph_index=paragraph_index,
            image_name=image_name,
        )
    )


def render_log(log_state: AnalysisLogState) -> str:
    lines = [
        f"operation: {log_state.operation}",
        f"source: {log_state.source}",
        f"elapsed_sec: {log_state.elapsed_sec:.3f}"
        if log_state.elapsed_sec is not None
        else "elapsed_sec: unknown",
        f"paragraph_count: {log_state.paragraph_count}",
        f"styles_count: {log_state.style_count}",
        f"image_count: {log_state.image_count}",
        f"located_image_count: {log_state.located_image_count}",
    ]
    if log_state.deep_detection is not None:
        lines.append(f"deep_detection: {'ok' if log_state.deep_detection else 'failed'}")
    if log_state.error:
        lines.append(f"error: {log_state.error}")
    lines.append(f"warnings_count: {len(log_state.warnings)}")
    for warning in log_state.warnings:
        parts = [f"rule={warning.rule}", f"reason={warning.reason}"]
        if warning.part:
            parts.append(f"part={warning.part}")
        if warning.style_id:
            parts.append(f"style_id={warning.style_id}")
        if warning.paragraph_index is not None:
            parts.append(f"paragraph_index={warning.paragraph_index}")
        if warning.image_name:
            parts.append(f"image={warning.image_name}")
        lines.append("warning: " + " ".join(parts))
    return "\n".join(lines) + "\n"


def write_log(log_state: AnalysisLogState) -> Path | None:
    if not config.WRITE_LOGS:
        return None
    try:
        config.ensure_base_dirs()
        log_path = config.build_log_path(log_state.start_time)
        log_path.write_text(render_log(log_state), encoding="utf-8")
    except OSError:
        return None
    return log_path
