"""
Plain-language summary of a finished ranking.

Produces a short report with highlights, tier composition and one insight
per metric, both as structured sections and as plain text for export.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .schemas import Metric, RankingResponse
from .types import Direction, MetricType

HIGHLIGHT_LIMIT = 3


@dataclass
class ReportSection:
    title: str
    paragraphs: List[str] = field(default_factory=list)


@dataclass
class ReportSummary:
    title: str
    subtitle: str
    sections: List[ReportSection]
    plain_text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "subtitle": self.subtitle,
            "sections": [{"title": s.title, "paragraphs": list(s.paragraphs)} for s in self.sections],
            "plainText": self.plain_text,
        }


def format_percent(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value * 100:.1f}%"


def _highlights(response: RankingResponse) -> List[str]:
    lines = []
    for position, entry in enumerate(response.scores[:HIGHLIGHT_LIMIT], start=1):
        reason = f"Reason: {entry.main_reason}" if entry.main_reason else "Strong overall score"
        lines.append(f"#{position} {entry.name} ({format_percent(entry.total_score)}) - {reason}")
    return lines or ["No candidates have been ranked yet."]


def _tier_composition(response: RankingResponse) -> List[str]:
    lines = []
    for group in response.tiers:
        if not group.items:
            lines.append(f"Tier {group.label}: none")
            continue
        members = ", ".join(f"{item.name} ({format_percent(item.score)})" for item in group.items)
        lines.append(f"Tier {group.label}: {members}")
    return lines


def _metric_insights(response: RankingResponse, metrics: Sequence[Metric]) -> List[str]:
    if not metrics:
        return ["No metrics are defined, so there are no per-metric insights."]

    lines = []
    for metric in metrics:
        best_name = None
        best_value = None
        for entry in response.scores:
            for item in entry.breakdown:
                if item.metric_key != metric.key or item.status != "ok":
                    continue
                if best_value is None or item.normalized_value > best_value:
                    best_name, best_value = entry.name, item.normalized_value

        if best_name is None:
            lines.append(f"{metric.label}: not enough data to evaluate.")
            continue

        if metric.type == MetricType.FORMULA:
            direction_text = "formula metric"
        elif metric.direction == Direction.DOWN:
            direction_text = "lower is better"
        else:
            direction_text = "higher is better"
        lines.append(
            f"{metric.label}: {best_name} rated highest ({format_percent(best_value)} / {direction_text})."
        )
    return lines


def build_report_summary(response: RankingResponse, metrics: Sequence[Metric]) -> ReportSummary:
    """
    Summarize a ranking

    Args:
        response: Finished ranking (scores already sorted best first)
        metrics: Metric definitions used for the ranking

    Returns:
        ReportSummary with Highlights, Tier composition and Metric insights sections
    """
    title = "Ranking summary"
    subtitle = f"{len(response.scores)} candidates / {len(metrics)} metrics"
    sections = [
        ReportSection("Highlights", _highlights(response)),
        ReportSection("Tier composition", _tier_composition(response)),
        ReportSection("Metric insights", _metric_insights(response, metrics)),
    ]

    lines = [title, subtitle, ""]
    for section in sections:
        lines.append(section.title)
        lines.extend(section.paragraphs)
        lines.append("")
    plain_text = "\n".join(lines).strip()

    return ReportSummary(title=title, subtitle=subtitle, sections=sections, plain_text=plain_text)
