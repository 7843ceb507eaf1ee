from __future__ import annotations

import html
import json
from enum import Enum
from typing import Optional

from balog.analytics.report import Report, SubReport
from balog.errors import RenderError
from balog.insight.gemini import GOOGLE_AI_MODEL

PROJECT_URL = "https://github.com/meinside/balog"


class ReportFormat(str, Enum):
    PLAIN = "plain"
    JSON = "json"
    TELEGRAPH = "telegraph"


# -------------------------
# Plain text
# -------------------------
def _plain_block(sub: SubReport) -> str:
    protocols = "\n".join(f"  {k}: {v}" for k, v in sub.protocol_counts.most_common())
    countries = "\n".join(f"  {k}: {v}" for k, v in sub.country_counts.most_common())
    return (
        f"> {sub.from_to} ({sub.days} days)\n"
        f"* Total: {sub.total_count} ban action(s)\n"
        "\n"
        "* Protocols:\n"
        f"{protocols}\n"
        "\n"
        "* Originating Countries:\n"
        f"{countries}\n"
        "---\n"
    )


def render_plain(report: Report, insight: Optional[str] = None, model: str = GOOGLE_AI_MODEL) -> str:
    """Plain text report; counts are sorted by occurrence, most frequent first."""
    text = (
        "\n>>> Generated Report:\n\n"
        + _plain_block(report.last_days_report1)
        + "\n"
        + _plain_block(report.last_days_report2)
    )
    if insight is not None:
        text = f"{text}\n\n===\n* Generated insights (by {model}):\n\n{insight}"
    return text


# -------------------------
# JSON
# -------------------------
def _sub_report_dict(sub: SubReport) -> dict:
    return {
        "from_to": sub.from_to,
        "total_count": sub.total_count,
        "protocol_counts": dict(sub.protocol_counts),
        "country_counts": dict(sub.country_counts),
    }


def render_json(report: Report, insight: Optional[str] = None) -> str:
    """Compact JSON report; counts keep the order in which they were first seen."""
    payload = {
        "last_days_report1": _sub_report_dict(report.last_days_report1),
        "last_days_report2": _sub_report_dict(report.last_days_report2),
    }
    if insight is not None:
        payload["insight"] = insight

    try:
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise RenderError(f"failed to encode report as json: {e}") from e


# -------------------------
# HTML for telegra.ph
# -------------------------
def _html_block(sub: SubReport) -> str:
    protocols = "\n".join(
        f"• {html.escape(k)}: {v}" for k, v in sub.protocol_counts.most_common()
    )
    countries = "\n".join(
        f"• {html.escape(k)}: {v}" for k, v in sub.country_counts.most_common()
    )
    return (
        "<p>\n"
        f"<h4>{sub.from_to} ({sub.days} days)</h4>\n"
        "\n"
        f"<strong>Total</strong> {sub.total_count} ban action(s)\n"
        "\n"
        "<strong>Protocols</strong>\n"
        f"{protocols}\n"
        "\n"
        "<strong>Originating Countries</strong>\n"
        f"{countries}\n"
        "</p>"
    )


def render_telegraph(report: Report, insight: Optional[str] = None, model: str = GOOGLE_AI_MODEL) -> str:
    """HTML fragment for a telegra.ph page, sorted like the plain text report."""
    page = (
        "<h3>Generated Report</h3>\n"
        "\n"
        f"{_html_block(report.last_days_report1)}\n"
        f"{_html_block(report.last_days_report2)}\n"
        "\n"
        f'<i>report generated by <a href="{PROJECT_URL}">balog</a></i>'
    )
    if insight is not None:
        page = (
            f"{page}\n"
            "\n"
            "<p>\n"
            "<h4>Insights</h4>\n"
            "\n"
            f"{html.escape(insight)}\n"
            "</p>\n"
            "\n"
            f"<i>insights generated by <strong>{html.escape(model)}</strong></i>"
        )
    return page


def render(fmt: ReportFormat, report: Report, insight: Optional[str] = None) -> str:
    fmt = ReportFormat(fmt)
    if fmt is ReportFormat.PLAIN:
        return render_plain(report, insight)
    if fmt is ReportFormat.JSON:
        return render_json(report, insight)
    return render_telegraph(report, insight)
