from __future__ import annotations

from ..models.run_summary import RunSummary

"""Run summary rendering.

format_summary() produces the multi-line report shown to the person who ran a
push: counts first, then at most `max_show` error lines and a "(+k more)"
tail. Errors are always reported, never hidden.

render_summary_line() produces the single machine-readable SUMMARY line:

    SUMMARY attempted=3 sent=2 skipped_no_id=0 skipped_errors=1
"""

__all__ = [
    "MAX_ERRORS_SHOWN",
    "format_summary",
    "render_summary_line",
]

MAX_ERRORS_SHOWN = 10


def format_summary(summary: RunSummary, id_field_name: str, max_show: int = MAX_ERRORS_SHOWN) -> str:
    lines = [
        f"Attempted rows: {summary.attempted_rows}",
        f"Sent: {summary.sent}",
        f"Skipped (blank {id_field_name}): {summary.skipped_no_id}",
        f"Skipped due to errors: {summary.skipped_errors}",
    ]

    if summary.errors:
        shown = summary.errors[:max_show]
        lines += ["", "Errors:"]
        lines += [f"• {msg}" for msg in shown]
        extra = len(summary.errors) - len(shown)
        if extra > 0:
            lines.append(f"(+{extra} more)")

    return "Push summary\n\n" + "\n".join(lines)


def render_summary_line(summary: RunSummary) -> str:
    return (
        f"SUMMARY attempted={summary.attempted_rows} "
        f"sent={summary.sent} "
        f"skipped_no_id={summary.skipped_no_id} "
        f"skipped_errors={summary.skipped_errors}"
    )
