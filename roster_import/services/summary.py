from __future__ import annotations

from ..models.upload_report import UploadReport

"""SUMMARY line rendering for the CLI.

Format:
SUMMARY kind={kind} success={true|false} processed={n} inserted={n} updated={n}
errors={n} elapsed_sec={elapsed}
"""


def _format_number(value: float) -> str:
    # 指数表記を避ける (極小値は小数 6 桁まで)
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(kind: str, report: UploadReport, elapsed_seconds: float) -> str:
    """Render the SUMMARY line for one upload.

    >>> from roster_import.models.upload_report import UploadReport
    >>> r = UploadReport(success=True, message="ok", processed=3, inserted=1, updated=2)
    >>> render_summary_line("games", r, 2.0)
    'SUMMARY kind=games success=true processed=3 inserted=1 updated=2 errors=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY kind={kind} "
        f"success={'true' if report.success else 'false'} "
        f"processed={report.processed} "
        f"inserted={report.inserted} "
        f"updated={report.updated} "
        f"errors={len(report.errors)} "
        f"elapsed_sec={_format_number(elapsed_seconds)}"
    )
