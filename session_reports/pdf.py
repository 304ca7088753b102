from __future__ import annotations  # Styled PDF rendering for session reports

import datetime as dt
import os
from typing import Any, List, Optional, Sequence, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from storage.models import InterviewResponse, ProctoringLog

from .models import SessionReport


DEJAVU_SANS = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"  # System font
DEJAVU_SANS_BOLD = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"  # System font

ACCENT = (45, 115, 245)  # Palette accent
TEXT = (34, 34, 34)  # Primary text color
MUTED = (100, 100, 100)  # Secondary text color
RULE = (230, 230, 230)  # Divider color
ALERT = (200, 60, 60)  # Flag and high-severity color
SOFT_ACCENT_BG = (243, 248, 255)  # Highlight background


def _format_datetime(value: Optional[dt.datetime]) -> str:  # Format timestamp for display
    if not value:
        return "-"
    return value.strftime("%d %b %Y, %I:%M %p").lstrip("0").replace(" 0", " ")


def _effective_width(pdf: FPDF) -> float:  # Compute effective page width
    return float(pdf.w) - float(pdf.l_margin) - float(pdf.r_margin)


def _score(value: Optional[int]) -> str:
    return "N/A" if value is None else f"{value}/100"


class ReportPDF(FPDF):  # PDF with custom header/footer styling
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.header_title = "Interview Report"
        self.font_regular = "Helvetica"
        self.font_bold = "Helvetica"
        self.supports_unicode = False

    def use_system_fonts(self) -> None:  # Prefer DejaVu when installed
        if not (os.path.exists(DEJAVU_SANS) and os.path.exists(DEJAVU_SANS_BOLD)):
            return
        self.add_font("DejaVu", "", DEJAVU_SANS)
        self.add_font("DejaVu", "B", DEJAVU_SANS_BOLD)
        self.font_regular = "DejaVu"
        self.font_bold = "DejaVu"
        self.supports_unicode = True

    def clean(self, text: Any) -> str:  # Sanitize text for non-unicode fonts
        value = "-" if text is None or text == "" else str(text)
        if self.supports_unicode:
            return value
        return value.replace("•", "-").encode("latin-1", "replace").decode("latin-1")

    def header(self) -> None:  # Render header banner
        usable = _effective_width(self)
        if self.page_no() == 1:
            self.set_fill_color(*ACCENT)
            self.rect(0, 0, self.w, 20, style="F")
            self.set_text_color(255, 255, 255)
            self.set_font(self.font_bold, "B", 16)
            self.set_xy(self.l_margin, 6)
            self.cell(usable, 8, self.clean(self.header_title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            self.set_text_color(*TEXT)
            self.set_y(26)
        else:
            self.set_text_color(80, 80, 80)
            self.set_xy(self.l_margin, 8)
            self.set_font(self.font_bold, "B", 12)
            self.cell(usable, 6, self.clean(self.header_title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            mark = self.get_y()
            self.set_draw_color(*ACCENT)
            self.set_line_width(0.4)
            self.line(self.l_margin, mark + 1, self.w - self.r_margin, mark + 1)
            self.set_text_color(*TEXT)
            self.ln(4)

    def footer(self) -> None:  # Render footer with pagination
        self.set_y(-12)
        self.set_draw_color(*RULE)
        self.set_line_width(0.2)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.set_text_color(120, 120, 120)
        self.set_font(self.font_regular, "", 9)
        self.cell(0, 10, f"Page {self.page_no()}/{{nb}}", align="R")


def _section_title(pdf: ReportPDF, title: str) -> None:  # Render styled section title
    pdf.set_text_color(*TEXT)
    pdf.set_x(pdf.l_margin)
    pdf.set_font(pdf.font_bold, "B", 13)
    pdf.cell(0, 9, title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_draw_color(*RULE)
    pdf.set_line_width(0.2)
    y = pdf.get_y()
    pdf.line(pdf.l_margin, y, pdf.l_margin + _effective_width(pdf), y)
    pdf.ln(2)


def _paragraph(pdf: ReportPDF, text: str, *, color: Tuple[int, int, int] = TEXT, size: int = 10) -> None:
    pdf.set_x(pdf.l_margin)
    pdf.set_text_color(*color)
    pdf.set_font(pdf.font_regular, "", size)
    pdf.multi_cell(_effective_width(pdf), 5.5, pdf.clean(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_text_color(*TEXT)


def _meta_block(pdf: ReportPDF, rows: List[Tuple[str, str]]) -> None:  # Draw two-column metadata
    col = _effective_width(pdf) / 2.0
    for idx in range(0, len(rows), 2):
        left = rows[idx]
        right = rows[idx + 1] if idx + 1 < len(rows) else ("", "")
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*MUTED)
        pdf.set_font(pdf.font_regular, "", 10)
        pdf.cell(col, 6, left[0], new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, 6, right[0], new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_text_color(*TEXT)
        pdf.set_font(pdf.font_bold, "B", 11)
        pdf.cell(col, 6, pdf.clean(left[1]), new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.cell(col, 6, pdf.clean(right[1]) if right[0] else "", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _table_header(pdf: ReportPDF, headers: Sequence[str], widths: Sequence[float]) -> None:
    pdf.set_x(pdf.l_margin)
    pdf.set_fill_color(*ACCENT)
    pdf.set_text_color(255, 255, 255)
    pdf.set_font(pdf.font_bold, "B", 10)
    for title, width in zip(headers, widths):
        pdf.cell(width, 8, title, align="L", fill=True)
    pdf.ln(8)
    pdf.set_text_color(*TEXT)


def _render_evaluation(pdf: ReportPDF, report: SessionReport) -> None:  # Verdict and metric table
    evaluation = report.evaluation
    if evaluation is None:
        _paragraph(pdf, "No evaluation recorded for this session.", color=MUTED)
        pdf.ln(2)
        return
    pdf.set_fill_color(*SOFT_ACCENT_BG)
    pdf.rect(pdf.l_margin, pdf.get_y(), _effective_width(pdf), 14, style="F")
    pdf.set_xy(pdf.l_margin + 4, pdf.get_y() + 3)
    pdf.set_font(pdf.font_bold, "B", 13)
    pdf.set_text_color(*(ACCENT if evaluation.is_fit else ALERT))
    verdict = "Fit" if evaluation.is_fit else "Unfit"
    pdf.cell(0, 8, f"{verdict} - overall {evaluation.overall_score}%", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(4)
    _paragraph(pdf, evaluation.reasoning)
    if evaluation.behavioral_note:
        _paragraph(pdf, f"Behavioral note: {evaluation.behavioral_note}", color=MUTED)
    pdf.ln(2)
    width = _effective_width(pdf)
    widths = [width * 0.3, width * 0.15, width * 0.55]
    _table_header(pdf, ["Metric", "Score", "Feedback"], widths)
    pdf.set_font(pdf.font_regular, "", 10)
    for idx, metric in enumerate(evaluation.metrics):
        fill = idx % 2 == 0
        pdf.set_fill_color(247, 250, 255)
        pdf.set_x(pdf.l_margin)
        pdf.cell(widths[0], 7, pdf.clean(metric.name), fill=fill)
        pdf.cell(widths[1], 7, _score(metric.score), fill=fill)
        pdf.multi_cell(widths[2], 7, pdf.clean(metric.feedback), fill=fill, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)


def _render_proctoring(pdf: ReportPDF, logs: Sequence[ProctoringLog]) -> None:  # Proctoring trail table
    if not logs:
        _paragraph(pdf, "No proctoring events recorded.", color=MUTED)
        pdf.ln(2)
        return
    width = _effective_width(pdf)
    widths = [width * 0.35, width * 0.4, width * 0.25]
    _table_header(pdf, ["Time", "Event", "Severity"], widths)
    pdf.set_font(pdf.font_regular, "", 10)
    for log in logs:
        pdf.set_x(pdf.l_margin)
        pdf.set_text_color(*TEXT)
        pdf.cell(widths[0], 7, _format_datetime(log.timestamp))
        pdf.cell(widths[1], 7, pdf.clean(log.event_type))
        pdf.set_text_color(*(ALERT if log.severity == "high" else MUTED))
        pdf.cell(widths[2], 7, log.severity, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_text_color(*TEXT)
    pdf.ln(2)


def _render_turn(pdf: ReportPDF, index: int, turn: InterviewResponse) -> None:  # One Q&A block
    usable = _effective_width(pdf)
    pdf.set_x(pdf.l_margin)
    pdf.set_text_color(*ACCENT)
    pdf.set_font(pdf.font_bold, "B", 10)
    pdf.multi_cell(usable, 5.5, pdf.clean(f"Q{index}: {turn.question_text}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    _paragraph(pdf, f"A: {turn.candidate_answer}")
    if turn.ai_acknowledgment:
        _paragraph(pdf, f"Interviewer: {turn.ai_acknowledgment}", color=MUTED, size=9)
    if turn.tech_score is not None:
        rating = (
            f"Technical {_score(turn.tech_score)} | Communication {_score(turn.comm_score)} | "
            f"Over-fit {_score(turn.overfit_score)}"
        )
        if turn.ai_flagged:
            rating += " | AI flagged"
        _paragraph(pdf, rating, color=ALERT if turn.ai_flagged else MUTED, size=9)
    if turn.turn_feedback:
        _paragraph(pdf, f"Feedback: {turn.turn_feedback}", color=MUTED, size=9)
    y = pdf.get_y() + 1
    pdf.set_draw_color(*RULE)
    pdf.line(pdf.l_margin, y, pdf.l_margin + usable, y)
    pdf.ln(3)


def generate_session_report_pdf(report: SessionReport) -> bytes:  # Build PDF payload for a session report
    pdf = ReportPDF()
    pdf.use_system_fonts()
    pdf.alias_nb_pages()
    candidate = report.candidate.name if report.candidate else "Unknown candidate"
    pdf.header_title = f"{report.job.title} - {candidate} - Interview Report"
    pdf.set_margins(15, 22, 15)
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    session = report.session
    _section_title(pdf, "Session Overview")
    _meta_block(
        pdf,
        [
            ("Session ID", session.session_id),
            ("Status", session.status + (" (flagged)" if session.is_flagged else "")),
            ("Candidate", candidate),
            ("Email", report.candidate.email if report.candidate else "-"),
            ("Role", report.job.title),
            ("Company", report.job.company_name or report.job.company_id),
            ("Started", _format_datetime(session.start_time)),
            ("Ended", _format_datetime(session.end_time)),
            ("Warnings", str(session.warning_count)),
            ("Malpractice pauses", str(session.malpractice_count)),
        ],
    )

    _section_title(pdf, "Evaluation")
    _render_evaluation(pdf, report)

    _section_title(pdf, "Proctoring Events")
    _render_proctoring(pdf, report.proctoring_logs)

    _section_title(pdf, "Question & Answer Transcript")
    if not report.responses:
        _paragraph(pdf, "No transcript entries recorded for this session.", color=MUTED)
    for index, turn in enumerate(report.responses, start=1):
        _render_turn(pdf, index, turn)

    return bytes(pdf.output())


__all__ = ["generate_session_report_pdf"]
