"""
Render notes and rate cards to PDF.

``render(document, template)`` is a pure function of its inputs and returns
``(pdf_bytes, filename)``; nothing is stored.
"""
import io
import os
from typing import Callable, Dict, List, Tuple, Union

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from ..config import settings
from ..schemas.notes import Note
from ..schemas.ratecards import RateCard
from ..services.spreadsheet import export_filename, format_date, format_price, to_ascii


MARGIN = 56
LINE_GAP = 4


# Register a unicode font when one is configured; Helvetica otherwise
def _register_fonts() -> Tuple[str, str]:
    font_dir = settings.font_dir
    if font_dir:
        regular = os.path.join(font_dir, "DejaVuSans.ttf")
        bold = os.path.join(font_dir, "DejaVuSans-Bold.ttf")
        if os.path.exists(regular) and os.path.exists(bold):
            if "DejaVuSans" not in pdfmetrics.getRegisteredFontNames():
                pdfmetrics.registerFont(TTFont("DejaVuSans", regular))
                pdfmetrics.registerFont(TTFont("DejaVuSans-Bold", bold))
            return "DejaVuSans", "DejaVuSans-Bold"
    return "Helvetica", "Helvetica-Bold"


class _Writer:
    """Top-down text cursor over a reportlab canvas with automatic page breaks."""

    def __init__(self, c: canvas.Canvas, font: str, font_bold: str):
        self.c = c
        self.font = font
        self.font_bold = font_bold
        self.width, self.height = A4
        self.y = self.height - MARGIN

    def _ensure(self, needed: float) -> None:
        if self.y - needed < MARGIN:
            self.c.showPage()
            self.y = self.height - MARGIN

    def text(self, value: str, size: int = 11, bold: bool = False, indent: float = 0) -> None:
        font = self.font_bold if bold else self.font
        max_width = self.width - 2 * MARGIN - indent
        for raw_line in (value or "").replace("\r\n", "\n").split("\n"):
            for line in simpleSplit(raw_line, font, size, max_width) or [""]:
                self._ensure(size + LINE_GAP)
                self.c.setFont(font, size)
                self.c.setFillColor(colors.black)
                self.c.drawString(MARGIN + indent, self.y - size, line)
                self.y -= size + LINE_GAP

    def field(self, label: str, value: str, size: int = 11) -> None:
        self._ensure(size + LINE_GAP)
        self.c.setFont(self.font_bold, size)
        self.c.drawString(MARGIN, self.y - size, label)
        offset = self.c.stringWidth(label + " ", self.font_bold, size)
        self.c.setFont(self.font, size)
        self.c.drawString(MARGIN + offset, self.y - size, value)
        self.y -= size + LINE_GAP

    def row(self, cells: List[str], widths: List[float], size: int = 10, bold: bool = False) -> None:
        font = self.font_bold if bold else self.font
        self._ensure(size + LINE_GAP)
        self.c.setFont(font, size)
        x = MARGIN
        for value, width in zip(cells, widths):
            clipped = simpleSplit(value, font, size, width - 6)[:1] or [""]
            self.c.drawString(x, self.y - size, clipped[0])
            x += width
        self.y -= size + LINE_GAP

    def gap(self, amount: float = 10) -> None:
        self.y -= amount


def _note(w: _Writer, note: Note) -> str:
    w.text("Not Detayı", size=16, bold=True)
    w.gap()
    w.field("Müşteri Adı:", note.customer_name)
    w.field("Konu:", note.subject)
    w.field("Tarih:", format_date(note.date))
    w.field("Oluşturan:", note.created_by)
    w.gap()
    w.text("İçerik:", bold=True)
    w.text(note.content)
    if note.files:
        w.gap()
        w.text("Ekler:", bold=True)
        for f in note.files:
            w.text(f"- {f.name}", indent=8)
    safe = to_ascii(note.customer_name).replace('"', "").strip() or "note"
    return f"Not-{safe}-{format_date(note.date)}.pdf"


def _ratecard(w: _Writer, card: RateCard) -> str:
    w.text("Rate Card", size=16, bold=True)
    w.gap()
    w.field("Müşteri Adı:", card.customer_name)
    w.field("Başlangıç Tarihi:", format_date(card.start_date))
    w.field("Bitiş Tarihi:", format_date(card.end_date))
    w.gap()
    widths = [150, 230, 100]
    w.row(["Kategori", "Hizmet Adı", "Birim Fiyat"], widths, bold=True)
    for category in card.categories:
        if not category.services:
            w.row([category.name, "", ""], widths)
        for service in category.services:
            w.row([category.name, service.name, format_price(service.price)], widths)
    return export_filename(card.customer_name, ext="pdf")


_TEMPLATES: Dict[str, Callable[[_Writer, object], str]] = {
    "note": _note,
    "ratecard": _ratecard,
}


def render(document: Union[Note, RateCard], template: str) -> Tuple[bytes, str]:
    """Render ``document`` with the named template ("note" or "ratecard")."""
    try:
        draw = _TEMPLATES[template]
    except KeyError:
        raise ValueError(f"Unknown document template: {template!r}") from None
    font_name, font_bold = _register_fonts()
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    filename = draw(_Writer(c, font_name, font_bold), document)
    c.showPage()
    c.save()
    buf.seek(0)
    return buf.read(), filename
