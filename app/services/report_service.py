"""
Report Rendering Service
Lays out mission submission reports as PDF using ReportLab
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from typing import Dict, List, Optional, Sequence
from xml.sax.saxutils import escape

import httpx
from PIL import Image as PILImage
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont, TTFError
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle,
    Image, HRFlowable
)
from reportlab.graphics.shapes import Drawing, Rect

from app.core.config import settings
from app.services.answer_normalizer import NormalizedItem
from app.services.kpi_service import KpiSet, average_rating
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

GRID_COLUMNS = 3
GRID_ROWS = 2
GALLERY_CELL = (2.1 * inch, 1.6 * inch)
THUMB_CELL = (1.6 * inch, 1.2 * inch)


@dataclass
class ReportPayload:
    """Everything printed on a mission report"""
    title: str
    mission_title: str
    store: Optional[str] = None
    address: Optional[str] = None
    window_text: Optional[str] = None
    agent_id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    kpis: Optional[KpiSet] = None
    items: List[NormalizedItem] = field(default_factory=list)
    gallery_urls: List[str] = field(default_factory=list)

    def photo_urls(self) -> List[str]:
        """Gallery and item photos, unique, in page order"""
        seen = set()
        urls = []
        for url in list(self.gallery_urls) + [u for item in self.items for u in item.photo_urls]:
            if url not in seen:
                seen.add(url)
                urls.append(url)
        return urls


class ReportService:
    """Service for rendering mission reports"""

    def __init__(
        self,
        font_path: Optional[str] = None,
        bold_font_path: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize report service

        Args:
            font_path: TrueType font for body text (built-in Helvetica if unusable)
            bold_font_path: TrueType font for headings
            transport: httpx transport for image fetches (tests inject a mock)
            timeout: Per-image fetch timeout in seconds
        """
        self.transport = transport
        self.timeout = timeout if timeout is not None else settings.IMAGE_FETCH_TIMEOUT
        self.font_name = self._register_font(
            "ReportSans", font_path or settings.REPORT_FONT_PATH, "Helvetica"
        )
        self.bold_font_name = self._register_font(
            "ReportSans-Bold", bold_font_path or settings.REPORT_FONT_BOLD_PATH, "Helvetica-Bold"
        )
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    @staticmethod
    def _register_font(name: str, path: str, fallback: str) -> str:
        """Register a TTF font, returning the built-in fallback when it cannot be loaded"""
        if name in pdfmetrics.getRegisteredFontNames():
            return name
        try:
            pdfmetrics.registerFont(TTFont(name, path))
        except (TTFError, OSError) as e:
            logger.warning(f"Font {path} unavailable, using {fallback}: {e}")
            return fallback
        return name

    def _setup_custom_styles(self):
        """Setup custom paragraph styles"""
        # Helper to add style only if it doesn't exist
        def add_style_if_not_exists(style):
            try:
                self.styles.add(style)
            except KeyError:
                pass  # Style already exists

        add_style_if_not_exists(ParagraphStyle(
            name='ReportTitle',
            parent=self.styles['Heading1'],
            fontName=self.bold_font_name,
            fontSize=20,
            spaceAfter=14,
            textColor=colors.HexColor('#1a1a2e'),
        ))

        add_style_if_not_exists(ParagraphStyle(
            name='SectionHeader',
            parent=self.styles['Heading2'],
            fontName=self.bold_font_name,
            fontSize=14,
            spaceBefore=16,
            spaceAfter=8,
            textColor=colors.HexColor('#667eea'),
        ))

        add_style_if_not_exists(ParagraphStyle(
            name='ItemTitle',
            parent=self.styles['Normal'],
            fontName=self.bold_font_name,
            fontSize=11,
            spaceBefore=10,
            spaceAfter=2,
            textColor=colors.HexColor('#1a1a2e'),
        ))

        add_style_if_not_exists(ParagraphStyle(
            name='MetaLine',
            parent=self.styles['Normal'],
            fontName=self.font_name,
            fontSize=10,
            leading=14,
            textColor=colors.HexColor('#4a4a6a'),
        ))

        self.styles['BodyText'].fontName = self.font_name
        self.styles['BodyText'].fontSize = 10
        self.styles['BodyText'].spaceBefore = 2
        self.styles['BodyText'].spaceAfter = 2
        self.styles['BodyText'].leading = 13

    # ------------------------------------------------------------------
    # Image fetching
    # ------------------------------------------------------------------

    async def _fetch_image(self, client: httpx.AsyncClient, url: str) -> Optional[bytes]:
        """Fetch one image; None when it cannot be fetched or decoded"""
        try:
            response = await client.get(url)
            response.raise_for_status()
            data = response.content
            with PILImage.open(BytesIO(data)) as img:
                img.verify()
            return data
        except httpx.HTTPStatusError as e:
            logger.warning(f"Image fetch failed ({e.response.status_code}): {url}")
        except httpx.RequestError as e:
            logger.warning(f"Image fetch error for {url}: {e}")
        except PILImage.DecompressionBombError as e:
            logger.warning(f"Oversized image at {url}: {e}")
        except (OSError, SyntaxError, ValueError) as e:
            logger.warning(f"Unreadable image at {url}: {e}")
        return None

    async def fetch_images(self, urls: Sequence[str]) -> Dict[str, Optional[bytes]]:
        """Fetch images concurrently; result keeps one entry per URL"""
        unique = list(dict.fromkeys(urls))
        if not unique:
            return {}
        async with httpx.AsyncClient(
            transport=self.transport,
            timeout=self.timeout,
            follow_redirects=True,
        ) as client:
            results = await asyncio.gather(*(self._fetch_image(client, url) for url in unique))
        return dict(zip(unique, results))

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    async def render(self, payload: ReportPayload) -> bytes:
        """
        Render a mission report

        Args:
            payload: Report content

        Returns:
            PDF document bytes
        """
        images = await self.fetch_images(payload.photo_urls())
        failed = sum(1 for data in images.values() if data is None)
        if failed:
            logger.info(f"{failed}/{len(images)} report images replaced by placeholders")

        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=0.75*inch,
            leftMargin=0.75*inch,
            topMargin=0.75*inch,
            bottomMargin=0.75*inch,
            title=payload.title,
        )
        doc.build(self._build_story(payload, images))

        pdf_bytes = buffer.getvalue()
        buffer.close()
        logger.info(f"Rendered report '{payload.title}' ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    def _build_story(self, payload: ReportPayload, images: Dict[str, Optional[bytes]]) -> List:
        story = []
        story.extend(self._build_header(payload))
        story.extend(self._build_photo_section(payload.gallery_urls, images))
        story.extend(self._build_checklist(payload.items, images))
        story.extend(self._build_footer())
        return story

    def _line(self, label: str, value, style: str = 'MetaLine') -> Paragraph:
        return Paragraph(f"{label}: {escape(str(value))}", self.styles[style])

    def _build_header(self, payload: ReportPayload) -> List:
        """Build title, mission summary and KPI lines"""
        elements = [Paragraph(escape(payload.title), self.styles['ReportTitle'])]

        elements.append(self._line("Mission", payload.mission_title))
        if payload.store:
            elements.append(self._line("Store", payload.store))
        if payload.address:
            elements.append(self._line("Address", payload.address))
        if payload.window_text:
            elements.append(self._line("Window", payload.window_text))
        if payload.agent_id:
            elements.append(self._line("Agent", payload.agent_id))
        if payload.submitted_at:
            elements.append(self._line("Submitted", payload.submitted_at.strftime('%Y-%m-%d %H:%M UTC')))

        mean = average_rating(payload.items)
        if mean is not None:
            elements.append(Paragraph(f"Overall Rating: {mean:.1f}/5", self.styles['MetaLine']))

        if payload.kpis is not None:
            k = payload.kpis
            elements.append(Paragraph(
                f"KPIs: Overall {k.overall}% | Service {k.service}% | "
                f"Compliance {k.compliance}% | Speed {k.speed}%",
                self.styles['MetaLine']
            ))

        elements.append(Spacer(1, 10))
        elements.append(HRFlowable(width="100%", thickness=1, color=colors.HexColor('#e0e0e0')))
        return elements

    def _image_cell(self, data: Optional[bytes], size) -> object:
        """Image scaled into its cell, or a bordered empty box"""
        width, height = size
        if data is None:
            drawing = Drawing(width, height)
            drawing.add(Rect(
                0, 0, width, height,
                strokeColor=colors.HexColor('#b0b0b0'),
                strokeWidth=1,
                fillColor=None,
            ))
            return drawing
        return Image(BytesIO(data), width=width, height=height, kind='proportional')

    def _image_grid(self, urls: Sequence[str], images: Dict[str, Optional[bytes]], size, max_rows: int) -> Table:
        cells = [self._image_cell(images.get(url), size) for url in urls[:GRID_COLUMNS * max_rows]]
        rows = [cells[i:i + GRID_COLUMNS] for i in range(0, len(cells), GRID_COLUMNS)]
        # Pad the last row so the table stays rectangular
        rows[-1].extend([''] * (GRID_COLUMNS - len(rows[-1])))

        grid = Table(rows, colWidths=[size[0] + 8] * GRID_COLUMNS, hAlign='LEFT')
        grid.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('LEFTPADDING', (0, 0), (-1, -1), 2),
            ('RIGHTPADDING', (0, 0), (-1, -1), 2),
            ('TOPPADDING', (0, 0), (-1, -1), 4),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ]))
        return grid

    def _build_photo_section(self, urls: Sequence[str], images: Dict[str, Optional[bytes]]) -> List:
        """Build the gallery: up to two rows of three"""
        elements = [Paragraph("Photos", self.styles['SectionHeader'])]
        if not urls:
            elements.append(Paragraph("No photos.", self.styles['BodyText']))
            return elements
        elements.append(self._image_grid(urls, images, GALLERY_CELL, GRID_ROWS))
        return elements

    def _build_checklist(self, items: Sequence[NormalizedItem], images: Dict[str, Optional[bytes]]) -> List:
        """Build per-item answer blocks"""
        elements = [Paragraph("Checklist", self.styles['SectionHeader'])]

        if not items:
            elements.append(Paragraph("No checklist items.", self.styles['BodyText']))
            return elements

        for position, item in enumerate(items, start=1):
            elements.append(Paragraph(f"{position}. {escape(item.title)}", self.styles['ItemTitle']))

            if item.yes_no is not None:
                elements.append(self._line("Yes/No", "Yes" if item.yes_no else "No", 'BodyText'))
            if item.rating is not None:
                elements.append(self._line("Rating", f"{item.rating}/5", 'BodyText'))
            if item.timer_seconds is not None:
                elements.append(self._line("Timer", f"{item.timer_seconds}s", 'BodyText'))
            if item.comment:
                elements.append(self._line("Comment", item.comment, 'BodyText'))

            if item.photo_urls:
                elements.append(self._image_grid(item.photo_urls, images, THUMB_CELL, 1))

        return elements

    def _build_footer(self) -> List:
        """Build report footer"""
        elements = []

        elements.append(Spacer(1, 24))
        elements.append(HRFlowable(width="100%", thickness=1, color=colors.HexColor('#e0e0e0')))
        elements.append(Spacer(1, 8))

        footer_style = ParagraphStyle(
            'Footer',
            parent=self.styles['Normal'],
            fontName=self.font_name,
            fontSize=8,
            textColor=colors.HexColor('#999999'),
            alignment=1
        )

        elements.append(Paragraph(
            f"Mystery Shopper Portal | Generated {utcnow().strftime('%Y-%m-%d %H:%M UTC')} | Confidential",
            footer_style
        ))

        return elements


def story_text(story: Sequence) -> List[str]:
    """Plain text of the paragraphs in a story, in order"""
    return [flowable.getPlainText() for flowable in story if isinstance(flowable, Paragraph)]


# Global service instance (lazy initialization)
_report_service: Optional[ReportService] = None


def get_report_service() -> ReportService:
    """Get or create the report service singleton"""
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
