"""
History export for MedicFácil.

Saves the dose history of a period as:
- text: one line per dose, easy to paste into a message
- CSV
- Excel, with a summary sheet
- PDF, with the day counts and adherence per medication

The exported rows carry the medication name when the medication still
exists, and "(removido)" when it was deleted after the dose was recorded.
"""

from datetime import datetime, date, timedelta
from pathlib import Path
from typing import List

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils.dataframe import dataframe_to_rows
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from . import config
from .database import Storage
from .ledger import AdherenceLedger, count_by_status, adherence_percentage
from .logger import get_logger
from .models import DoseStatus, get_all_medications


logger = get_logger(__name__)

# Default export directory
EXPORT_DIR = config.DATA_DIR / "exports"

COLUMNS = ['date', 'scheduled', 'medication', 'dosage', 'status', 'taken_at']

HEADER_COLOR = '#7C3AED'


def ensure_export_dir(export_dir: Path = None) -> Path:
    """Create the export directory if it doesn't exist."""
    export_dir = Path(export_dir) if export_dir is not None else EXPORT_DIR
    export_dir.mkdir(parents=True, exist_ok=True)
    return export_dir


# ============================================================
# DATA RETRIEVAL
# ============================================================

def _days(start_date: date, end_date: date) -> List[date]:
    return [start_date + timedelta(days=n) for n in range((end_date - start_date).days + 1)]


def get_history(storage: Storage, start_date: date, end_date: date = None) -> list:
    """
    Get the dose history of a period as flat rows, oldest first.

    Returns:
        List of dicts with the keys in COLUMNS
    """
    if end_date is None:
        end_date = start_date

    ledger = AdherenceLedger(storage)
    medications = {m.id: m for m in get_all_medications(storage)}

    events = []
    for day in _days(start_date, end_date):
        events.extend(ledger.by_date(day))
    events.sort(key=lambda e: e.scheduled_time)

    rows = []
    for event in events:
        medication = medications.get(event.medication_id)
        rows.append({
            'date': event.scheduled_time.date().isoformat(),
            'scheduled': event.scheduled_time.strftime('%H:%M'),
            'medication': medication.name if medication else '(removido)',
            'dosage': medication.dosage if medication else '',
            'status': event.status.label,
            'taken_at': event.taken_at.strftime('%H:%M') if event.taken_at else '',
        })
    return rows


def history_dataframe(storage: Storage, start_date: date, end_date: date = None) -> pd.DataFrame:
    """The history of a period as a DataFrame (empty, with columns, if none)."""
    return pd.DataFrame(get_history(storage, start_date, end_date), columns=COLUMNS)


def _default_filename(start_date: date, end_date: date, extension: str) -> str:
    if start_date == end_date:
        return f"historico-{start_date}.{extension}"
    return f"historico-{start_date}_{end_date}.{extension}"


# ============================================================
# TEXT EXPORT
# ============================================================

def format_history_text(storage: Storage, day: date) -> str:
    """
    Format one day of history as plain text.

    Example:
        Histórico de Medicamentos - 19/10/2026

        08:00 - Losartana (50mg) - Tomado
    """
    lines = [f"Histórico de Medicamentos - {day.strftime('%d/%m/%Y')}", ""]
    for row in get_history(storage, day):
        dosage = f" ({row['dosage']})" if row['dosage'] else ""
        lines.append(f"{row['scheduled']} - {row['medication']}{dosage} - {row['status']}")
    return "\n".join(lines) + "\n"


def export_text(storage: Storage, day: date, filename: str = None, export_dir: Path = None) -> Path:
    """Export one day of history as a text file."""
    export_dir = ensure_export_dir(export_dir)
    filepath = export_dir / (filename or _default_filename(day, day, 'txt'))
    filepath.write_text(format_history_text(storage, day), encoding='utf-8')
    logger.info("Exported text history to %s", filepath)
    return filepath


# ============================================================
# CSV EXPORT
# ============================================================

def export_csv(storage: Storage, start_date: date, end_date: date = None,
               filename: str = None, export_dir: Path = None) -> Path:
    """
    Export the history of a period to a CSV file.

    Returns:
        Path to the created CSV file
    """
    if end_date is None:
        end_date = start_date
    export_dir = ensure_export_dir(export_dir)
    filepath = export_dir / (filename or _default_filename(start_date, end_date, 'csv'))

    df = history_dataframe(storage, start_date, end_date)
    df.to_csv(filepath, index=False)

    logger.info("Exported %d rows to %s", len(df), filepath)
    return filepath


# ============================================================
# EXCEL EXPORT
# ============================================================

def export_excel(storage: Storage, start_date: date, end_date: date = None,
                 filename: str = None, export_dir: Path = None) -> Path:
    """
    Export the history of a period to an Excel file.

    The workbook has a Summary sheet (counts per status) and a History sheet.
    """
    if end_date is None:
        end_date = start_date
    export_dir = ensure_export_dir(export_dir)
    filepath = export_dir / (filename or _default_filename(start_date, end_date, 'xlsx'))

    df = history_dataframe(storage, start_date, end_date)

    wb = Workbook()

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color=HEADER_COLOR[1:], end_color=HEADER_COLOR[1:], fill_type="solid")
    border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    # History sheet
    ws = wb.active
    ws.title = "History"
    for r in dataframe_to_rows(df, index=False, header=True):
        ws.append(r)

    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center')
        cell.border = border
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.border = border
    for column in ws.columns:
        longest = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
        ws.column_dimensions[column[0].column_letter].width = min(longest + 2, 50)

    # Summary sheet
    summary = wb.create_sheet("Summary", 0)
    summary.append(["MedicFácil - Histórico de Medicamentos"])
    summary.append([f"Period: {start_date} to {end_date}"])
    summary.append([f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}"])
    summary.append([])
    for status in DoseStatus:
        summary.append([status.label, int((df['status'] == status.label).sum())])

    summary['A1'].font = Font(bold=True, size=16)
    summary.column_dimensions['A'].width = 40
    summary.column_dimensions['B'].width = 12

    wb.save(filepath)
    logger.info("Exported %d rows to %s", len(df), filepath)
    return filepath


# ============================================================
# PDF EXPORT
# ============================================================

def _table_style() -> TableStyle:
    return TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(HEADER_COLOR)),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('FONTSIZE', (0, 0), (-1, -1), 11),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('GRID', (0, 0), (-1, -1), 1, colors.black),
    ])


def export_pdf(storage: Storage, day: date, filename: str = None, export_dir: Path = None) -> Path:
    """
    Export one day of history to PDF.

    Contains the day's counts, the adherence of each medication and the
    list of doses.
    """
    export_dir = ensure_export_dir(export_dir)
    filepath = export_dir / (filename or _default_filename(day, day, 'pdf'))

    ledger = AdherenceLedger(storage)
    events = ledger.by_date(day)
    counts = count_by_status(events)
    rows = get_history(storage, day)

    doc = SimpleDocTemplate(str(filepath), pagesize=A4,
                            rightMargin=72, leftMargin=72,
                            topMargin=72, bottomMargin=72)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle('Title', parent=styles['Heading1'], fontSize=20, spaceAfter=24)
    heading_style = ParagraphStyle('Heading', parent=styles['Heading2'], fontSize=15,
                                   spaceBefore=18, spaceAfter=10)

    elements = [
        Paragraph("Histórico de Medicamentos", title_style),
        Paragraph(f"Data: {day.strftime('%d/%m/%Y')}", styles['Normal']),
        Paragraph(f"Gerado em: {datetime.now().strftime('%d/%m/%Y %H:%M')}", styles['Normal']),
        Spacer(1, 20),
    ]

    elements.append(Paragraph("Resumo do Dia", heading_style))
    summary_data = [["Status", "Doses"]]
    for status in (DoseStatus.TAKEN, DoseStatus.DELAYED, DoseStatus.SKIPPED):
        summary_data.append([status.label, str(counts[status])])
    summary_table = Table(summary_data, colWidths=[3 * inch, 1.5 * inch])
    summary_table.setStyle(_table_style())
    elements.append(summary_table)

    medications = get_all_medications(storage)
    if medications:
        elements.append(Paragraph("Adesão por Medicamento", heading_style))
        adherence_data = [["Medicamento", "Adesão"]]
        for medication in medications:
            adherence_data.append([medication.name, f"{adherence_percentage(events, medication.id)}%"])
        adherence_table = Table(adherence_data, colWidths=[3 * inch, 1.5 * inch])
        adherence_table.setStyle(_table_style())
        elements.append(adherence_table)

    if rows:
        elements.append(Paragraph("Doses", heading_style))
        dose_data = [["Horário", "Medicamento", "Status", "Tomado às"]]
        for row in rows:
            dose_data.append([row['scheduled'], row['medication'], row['status'], row['taken_at'] or '-'])
        dose_table = Table(dose_data, colWidths=[1 * inch, 2.5 * inch, 1.2 * inch, 1.2 * inch])
        dose_table.setStyle(_table_style())
        elements.append(dose_table)

    doc.build(elements)
    logger.info("Exported PDF history to %s", filepath)
    return filepath
