import io
import logging
from datetime import datetime

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from gstr2b_recon.core.exceptions import ReportRenderingError
from gstr2b_recon.schemas.report import ActionReport, UploadResponse

logger = logging.getLogger(__name__)

MAX_ACTION_ROWS = 50

TABLE_STYLE = TableStyle([
    ('BACKGROUND', (0, 0), (-1, 0), colors.navy),
    ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
    ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
    ('FONTSIZE', (0, 0), (-1, -1), 8),
    ('GRID', (0, 0), (-1, -1), 0.5, colors.grey)
])


def build_risk_pdf(upload: UploadResponse, action: ActionReport) -> bytes:
    """Renders the one-page ITC risk summary handed to the taxpayer."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    styles = getSampleStyleSheet()
    elements = []

    # 1. Header
    elements.append(Paragraph("GSTR-2B Reconciliation & ITC Risk Report", styles['Title']))
    elements.append(Spacer(1, 12))
    elements.append(Paragraph(f"<b>Period:</b> {upload.run.period}", styles['Normal']))
    elements.append(Paragraph(f"<b>Generated:</b> {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", styles['Normal']))
    elements.append(Paragraph(f"<b>Compliance Score:</b> {action.summary.compliance_score}%", styles['Normal']))
    elements.append(Spacer(1, 24))

    # 2. Summary Table
    elements.append(Paragraph("Reconciliation Summary", styles['Heading2']))
    overview = upload.summary
    summary_data = [
        ["Metric", "Value"],
        ["Invoices in GSTR-2B", str(overview.total_invoices_in_2b)],
        ["Invoices in Purchase Register", str(overview.total_invoices_in_purchase)],
        ["Matched", str(upload.matched)],
        ["Mismatch", str(upload.mismatch)],
        ["Missing in GSTR-2B", str(upload.missing_in_2b)],
        ["Missing in Purchase Register", str(upload.missing_in_purchase)],
        ["ITC Available in GSTR-2B", f"Rs. {overview.total_itc_available_in_2b:.2f}"],
        ["ITC Claimed", f"Rs. {overview.total_itc_claimed_in_purchase:.2f}"],
        ["ITC at Risk", f"Rs. {overview.itc_at_risk:.2f}"],
    ]
    summary_table = Table(summary_data, colWidths=[200, 150])
    summary_table.setStyle(TABLE_STYLE)
    elements.append(summary_table)
    elements.append(Spacer(1, 24))

    # 3. Action list
    elements.append(Paragraph("Required Actions", styles['Heading2']))
    if action.action_items:
        action_data = [["Action", "Priority", "Supplier GSTIN", "Invoice No", "Tax"]]
        for item in action.action_items[:MAX_ACTION_ROWS]:
            amount = item.tax_amount if item.tax_amount is not None else item.gstr2b_tax
            action_data.append([
                item.action,
                item.priority,
                item.supplier_gstin,
                item.invoice_no,
                f"Rs. {amount:.2f}" if amount is not None else "-",
            ])
        action_table = Table(action_data, colWidths=[150, 55, 110, 110, 70])
        action_table.setStyle(TABLE_STYLE)
        elements.append(action_table)
        if len(action.action_items) > MAX_ACTION_ROWS:
            elements.append(Paragraph(
                f"{len(action.action_items) - MAX_ACTION_ROWS} further actions are listed in the Excel report.",
                styles['Italic'],
            ))
    else:
        elements.append(Paragraph("No actions required.", styles['Normal']))

    # 4. Footer
    elements.append(Spacer(1, 48))
    footer_text = "This report is for internal compliance only. Figures come from the GSTR-2B reconciliation engine."
    elements.append(Paragraph(footer_text, ParagraphStyle(name='Footer', fontSize=8, textColor=colors.grey, alignment=1)))

    try:
        doc.build(elements)
    except Exception as e:
        logger.error(f"PDF Build Failed: {str(e)}")
        raise ReportRenderingError("PDF generation failed during document build.") from e

    return buffer.getvalue()
