import os
from datetime import datetime
from pathlib import Path
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.lib.enums import TA_CENTER
from xml.sax.saxutils import escape
from models.assessment import Report
from config.settings import settings
from loguru import logger

DARK_BLUE = colors.HexColor("#0D2B45")
BLUE = colors.HexColor("#1565C0")
GRAY = colors.HexColor("#F5F7FA")
GREEN = colors.HexColor("#388E3C")
RED = colors.HexColor("#D32F2F")

class PDFReportGenerator:
    def __init__(self, report: Report, output_dir=None):
        self.report = report
        self.output_dir = Path(output_dir or settings.REPORT_OUTPUT_DIR)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def generate(self) -> str:
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = os.path.join(
            self.output_dir,
            f"NestedVirt_{self.report.host.computer_name}_{ts}.pdf"
        )
        doc = SimpleDocTemplate(path, pagesize=letter,
                                rightMargin=0.75*inch, leftMargin=0.75*inch,
                                topMargin=0.75*inch, bottomMargin=0.75*inch)
        story = []
        story += self._cover()
        story += self._host()
        if self.report.vms_scanned:
            story += self._vms()
        doc.build(story)
        logger.info(f"PDF generated: {path}")
        return path

    def _h1(self, text):
        return Paragraph(f"<font color='#0D2B45'><b>{escape(text)}</b></font>",
                         ParagraphStyle("h1", fontSize=16, spaceAfter=8, spaceBefore=16))

    def _body(self, text):
        return Paragraph(text, ParagraphStyle("body", fontSize=10, leading=14, spaceAfter=6))

    def _verdict(self, supported):
        return ("SUPPORTED", GREEN) if supported else ("NOT SUPPORTED", RED)

    def _cover(self):
        host = self.report.host
        title_style = ParagraphStyle("title", fontSize=22, textColor=colors.white,
                                     alignment=TA_CENTER, fontName="Helvetica-Bold", leading=28)
        header = Table([[Paragraph(
            f'<b>Nested Virtualization Assessment</b><br/>'
            f'<font size="14">{escape(host.computer_name)}</font>', title_style
        )]], colWidths=[7*inch])
        header.setStyle(TableStyle([
            ("BACKGROUND", (0,0), (-1,-1), DARK_BLUE),
            ("ALIGN", (0,0), (-1,-1), "CENTER"),
            ("TOPPADDING", (0,0), (-1,-1), 30),
            ("BOTTOMPADDING", (0,0), (-1,-1), 30),
        ]))
        label, color = self._verdict(self.report.nested_supported)
        meta = Table([
            ["Date:", self.report.generated_at.strftime("%B %d, %Y %H:%M UTC")],
            ["Operating system:", host.os_name],
            ["Build:", host.build_label],
            ["Virtual machines:", str(len(self.report.vms)) if self.report.vms_scanned else "not scanned"],
            ["Overall:", label],
        ], colWidths=[2*inch, 5*inch])
        meta.setStyle(TableStyle([
            ("FONTNAME", (0,0), (0,-1), "Helvetica-Bold"),
            ("FONTSIZE", (0,0), (-1,-1), 10),
            ("ROWBACKGROUNDS", (0,0), (-1,-1), [GRAY, colors.white]),
            ("TEXTCOLOR", (1,-1), (1,-1), color),
            ("FONTNAME", (1,-1), (1,-1), "Helvetica-Bold"),
            ("TOPPADDING", (0,0), (-1,-1), 6),
            ("BOTTOMPADDING", (0,0), (-1,-1), 6),
            ("LEFTPADDING", (0,0), (-1,-1), 8),
        ]))
        return [header, Spacer(1, 0.3*inch), meta]

    def _host(self):
        host = self.report.host
        label, color = self._verdict(host.host_nested_support)
        els = [self._h1(f"Host: {label}")]
        yn = lambda v: "Yes" if v else "No"
        data = [
            ["Check", "Value"],
            ["Build supported", yn(host.build_supported)],
            ["Hypervisor running", yn(host.hypervisor_running)],
            ["Full Hyper-V role", yn(host.full_hyperv_role)],
            ["hypervisorloadoptions",
             host.hypervisor_load_options_value if host.hypervisor_load_options_present else "(not set)"],
            ["VBS running", yn(host.vbs_running)],
            ["VBS enabled in registry", yn(host.vbs_reg_enabled)],
            ["Isolated User Mode installed", yn(host.ium_installed)],
        ]
        t = Table(data, colWidths=[3.5*inch, 3.5*inch])
        t.setStyle(TableStyle([
            ("BACKGROUND", (0,0), (-1,0), BLUE),
            ("TEXTCOLOR", (0,0), (-1,0), colors.white),
            ("FONTNAME", (0,0), (-1,0), "Helvetica-Bold"),
            ("ROWBACKGROUNDS", (0,1), (-1,-1), [GRAY, colors.white]),
            ("GRID", (0,0), (-1,-1), 0.5, colors.lightgrey),
            ("TOPPADDING", (0,0), (-1,-1), 6),
            ("BOTTOMPADDING", (0,0), (-1,-1), 6),
            ("LEFTPADDING", (0,0), (-1,-1), 8),
        ]))
        els.append(t)
        for msg in host.messages:
            els.append(self._body(f"<font color='#D32F2F'>•</font> {escape(msg)}"))
        return els

    def _vms(self):
        els = [self._h1("Virtual Machines")]
        if self.report.vm_enumeration_error:
            els.append(self._body(f"VM enumeration failed: {escape(self.report.vm_enumeration_error)}"))
            return els
        if not self.report.vms:
            els.append(self._body("No virtual machines found."))
            return els

        rows = [["VM", "State", "Ext. exposed", "Dyn. memory", "Checkpoints", "Nested"]]
        for vm in self.report.vms:
            rows.append([
                vm.name, vm.state.value,
                "Yes" if vm.expose_virtualization_extensions else "No",
                "Yes" if vm.dynamic_memory_enabled else "No",
                "Yes" if vm.snapshot_enabled else "No",
                "YES" if vm.supports_nesting else "NO",
            ])
        t = Table(rows, colWidths=[2.2*inch, 0.9*inch, 1.0*inch, 1.0*inch, 1.0*inch, 0.9*inch],
                  repeatRows=1)
        style = [
            ("BACKGROUND", (0,0), (-1,0), DARK_BLUE),
            ("TEXTCOLOR", (0,0), (-1,0), colors.white),
            ("FONTNAME", (0,0), (-1,0), "Helvetica-Bold"),
            ("FONTSIZE", (0,0), (-1,-1), 9),
            ("ROWBACKGROUNDS", (0,1), (-1,-1), [GRAY, colors.white]),
            ("GRID", (0,0), (-1,-1), 0.5, colors.lightgrey),
            ("TOPPADDING", (0,0), (-1,-1), 5),
            ("BOTTOMPADDING", (0,0), (-1,-1), 5),
            ("LEFTPADDING", (0,0), (-1,-1), 6),
        ]
        for i, vm in enumerate(self.report.vms, 1):
            c = GREEN if vm.supports_nesting else RED
            style += [("TEXTCOLOR", (5,i), (5,i), c),
                      ("FONTNAME", (5,i), (5,i), "Helvetica-Bold")]
        t.setStyle(TableStyle(style))
        els.append(t)

        for vm in self.report.unsupported_vms:
            els.append(self._body(f"<b>{escape(vm.name)}</b>"))
            for msg in vm.messages:
                els.append(self._body(f"<font color='#D32F2F'>•</font> {escape(msg)}"))
        return els
