import sys
import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box
from rich.markup import escape
from config.settings import settings

console = Console()

EXIT_SUPPORTED = 0
EXIT_UNSUPPORTED = 1
EXIT_FACTS_UNAVAILABLE = 2


def banner():
    console.print(f"""
[bold blue]╔══════════════════════════════════════════════╗
║   Nested Virtualization Advisor  v{settings.VERSION}      ║
║   Hyper-V host and VM readiness check        ║
╚══════════════════════════════════════════════╝[/bold blue]
""")
    mode = "[yellow]MOCK[/yellow]" if settings.MOCK_MODE else "[green]LIVE[/green]"
    console.print(f"  Mode: {mode}  |  Platform: [bold]{sys.platform}[/bold]\n")
    for w in settings.validate():
        console.print(f"  [yellow]⚠  {w}[/yellow]")
    console.print()


@click.group()
def cli():
    """Nested Virtualization Advisor — Hyper-V readiness CLI"""
    banner()


@cli.command("assess")
@click.option("--host-only", is_flag=True, default=False, help="Check the host only, skip VMs")
@click.option("--vm", "vm_names", multiple=True, metavar="NAME",
              help="Only check the named VM (repeatable)")
@click.option("--pdf", is_flag=True, default=False, help="Export a PDF report")
@click.option("--json", "json_path", type=click.Path(dir_okay=False), default=None,
              help="Export the report as JSON to this file")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Also show details for VMs that pass")
@click.pass_context
def run_assessment(ctx, host_only, vm_names, pdf, json_path, verbose):
    """Assess nested virtualization support for the host and its VMs."""
    from services.assessment_service import AssessmentService
    from core.errors import FactUnavailableError
    from reporting.console_report import render_report

    try:
        with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console) as p:
            t = p.add_task("Collecting host and VM facts...", total=None)
            service = AssessmentService()
            report = service.run(host_only=host_only, vm_names=vm_names or None)
            p.update(t, description="Assessment complete!")
    except FactUnavailableError as e:
        console.print(f"\n[red]✘ Cannot assess host:[/red] {escape(str(e))}\n")
        console.print("Run from an elevated PowerShell session on the Hyper-V host.\n")
        ctx.exit(EXIT_FACTS_UNAVAILABLE)

    for name in service.unmatched_vm_names:
        console.print(f"  [yellow]⚠  No VM named '{escape(name)}'[/yellow]")

    render_report(report, console=console, verbose=verbose)

    if json_path:
        from reporting.json_report import write_json
        path = write_json(report, json_path)
        console.print(f"\n[green]✔ JSON saved:[/green] {path}")

    if pdf:
        from reporting.pdf_report import PDFReportGenerator
        console.print("\n[bold]Generating PDF report...[/bold]")
        try:
            pdf_path = PDFReportGenerator(report).generate()
            console.print(f"\n[green]✔ Report saved:[/green] {pdf_path}\n")
        except Exception as e:
            console.print(f"\n[red]✘ PDF generation failed:[/red] {escape(str(e))}\n")

    ctx.exit(EXIT_SUPPORTED if report.nested_supported else EXIT_UNSUPPORTED)


@cli.command("status")
def check_status():
    """Check configuration status."""
    tbl = Table(box=box.ROUNDED, header_style="bold cyan")
    tbl.add_column("Component", style="bold")
    tbl.add_column("Status")
    tbl.add_column("Details")

    if settings.MOCK_MODE:
        tbl.add_row("Fact source", "[yellow]MOCK[/yellow]", "Built-in sample host and VMs")
    elif settings.is_powershell_available():
        tbl.add_row("Fact source", "[green]POWERSHELL[/green]", settings.POWERSHELL_EXE)
    else:
        tbl.add_row("Fact source", "[red]NOT AVAILABLE[/red]",
                    f"{settings.POWERSHELL_EXE} not found — set POWERSHELL_EXE in .env")

    if sys.platform.startswith("win"):
        tbl.add_row("Platform", "[green]OK[/green]", sys.platform)
    else:
        tbl.add_row("Platform", "[yellow]NOT WINDOWS[/yellow]", sys.platform)

    tbl.add_row("Minimum build", "[green]OK[/green]", str(settings.MIN_NESTED_BUILD))
    tbl.add_row("Disable marker", "[green]OK[/green]", settings.NESTED_DISABLE_MARKER)
    tbl.add_row("PowerShell timeout", "[green]OK[/green]", f"{settings.POWERSHELL_TIMEOUT}s")
    tbl.add_row("Report Output", "[green]OK[/green]", str(settings.REPORT_OUTPUT_DIR))

    mode_label = "MOCK (safe)" if settings.MOCK_MODE else "LIVE (local Hyper-V)"
    mode_color = "yellow" if settings.MOCK_MODE else "green"
    tbl.add_row("Current Mode", f"[{mode_color}]{mode_label}[/{mode_color}]", "")
    console.print(tbl)
    console.print()


@cli.command("mock")
def toggle_mock():
    """Show how to switch between MOCK and LIVE mode."""
    console.print("\n[bold]Mode Switching Guide[/bold]\n")
    console.print(Panel(
        "[bold]MOCK MODE[/bold] — Sample host and VMs, no Hyper-V queries\n"
        "  In your .env:\n"
        "  [green]MOCK_MODE=true[/green]\n\n"
        "[bold]LIVE MODE[/bold] — Query the local Hyper-V host\n"
        "  In your .env:\n"
        "  [yellow]MOCK_MODE=false[/yellow]\n"
        "  POWERSHELL_EXE=powershell.exe\n\n"
        "Then, from an elevated shell:\n"
        "  [cyan]python main.py status[/cyan]   ← verify configuration\n"
        "  [cyan]python main.py assess[/cyan]   ← run the assessment",
        title="[bold blue]Mode Configuration[/bold blue]"
    ))
    console.print()
