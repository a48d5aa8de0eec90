from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box
from rich.markup import escape
from models.assessment import HostAssessment, Report, VmAssessment


def _yes_no(value: bool, good: bool = True) -> str:
    color = "green" if value == good else "red"
    return f"[{color}]{'Yes' if value else 'No'}[/{color}]"


def _banner(supported: bool, subject: str) -> str:
    if supported:
        return f"[bold green]✔ {subject} supports nested virtualization[/bold green]"
    return f"[bold red]✘ {subject} does not support nested virtualization[/bold red]"


def render_host(console: Console, host: HostAssessment):
    build = str(host.build_number) if host.build_number is not None else "?"
    load_options = (host.hypervisor_load_options_value or "(unparseable)"
                    if host.hypervisor_load_options_present else "(not set)")
    console.print(Panel(
        f"[bold]Computer:[/bold] {escape(host.computer_name)}  "
        f"[dim]{escape(host.manufacturer)} {escape(host.model)}[/dim]\n"
        f"[bold]OS:[/bold] {escape(host.os_name)} ({escape(host.installation_type)}, {escape(host.edition)})\n"
        f"[bold]Build:[/bold] {build}  [dim]{escape(host.build_label)}[/dim]\n\n"
        f"{_banner(host.host_nested_support, 'Host')}",
        title="[bold blue]Host[/bold blue]",
        border_style="green" if host.host_nested_support else "red",
    ))

    tbl = Table(box=box.SIMPLE_HEAVY, header_style="bold cyan")
    tbl.add_column("Check")
    tbl.add_column("Value")
    tbl.add_row("Build supported", _yes_no(host.build_supported))
    tbl.add_row("Hypervisor running", _yes_no(host.hypervisor_running))
    tbl.add_row("Full Hyper-V role", _yes_no(host.full_hyperv_role))
    tbl.add_row("hypervisorloadoptions", escape(load_options))
    tbl.add_row("VBS running", _yes_no(host.vbs_running, good=False))
    tbl.add_row("VBS enabled in registry", _yes_no(host.vbs_reg_enabled, good=False))
    tbl.add_row("Isolated User Mode installed", "Yes" if host.ium_installed else "No")
    console.print(tbl)

    for msg in host.messages:
        console.print(f"  [red]•[/red] {escape(msg)}")


def render_vms(console: Console, vms: list, verbose: bool = False):
    tbl = Table(box=box.SIMPLE_HEAVY, header_style="bold cyan")
    tbl.add_column("VM", no_wrap=True)
    tbl.add_column("State", width=10)
    tbl.add_column("Ext. exposed", justify="center")
    tbl.add_column("Dyn. memory", justify="center")
    tbl.add_column("Checkpoints", justify="center")
    tbl.add_column("Nested")
    for vm in vms:
        if vm.facts_error:
            tbl.add_row(escape(vm.name), vm.state.value, "?", "?", "?", "[red]UNKNOWN → NO[/red]")
            continue
        tbl.add_row(
            escape(vm.name),
            vm.state.value,
            _yes_no(vm.expose_virtualization_extensions),
            _yes_no(vm.dynamic_memory_enabled, good=False),
            _yes_no(vm.snapshot_enabled, good=False),
            "[bold green]YES[/bold green]" if vm.supports_nesting else "[bold red]NO[/bold red]",
        )
    console.print(tbl)

    for vm in vms:
        if not vm.supports_nesting:
            _render_vm_reasons(console, vm)
        elif verbose:
            console.print(Panel(
                "[green]All nested virtualization checks passed[/green]",
                title=f"[bold]{escape(vm.name)}[/bold]",
                border_style="green",
            ))


def _render_vm_reasons(console: Console, vm: VmAssessment):
    console.print(Panel(
        "\n".join(f"• {escape(m)}" for m in vm.messages),
        title=f"[bold]{escape(vm.name)}[/bold]",
        border_style="red",
    ))


def render_report(report: Report, console: Console = None, verbose: bool = False):
    console = console or Console()
    render_host(console, report.host)

    if report.vms_scanned:
        console.print(f"\n[bold]Virtual Machines ({len(report.vms)})[/bold]\n")
        if report.vm_enumeration_error:
            console.print(f"  [red]✘ VM enumeration failed:[/red] {escape(report.vm_enumeration_error)}")
        elif not report.vms:
            console.print("  [dim]No virtual machines found.[/dim]")
        else:
            render_vms(console, report.vms, verbose=verbose)

    console.print()
    if report.nested_supported:
        console.print(Panel(_banner(True, "This configuration"), border_style="green"))
    else:
        lines = [_banner(False, "This configuration")]
        if not report.host.host_nested_support:
            lines.append(f"  Host: {len(report.host.messages)} blocking issue(s)")
        if report.unsupported_vms:
            names = ", ".join(escape(vm.name) for vm in report.unsupported_vms)
            lines.append(f"  VMs: {names}")
        if report.vm_enumeration_error:
            lines.append("  VMs could not be enumerated")
        console.print(Panel("\n".join(lines), border_style="red"))
