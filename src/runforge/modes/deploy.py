import argparse
import json

from rich.console import Console
from rich.table import Table

from ..controlplane.domains import CloudRunDomains
from ..controlplane.iam import CloudRunAccess
from ..controlplane.services import CloudRunServices
from ..deployer import Deployer, DeployPlan
from ..schemas.desired import DesiredState
from ..schemas.state import DeployReport

STATUS_STYLES = {
    "applied": "green",
    "failed": "red",
    "cancelled": "yellow",
    "unknown": "magenta",
}


def _deployer(args: argparse.Namespace) -> Deployer:
    return Deployer(
        services=CloudRunServices(timeout=args.deadline),
        domains=CloudRunDomains(),
        access=CloudRunAccess(),
        concurrency=args.concurrency,
        deadline=args.deadline,
        keyed_by=args.keyed_by,
    )


def _previous_members(args: argparse.Namespace) -> list[str] | None:
    if args.previous_members is None:
        return None
    return [m for m in args.previous_members.split(",") if m]


def _render_plan(plan: DeployPlan, console: Console) -> None:
    ref = plan.document.service
    console.print(
        f"Service [bold]{ref.name}[/bold] ({ref.project}/{ref.location}): "
        f"[cyan]{plan.service.action}[/cyan]"
    )

    if plan.service.changes:
        table = Table(title="Service Field Changes")
        table.add_column("Field", style="cyan")
        table.add_column("Remote")
        table.add_column("Desired", style="green")
        for change in plan.service.changes:
            table.add_row(change.path, json.dumps(change.remote), json.dumps(change.desired))
        console.print(table)

    table = Table(title="Dependent Bindings")
    table.add_column("Kind", style="cyan")
    table.add_column("Key")
    table.add_column("Action")
    table.add_column("Before")
    table.add_column("After")
    for name in plan.domains.to_create:
        table.add_row("domain", name, "create", "", ref.name)
    for name in sorted(plan.domains.to_delete):
        table.add_row("domain", name, "delete", ref.name, "")
    for change in plan.bindings:
        table.add_row(
            "iam", str(change.index), change.action, change.before or "", change.after or ""
        )
    if table.row_count:
        console.print(table)
    else:
        console.print("[green]No domain or invoker changes.[/green]")


def _render_report(report: DeployReport, console: Console) -> None:
    service = report.service
    if service is not None:
        style = "green" if service.ok else "red"
        console.print(
            f"Service: [cyan]{service.action}[/cyan] -> "
            f"[{style}]{service.state.value}[/{style}]"
        )
        if service.error is not None:
            console.print(f"[red]{service.error}[/red]")

    outcomes = [*report.domains, *report.bindings]
    if not outcomes:
        return

    table = Table(title="Dependent Bindings")
    table.add_column("Kind", style="cyan")
    table.add_column("Key")
    table.add_column("Action")
    table.add_column("Status")
    table.add_column("Detail")
    for o in outcomes:
        style = STATUS_STYLES.get(o.status, "white")
        table.add_row(
            o.kind, o.key, o.action, f"[{style}]{o.status}[/{style}]", o.detail or ""
        )
    console.print(table)


def run_plan(
    args: argparse.Namespace, log_console: Console, out_console: Console
) -> None:
    """Prints the changes a deploy would make."""
    desired = DesiredState.from_file(args.file)
    log_console.print(f"Planning [bold cyan]{desired.service.name}[/bold cyan]...")

    plan = _deployer(args).plan(desired, _previous_members(args))

    if args.json:
        print(plan.model_dump_json(indent=2))
        return
    _render_plan(plan, out_console)


def run_apply(
    args: argparse.Namespace, log_console: Console, out_console: Console
) -> bool:
    """Applies the desired state. Returns True when every resource applied."""
    desired = DesiredState.from_file(args.file)
    log_console.print(f"Applying [bold cyan]{desired.service.name}[/bold cyan]...")

    report = _deployer(args).deploy(desired, _previous_members(args))

    if args.json:
        print(report.model_dump_json(indent=2))
    else:
        _render_report(report, out_console)
    return report.ok
