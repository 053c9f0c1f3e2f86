"""
Zero Trust Decision Engine - Interactive CLI
=============================================

Command-line interface for exercising the policy decision point and
inspecting its audit trail.

Features:
- Access decision testing from explicit attributes or raw requests
- RBAC matrix and policy rule inspection
- Demo scenario runs
- Audit log analysis and SIEM export

Built with Typer and Rich.
"""

from datetime import timedelta
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..models.entities import (
    AccessDecision, Action, ActionType, ClassificationLevel, NetworkType, PolicyDecision, ResourceType,
)
from ..observability import configure_logging

# Initialize CLI app and console
app = typer.Typer(
    name="zerotrust",
    help="Zero Trust Access Decision Engine",
    add_completion=False
)

console = Console()

# Sub-commands
test_app = typer.Typer(help="Test access decisions")
policy_app = typer.Typer(help="Inspect policies and the RBAC matrix")
audit_app = typer.Typer(help="View audit logs")

app.add_typer(test_app, name="test")
app.add_typer(policy_app, name="policy")
app.add_typer(audit_app, name="audit")

DECISION_STYLES = {
    AccessDecision.ALLOW: ("green", "ACCESS GRANTED"),
    AccessDecision.DENY: ("red", "ACCESS DENIED"),
    AccessDecision.CHALLENGE: ("yellow", "VERIFICATION REQUIRED"),
    AccessDecision.STEP_UP: ("magenta", "STEP-UP AUTHENTICATION REQUIRED"),
}


def get_session():
    """Get a database session."""
    from ..models.database import get_session
    return get_session()


def build_engine(persist: bool):
    """Engine writing to the audit database when ``persist`` is set."""
    from ..core.audit import AuditLogger, SqlAlchemyAuditSink
    from ..core.engine import ZeroTrustEngine
    from ..models.database import init_db

    settings = get_settings()
    sinks = []
    if persist:
        init_db()
        sinks.append(SqlAlchemyAuditSink())
    return ZeroTrustEngine(settings=settings, audit_logger=AuditLogger.from_settings(settings, sinks))


def print_banner():
    """Display application banner."""
    banner = """
    ╔═══════════════════════════════════════════════════════════╗
    ║            ZERO TRUST POLICY DECISION POINT               ║
    ║                                                           ║
    ║     Risk Scoring + Trust Levels + Policy Evaluation       ║
    ║            Never trust, always verify                     ║
    ╚═══════════════════════════════════════════════════════════╝
    """
    console.print(Panel(banner, style="bold blue"))


def print_decision(decision: PolicyDecision, summary: str):
    style, headline = DECISION_STYLES[decision.decision]
    constraints = decision.session_constraints
    required = ", ".join(a.type.value for a in decision.required_actions) or "-"
    restricted = ", ".join(a.value for a in constraints.restricted_actions) or "-"

    console.print(Panel(
        f"[bold {style}]{headline}[/bold {style}]\n\n"
        f"{summary}\n\n"
        f"[bold]Decision:[/bold] {decision.decision.value}\n"
        f"[bold]Risk Score:[/bold] {decision.risk_score:.1f}\n"
        f"[bold]Trust Level:[/bold] {decision.trust_level.value}\n"
        f"[bold]Required Actions:[/bold] {required}\n"
        f"[bold]Expires:[/bold] {decision.expires_at.isoformat()}\n\n"
        f"[bold]Reasons:[/bold]\n" + "\n".join(f"  - {r}" for r in decision.reasons),
        title="Access Decision",
        box=box.DOUBLE
    ))

    table = Table(title="Session Constraints", box=box.SIMPLE)
    table.add_column("Constraint", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Max duration", f"{constraints.max_duration} min")
    table.add_row("Reauthenticate after", f"{constraints.reauthenticate_after} min")
    table.add_row("Monitoring", constraints.monitoring_level.value)
    table.add_row("Restricted actions", restricted)
    console.print(table)

    if decision.audit_record is not None:
        console.print(f"[dim]Audit ID: {decision.audit_record.id}[/dim]")


# ============================================================================
# Database Commands
# ============================================================================

@app.command()
def init():
    """Initialize the audit database schema."""
    from ..models.database import init_db
    init_db()
    console.print("[green]Audit database initialized successfully![/green]")


@app.command()
def reset():
    """Reset the audit database (WARNING: destroys the audit trail)."""
    if typer.confirm("This will delete all audit records. Are you sure?"):
        from ..models.database import reset_db
        reset_db()
        console.print("[yellow]Audit database reset complete.[/yellow]")


# ============================================================================
# Test Commands
# ============================================================================

@test_app.command("access")
def test_access(
    user: str = typer.Option("demo-user", "--user", "-u", help="User ID"),
    org: str = typer.Option("org-acme", "--org", help="Subject organization"),
    roles: List[str] = typer.Option(["viewer"], "--role", "-r", help="Role (repeatable)"),
    mfa: bool = typer.Option(True, "--mfa/--no-mfa", help="MFA verified"),
    auth_age: int = typer.Option(5, "--auth-age", help="Minutes since last authentication"),
    device: Optional[str] = typer.Option("DEVICE-001", "--device", help="Device ID (empty for none)"),
    resource_type: ResourceType = typer.Option(ResourceType.API_ENDPOINT, "--resource-type", "-t"),
    classification: ClassificationLevel = typer.Option(ClassificationLevel.PUBLIC, "--classification", "-c"),
    sensitivity: float = typer.Option(10, "--sensitivity", "-s", help="Sensitivity score 0-100"),
    cui: bool = typer.Option(False, "--cui", help="Resource requires CUI handling"),
    resource_org: Optional[str] = typer.Option(None, "--resource-org", help="Owning organization"),
    action: ActionType = typer.Option(ActionType.READ, "--action", "-a"),
    network: NetworkType = typer.Option(NetworkType.CORPORATE_VPN, "--network", "-n"),
    device_trust: float = typer.Option(70, "--device-trust"),
    behavior: float = typer.Option(80, "--behavior"),
    ip_reputation: float = typer.Option(80, "--ip-reputation"),
    bad_actor: bool = typer.Option(False, "--bad-actor", help="Threat intel flags a known bad actor"),
    country: Optional[str] = typer.Option(None, "--country", help="Geolocated country code"),
    persist: bool = typer.Option(False, "--persist", help="Write the audit record to the database"),
):
    """Evaluate an access request described by explicit attributes."""
    from ..models.entities import EnvironmentContext, GeoLocation, Resource, Subject, ThreatIntelligence

    engine = build_engine(persist)
    now = engine.clock()
    settings = engine.settings

    subject = Subject(
        user_id=user,
        organization_id=org,
        session_id=f"cli-{int(now.timestamp())}",
        roles=tuple(roles),
        device_id=device or None,
        ip_address="127.0.0.1",
        user_agent="zerotrust-cli",
        mfa_verified=mfa,
        last_authentication=now - timedelta(minutes=auth_age),
    )
    resource = Resource(
        resource_type=resource_type,
        resource_id="cli",
        classification=classification,
        sensitivity_score=sensitivity,
        organization_id=resource_org,
        requires_cui=cui,
    )
    geo = None
    if country:
        geo = GeoLocation(country.upper(), "Unknown", "Unknown", settings.is_allowed_country(country))
    environment = EnvironmentContext(
        timestamp=now,
        network_type=network,
        device_trust_score=device_trust,
        behavior_score=behavior,
        threat_intelligence=ThreatIntelligence(ip_reputation=ip_reputation, known_bad_actor=bad_actor),
        geo_location=geo,
    )

    decision = engine.evaluate_or_deny(subject, resource, Action(action), environment)
    engine.close()

    print_decision(
        decision,
        f"User: {user} ({', '.join(subject.roles)})\n"
        f"Resource: {resource_type.value} [{classification.value}, sensitivity {sensitivity:g}]\n"
        f"Action: {action.value}\n"
        f"Network: {network.value}"
    )


@test_app.command("request")
def test_request(
    method: str = typer.Option("GET", "--method", "-m", help="HTTP method"),
    path: str = typer.Option(..., "--path", "-p", help="Request path, e.g. /api/employees/42"),
    headers: List[str] = typer.Option([], "--header", "-H", help="Header as name=value (repeatable)"),
    query: List[str] = typer.Option([], "--query", "-q", help="Query parameter as name=value (repeatable)"),
    persist: bool = typer.Option(False, "--persist", help="Write the audit record to the database"),
):
    """Evaluate a raw request through the context builders."""
    from ..core.context import RequestAttributes

    def pairs(items: List[str]) -> dict:
        parsed = {}
        for item in items:
            name, _, value = item.partition("=")
            parsed[name.strip()] = value.strip()
        return parsed

    request = RequestAttributes(
        method=method.upper(),
        path=path,
        headers=pairs(headers),
        query=pairs(query),
        remote_address="127.0.0.1",
    )
    engine = build_engine(persist)
    decision = engine.evaluate_request(request)
    engine.close()

    print_decision(decision, f"Request: {request.method} {path}")


@test_app.command("scenario")
def run_scenario(
    scenario_name: str = typer.Argument("all", help="Scenario to run, or 'all'")
):
    """Run predefined decision scenarios."""
    from ..scenarios import run_scenarios
    try:
        results = run_scenarios(scenario_name)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    if results['failed']:
        raise typer.Exit(code=1)


# ============================================================================
# Policy Commands
# ============================================================================

@policy_app.command("matrix")
def show_matrix(
    role: Optional[str] = typer.Option(None, "--role", "-r", help="Show a single role")
):
    """Show the RBAC permission matrix."""
    from ..core.rbac_engine import RBACEngine

    rbac = RBACEngine()
    roles = [role] if role else list(rbac.known_roles())

    table = Table(title="RBAC Permission Matrix", box=box.ROUNDED)
    table.add_column("Resource Type", style="cyan")
    for name in roles:
        table.add_column(name, style="green")

    for resource_type in ResourceType:
        cells = []
        for name in roles:
            actions = rbac.get_effective_permissions([name]).get(resource_type, set())
            cells.append(", ".join(sorted(a.value for a in actions)) or "[dim]-[/dim]")
        table.add_row(resource_type.value, *cells)

    console.print(table)


@policy_app.command("rules")
def list_rules():
    """List the policy rules in evaluation order."""
    from ..core.policy_engine import default_rules

    table = Table(title="Zero Trust Policies", box=box.ROUNDED)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Rule", style="green")
    table.add_column("Description")

    for index, rule in enumerate(default_rules(), 1):
        doc = (type(rule).__doc__ or "").strip().splitlines()
        table.add_row(str(index), rule.name, doc[0] if doc else "-")

    console.print(table)


# ============================================================================
# Audit Commands
# ============================================================================

@audit_app.command("logs")
def view_logs(
    limit: int = typer.Option(20, "--limit", "-l", help="Number of logs to show"),
    user: str = typer.Option(None, "--user", "-u", help="Filter by subject ID"),
    decision: str = typer.Option(None, "--decision", "-d", help="Filter by decision (allow/deny/challenge/step_up)")
):
    """View audit logs."""
    from ..core.audit import AuditTrail
    from ..models.database import init_db

    init_db()
    dec = AccessDecision(decision.lower()) if decision else None

    with get_session() as session:
        logs = AuditTrail(session).get_logs(subject_id=user, decision=dec, limit=limit)

        table = Table(title="Audit Logs", box=box.ROUNDED)
        table.add_column("Time", style="dim")
        table.add_column("Subject", style="cyan")
        table.add_column("Action")
        table.add_column("Resource")
        table.add_column("Decision")
        table.add_column("Risk", justify="right")

        for log in logs:
            style = DECISION_STYLES[log.decision][0]
            table.add_row(
                log.timestamp.strftime("%H:%M:%S") if log.timestamp else "-",
                log.subject_id or "-",
                log.action or "-",
                f"{log.resource_type}:{log.resource_id}",
                f"[{style}]{log.decision.value}[/{style}]",
                f"{log.risk_score:.1f}"
            )

        console.print(table)


@audit_app.command("stats")
def audit_stats(hours: int = typer.Option(24, help="Analysis period in hours")):
    """Show decision statistics."""
    from ..core.audit import AuditTrail
    from ..models.database import init_db

    init_db()
    with get_session() as session:
        stats = AuditTrail(session).get_statistics(hours=hours)

    by_decision = stats['by_decision']
    console.print(Panel(
        f"""
[bold]Period:[/bold] Last {stats['period_hours']} hours

[bold]Total Decisions:[/bold] {stats['total_decisions']}
[bold]Allowed:[/bold] [green]{by_decision['allow']}[/green] ({stats['allow_rate']:.1%})
[bold]Denied:[/bold] [red]{by_decision['deny']}[/red] ({stats['denial_rate']:.1%})
[bold]Challenged:[/bold] [yellow]{by_decision['challenge']}[/yellow]
[bold]Step-up:[/bold] [magenta]{by_decision['step_up']}[/magenta]

[bold]Average Risk:[/bold] {stats['average_risk']:.1f}
[bold]High-Risk Decisions:[/bold] {stats['high_risk_decisions']}
[bold]Unique Subjects:[/bold] {stats['unique_subjects']}
""",
        title="Zero Trust Statistics",
        box=box.ROUNDED
    ))


@audit_app.command("denials")
def recent_denials(hours: int = typer.Option(24, help="Look back period")):
    """Show recent denials (security monitoring)."""
    import json
    from ..core.audit import AuditTrail
    from ..models.database import init_db

    init_db()
    with get_session() as session:
        denials = AuditTrail(session).get_recent_denials(hours=hours)

        if not denials:
            console.print("[green]No denials in the specified period.[/green]")
            return

        table = Table(title=f"Denials (Last {hours}h)", box=box.ROUNDED)
        table.add_column("Time", style="dim")
        table.add_column("Subject", style="cyan")
        table.add_column("Action", style="yellow")
        table.add_column("Resource")
        table.add_column("Reason")

        for log in denials:
            reasons = json.loads(log.policy_violations or "[]")
            table.add_row(
                log.timestamp.strftime("%Y-%m-%d %H:%M:%S") if log.timestamp else "-",
                log.subject_id or "-",
                log.action or "-",
                log.resource_type or "-",
                (reasons[0] if reasons else "-")[:40]
            )

        console.print(table)


@audit_app.command("export")
def export_logs(
    output: str = typer.Option("audit_export.json", "--output", "-o", help="Output file"),
    format: str = typer.Option("json", "--format", "-f", help="Format: json or csv")
):
    """Export audit logs for SIEM integration."""
    from ..core.audit import AuditTrail
    from ..models.database import init_db

    init_db()
    with get_session() as session:
        data = AuditTrail(session).export_logs(format=format)

    with open(output, 'w') as f:
        f.write(data)

    console.print(f"[green]Exported audit logs to {output}[/green]")


# ============================================================================
# Main Entry Point
# ============================================================================

@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """
    Zero Trust Access Decision Engine

    Every request is scored for risk, classified for trust and checked
    against the zero trust policies before access is granted.
    """
    configure_logging(**get_settings().get_logging_config())

    if ctx.invoked_subcommand is None:
        print_banner()
        console.print("\nUse [cyan]--help[/cyan] to see available commands.\n")
        console.print("Quick Start:")
        console.print("  1. [cyan]python main.py test scenario[/cyan]      - Run demo scenarios")
        console.print("  2. [cyan]python main.py policy matrix[/cyan]      - View the RBAC matrix")
        console.print("  3. [cyan]python main.py test access --role analyst --sensitivity 60 --no-mfa[/cyan]")
        console.print("  4. [cyan]python main.py test request --path /api/compliance --header x-user-roles=analyst[/cyan]")
        console.print()


if __name__ == "__main__":
    app()
