"""
Scenario Runner
===============

Runs the demo scenarios through the engine and prints a PASS/FAIL table.

Scenarios cover the zero trust decision paths:
1. Allow - trusted, low-risk read
2. Step-up / challenge - missing MFA, CUI at high trust, export, after hours
3. Deny - RBAC, threat intel, organization boundary, residual risk
"""

from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import ZeroTrustSettings
from ..core.audit import AuditLogger, InMemoryAuditSink
from ..core.engine import ZeroTrustEngine
from ..models.entities import AccessDecision
from .demo_data import DEMO_NOW, load_demo_scenarios

console = Console()

DECISION_STYLES = {
    AccessDecision.ALLOW: 'green',
    AccessDecision.DENY: 'red',
    AccessDecision.CHALLENGE: 'yellow',
    AccessDecision.STEP_UP: 'magenta',
}


def scenario_engine(hour: Optional[int] = None, audit_logger: Optional[AuditLogger] = None) -> ZeroTrustEngine:
    """Engine pinned to the demo clock (optionally at another UTC hour)."""
    now = DEMO_NOW if hour is None else DEMO_NOW.replace(hour=hour, minute=30)
    return ZeroTrustEngine(
        settings=ZeroTrustSettings(business_timezone='UTC'),
        audit_logger=audit_logger or AuditLogger(async_writes=False),
        clock=lambda: now,
    )


def run_scenarios(scenario_name: str = "all", audit_logger: Optional[AuditLogger] = None) -> Dict[str, int]:
    """
    Run demo scenarios and print the results.

    Args:
        scenario_name: Scenario name or ``all``
        audit_logger: Where audit records go (in-memory when omitted)

    Returns:
        Counts of passed and failed scenarios

    Raises:
        ValueError: No scenario has the given name
    """
    scenarios = load_demo_scenarios()
    if scenario_name != "all":
        scenarios = [s for s in scenarios if s['name'] == scenario_name]
        if not scenarios:
            names = ', '.join(s['name'] for s in load_demo_scenarios())
            raise ValueError(f"Unknown scenario: {scenario_name} (available: {names}, all)")

    console.print(Panel(
        "[bold]Zero Trust Decision Scenarios[/bold]\n\n"
        "Each scenario evaluates one request against the risk, trust and\n"
        "policy rules and compares the decision with the expected outcome.",
        title="Scenario Suite",
        box=box.DOUBLE
    ))

    audit = audit_logger or AuditLogger(sinks=[InMemoryAuditSink()], async_writes=False)
    return _run_cases(scenarios, audit)


def _run_cases(scenarios: List[dict], audit: AuditLogger) -> Dict[str, int]:
    table = Table(title="Scenario Results", box=box.ROUNDED)
    table.add_column("Scenario", style="cyan")
    table.add_column("Risk", justify="right")
    table.add_column("Trust")
    table.add_column("Expected")
    table.add_column("Actual")
    table.add_column("Result")
    table.add_column("Reason")

    passed = 0
    failed = 0

    for scenario in scenarios:
        engine = scenario_engine(scenario.get('hour'), audit)
        decision = engine.evaluate(
            scenario['subject'], scenario['resource'], scenario['action'], scenario['environment']
        )

        expected = " / ".join(sorted(d.value for d in scenario['expected']))
        style = DECISION_STYLES[decision.decision]
        if decision.decision in scenario['expected']:
            result = "[green]PASS[/green]"
            passed += 1
        else:
            result = "[red]FAIL[/red]"
            failed += 1

        reason = decision.reasons[0] if decision.reasons else "-"
        table.add_row(
            scenario['name'],
            f"{decision.risk_score:.1f}",
            decision.trust_level.value,
            expected,
            f"[{style}]{decision.decision.value}[/{style}]",
            result,
            reason[:40] + "..." if len(reason) > 40 else reason
        )

    console.print(table)
    console.print(f"\nResults: [green]{passed} passed[/green], [red]{failed} failed[/red]")
    return {'passed': passed, 'failed': failed}
