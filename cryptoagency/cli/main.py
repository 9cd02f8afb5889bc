"""cryptoagency CLI: run the agent bench and rate what it suggests.

`cryptoagency run full-system` exercises every agent and logs suggestions;
`cryptoagency suggestions` lists them and `cryptoagency feedback` rates one.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cryptoagency.bench import TEST_TYPES, AgencyBench
from cryptoagency.cli.context import AgencyContext, run_async
from cryptoagency.config import settings
from cryptoagency.core.regime import RegimeType
from cryptoagency.exceptions import AgencyError

console = Console()

app = typer.Typer(
    name="cryptoagency",
    help="cryptoagency -- autonomous crypto-intelligence agents with human feedback.",
    no_args_is_help=True,
)

_URGENCY_STYLE = {"high": "red", "medium": "yellow", "low": "green"}


def _session(work: Callable[[AgencyBench], Awaitable[Any]]) -> Any:
    """Open the database, run `work` against the bench, close again."""
    ctx = AgencyContext.get()

    async def _run():
        bench = await ctx.ensure_bench()
        try:
            return await work(bench)
        finally:
            await ctx.close()

    try:
        return run_async(_run())
    except AgencyError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command("init")
def init():
    """Initialize a workspace and its suggestion database."""
    async def _init(bench: AgencyBench):
        return bench.database.db_path

    db_path = _session(_init)
    console.print(
        Panel(
            f"[green]cryptoagency workspace initialized at {settings.workspace_dir}[/green]\n\n"
            f"Database: {db_path}\n\n"
            "Run the agents:\n"
            "  [bold]cryptoagency run full-system[/bold]\n\n"
            "Then rate what they suggest:\n"
            "  [bold]cryptoagency suggestions[/bold]",
            title="cryptoagency",
            border_style="cyan",
        )
    )


@app.command("status")
def status():
    """Show workspace, agents and stored record counts."""
    async def _status(bench: AgencyBench):
        counts = {}
        for table in ("agent_suggestions", "alpha_discoveries", "strategic_decisions", "feedback_log"):
            counts[table] = await bench.database.count(table)
        return bench.status(), counts

    state, counts = _session(_status)

    from cryptoagency import __version__
    console.print(Panel(
        f"[bold]cryptoagency v{__version__}[/bold]\n\n"
        f"Workspace:    {settings.workspace_dir}\n"
        f"Agents:       {', '.join(state['agents'])}\n"
        f"Regime:       {state['regime']}\n"
        f"Threshold:    {state['alpha_threshold']:.2f}\n"
        f"Suggestions:  {counts['agent_suggestions']}\n"
        f"Discoveries:  {counts['alpha_discoveries']}\n"
        f"Decisions:    {counts['strategic_decisions']}\n"
        f"Feedback:     {counts['feedback_log']}",
        title="System Status",
        border_style="cyan",
    ))


@app.command("run")
def run(
    test_type: str = typer.Argument(help=f"One of: {', '.join(TEST_TYPES)}"),
    rounds: int = typer.Option(3, "--rounds", "-r", min=1, help="Rounds to run"),
):
    """Run one bench scenario and log its suggestions."""
    async def _run(bench: AgencyBench):
        return await bench.run(test_type, rounds=rounds)

    with console.status(f"[bold cyan]running {test_type}...", spinner="dots"):
        result = _session(_run)

    table = Table(title=f"{test_type} ({result.status})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    for name, value in result.metrics.items():
        if isinstance(value, dict):
            for sub, sub_value in value.items():
                table.add_row(f"{name}.{sub}", _fmt(sub_value))
        else:
            table.add_row(name, _fmt(value))
    table.add_row("suggestions", str(len(result.suggestion_ids)))
    table.add_row("duration", f"{result.duration_ms:.0f}ms")
    console.print(table)


@app.command("hunt")
def hunt(
    rounds: int = typer.Option(1, "--rounds", "-r", min=1, help="Hunt cycles"),
):
    """Hunt for alpha and list what was found."""
    async def _hunt(bench: AgencyBench):
        await bench.run("alpha-discovery", rounds=rounds)
        return bench.market_hunter.discoveries, bench.market_hunter.current_threshold

    discoveries, threshold = _session(_hunt)

    if not discoveries:
        console.print(f"[dim]No alpha above threshold {threshold:.2f}.[/dim]")
        return

    table = Table(title=f"Alpha discoveries (threshold {threshold:.2f})")
    table.add_column("Type", style="cyan", max_width=22)
    table.add_column("Alpha", style="green", justify="right")
    table.add_column("Conf", justify="right")
    table.add_column("Urgency")
    table.add_column("Insight", style="white")
    for d in discoveries:
        style = _URGENCY_STYLE.get(d.urgency.value, "white")
        table.add_row(
            d.type,
            f"{d.alpha_value:.2f}",
            f"{d.confidence:.2f}",
            f"[{style}]{d.urgency.value}[/{style}]",
            d.actionable_insight[:80],
        )
    console.print(table)


@app.command("suggestions")
def suggestions(
    limit: int = typer.Option(20, "--limit", "-n", help="Max suggestions"),
):
    """List recent agent suggestions."""
    async def _list(bench: AgencyBench):
        return await bench.database.get_recent_suggestions(limit)

    rows = _session(_list)

    if not rows:
        console.print("[dim]No suggestions yet. Try: cryptoagency run full-system[/dim]")
        return

    table = Table(title="Suggestions")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Agent", style="green", max_width=22)
    table.add_column("Type", max_width=24)
    table.add_column("Conf", justify="right")
    table.add_column("Urgency")
    table.add_column("Score", justify="right")
    table.add_column("Rationale", style="dim")
    for row in rows:
        style = _URGENCY_STYLE.get(row["urgency"], "white")
        score = row["feedback_score"]
        table.add_row(
            str(row["id"]),
            row["agent_id"],
            row["suggestion_type"],
            f"{row['confidence']:.2f}",
            f"[{style}]{row['urgency']}[/{style}]",
            "-" if score is None else str(score),
            (row["rationale"] or "")[:60],
        )
    console.print(table)


@app.command("feedback")
def feedback(
    suggestion_id: int = typer.Argument(help="Suggestion ID"),
    score: int = typer.Argument(help="Rating from 1 to 10"),
    text: str = typer.Argument(help="What was good or bad about it"),
):
    """Rate a suggestion."""
    async def _rate(bench: AgencyBench):
        await bench.collect_feedback(suggestion_id, text, score)

    _session(_rate)
    console.print(f"[green]Recorded score {score} for suggestion {suggestion_id}.[/green]")


@app.command("report")
def report():
    """Show strategic feedback built from ratings and stored metrics."""
    async def _report(bench: AgencyBench):
        return await bench.strategic_feedback()

    result = _session(_report)

    console.print(Panel(
        f"Overall performance: [bold]{result.overall_performance:.2f}[/bold]",
        title="Strategic Feedback",
        border_style="cyan",
    ))

    if result.agent_recommendations or result.system_recommendations:
        table = Table(title="Recommendations")
        table.add_column("Target", style="cyan")
        table.add_column("Priority")
        table.add_column("Recommendation", style="white")
        for rec in result.agent_recommendations:
            table.add_row(rec.agent_id, rec.priority, rec.recommendation)
        for rec in result.system_recommendations:
            table.add_row(f"system:{rec.type}", rec.priority, rec.recommendation)
        console.print(table)

    for insight in result.emergent_insights:
        console.print(f"[blue]insight[/blue] {insight.description}")
    for action in result.action_priorities:
        console.print(
            f"[yellow]#{action.priority}[/yellow] {action.action} "
            f"[dim]({action.urgency}, {action.timeframe})[/dim]"
        )


@app.command("regime")
def regime(
    sentiment: float = typer.Option(0.0, "--sentiment", "-s", min=-1.0, max=1.0),
    momentum: str = typer.Option("neutral", "--momentum", "-m", help="bullish, bearish or neutral"),
    volatility: str = typer.Option("medium", "--volatility", help="low, medium, high or extreme"),
    volume: str = typer.Option("medium", "--volume", help="low, medium or high"),
):
    """Classify market conditions and show how the hunter would adapt."""
    ctx = AgencyContext.get()
    conditions = {
        "sentiment": sentiment,
        "momentum": momentum,
        "volatility": volatility,
        "volume": volume,
    }
    try:
        for agent in ctx.bench.agents.values():
            agent.set_market_regime(**conditions)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        console.print(f"[red]Invalid market conditions: {problems}[/red]")
        raise typer.Exit(1)

    hunter = ctx.bench.market_hunter
    current: RegimeType = hunter.market_regime.current_regime
    threshold = run_async(hunter.adapt_to_market_regime(current))

    console.print(Panel(
        f"Regime:      [bold]{current.value}[/bold]\n"
        f"Confidence:  {hunter.market_regime.confidence:.2f}\n"
        f"Threshold:   {threshold:.2f}\n"
        f"Strategy:    {hunter.strategy}",
        title="Market Regime",
        border_style="cyan",
    ))

    table = Table(title="Next regime")
    table.add_column("Regime", style="cyan")
    table.add_column("Probability", justify="right")
    for candidate, probability in hunter.market_regime.predict_next():
        table.add_row(candidate.value, f"{probability:.2f}")
    console.print(table)


@app.command("dashboard")
def dashboard(
    port: int = typer.Option(settings.dashboard_port, "--port", "-p", help="Port to run on"),
    host: str = typer.Option(settings.dashboard_host, "--host", help="Host to bind to"),
):
    """Launch the feedback dashboard with the bench daemon running."""
    from cryptoagency.serve import main

    console.print(f"[bold cyan]cryptoagency dashboard[/bold cyan] starting at http://{host}:{port}")
    console.print("[dim]Press Ctrl+C to stop.[/dim]")
    try:
        run_async(main(host=host, port=port))
    except KeyboardInterrupt:
        console.print("\n[dim]Dashboard stopped.[/dim]")


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.3f}"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) or "-"
    return str(value)
