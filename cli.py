"""Prometheus Blacklight: terminal front end.

Connects to the server named by PROMETHEUS_URL (or the bundled fixtures when
it is unset), runs the analysis engine and renders the result with Rich.

Usage:
    uv run python cli.py analyze [--snippets]
    uv run python cli.py tree http_requests_total
    uv run python cli.py simulate drop_metric:http_requests_total drop_label:pod
    uv run python cli.py simulate --load
    uv run python cli.py churn
    uv run python cli.py connections [--remove URL]
"""

import argparse
import asyncio
import sys

from dotenv import load_dotenv
from rich.console import Console

load_dotenv()

from core.expansion import ExpansionCache, ExpansionStatus
from core.runtime import BlacklightRuntime
from display.report import (
    print_churn,
    print_connections,
    print_impact,
    print_report,
    print_tree,
)
from integrations.prometheus import FetchError, FixtureClient, PrometheusClient, client_from_env, series_selector
from schemas.simulation import ActionKind, SimulationAction
from simulation.simulator import WhatIfSimulator
from storage.history import ConnectionHistory, JsonFileStore, SimulationPlanStore

console = Console()


def _header(client: PrometheusClient) -> None:
    source = "fixtures" if isinstance(client, FixtureClient) else client.config.base_url
    console.rule("[bold]Prometheus Blacklight[/bold]")
    console.print(f"  server  [cyan]{source}[/cyan]")


def _remember(client: PrometheusClient) -> None:
    if not isinstance(client, FixtureClient):
        ConnectionHistory(JsonFileStore.from_env()).save(client.config)


# ── Commands ──────────────────────────────────────────────────────────────────

async def _analyze(args: argparse.Namespace) -> int:
    client = client_from_env()
    _header(client)

    report = await BlacklightRuntime(client).report()
    _remember(client)
    print_report(console, report, show_snippets=args.snippets)
    return 0


async def _tree(args: argparse.Namespace) -> int:
    client = client_from_env()
    _header(client)

    snapshot = await client.fetch_snapshot()
    if not snapshot.has_metric(args.metric):
        console.print(f"[yellow]{args.metric} is not among the top metrics of this server.[/yellow]")

    cache = ExpansionCache(snapshot)
    expansion = await cache.expand(
        args.metric,
        lambda metric: client.fetch_raw_series(series_selector(metric)),
    )

    if expansion.status is ExpansionStatus.FAILED:
        console.print(f"[bold red]✗ Series fetch failed:[/bold red] {expansion.error}")
        return 1

    print_tree(console, expansion.tree)
    return 0


async def _simulate(args: argparse.Namespace) -> int:
    plans = SimulationPlanStore(JsonFileStore.from_env())

    if args.clear:
        plans.clear()
        console.print("[dim]Saved simulation plan cleared.[/dim]")
        return 0

    actions = plans.load() if args.load else []
    try:
        for arg in args.actions:
            actions.append(parse_action(arg, insertion_order=len(actions)))
    except ValueError as exc:
        console.print(f"[bold red]✗[/bold red] {exc}")
        return 2

    if not actions:
        console.print("[yellow]No actions given. Pass KIND:TARGET pairs or --load.[/yellow]")
        return 2

    client = client_from_env()
    _header(client)

    snapshot = await client.fetch_snapshot()
    impact = WhatIfSimulator().estimate(snapshot, actions)
    print_impact(console, actions, impact)

    if args.save:
        plans.save(actions)
        console.print(f"[dim]Saved {len(actions)} actions.[/dim]")
    return 0


async def _churn(args: argparse.Namespace) -> int:
    client = client_from_env()
    _header(client)

    print_churn(console, await client.fetch_churn())
    return 0


async def _connections(args: argparse.Namespace) -> int:
    history = ConnectionHistory(JsonFileStore.from_env())
    if args.remove:
        history.remove(args.remove)
    print_connections(console, history.saved())
    return 0


def parse_action(text: str, insertion_order: int = 0) -> SimulationAction:
    """Parse a KIND:TARGET argument, e.g. "drop_label:pod".

    Raises:
        ValueError: If the kind is unknown or the target is empty.
    """
    kind, sep, target = text.partition(":")
    if not sep or not target:
        raise ValueError(f"Expected KIND:TARGET, got {text!r}")
    try:
        action_kind = ActionKind(kind)
    except ValueError:
        choices = ", ".join(k.value for k in ActionKind)
        raise ValueError(f"Unknown action {kind!r}. Choose from: {choices}") from None
    return SimulationAction(kind=action_kind, target=target, insertion_order=insertion_order)


# ── Entry point ───────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blacklight",
        description="Explain why a Prometheus server is expensive to run.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Overview, findings, histograms, labels and jobs")
    analyze.add_argument("--snippets", action="store_true", help="Print relabel snippets for each finding")
    analyze.set_defaults(handler=_analyze)

    tree = sub.add_parser("tree", help="Label multiplier tree for one metric")
    tree.add_argument("metric")
    tree.set_defaults(handler=_tree)

    simulate = sub.add_parser("simulate", help="Estimate the impact of proposed changes")
    simulate.add_argument("actions", nargs="*", metavar="KIND:TARGET")
    simulate.add_argument("--load", action="store_true", help="Start from the saved plan")
    simulate.add_argument("--save", action="store_true", help="Save the resulting plan")
    simulate.add_argument("--clear", action="store_true", help="Delete the saved plan and exit")
    simulate.set_defaults(handler=_simulate)

    churn = sub.add_parser("churn", help="Series churn and head memory pressure")
    churn.set_defaults(handler=_churn)

    connections = sub.add_parser("connections", help="List recently used servers")
    connections.add_argument("--remove", metavar="URL", help="Forget a saved server")
    connections.set_defaults(handler=_connections)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(args.handler(args))
    except FetchError as exc:
        console.print(f"[bold red]✗ {exc}[/bold red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
