"""Rich terminal rendering for analysis results.

Every function here takes an already-computed schema object and prints it.
Nothing in this module computes a number the engine did not produce.
"""

from rich.console import Console, Group
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from schemas.analysis import HistogramCandidate, LabelRisk, MetricTree
from schemas.finding import Finding
from schemas.report import AnalysisReport, ChurnStats, JobSummary, Overview, PrometheusConfig
from schemas.simulation import SimulationAction, SimulationImpact

SEVERITY_COLORS = {
    "critical": "red",
    "high": "yellow",
    "moderate": "cyan",
    "low": "green",
    "healthy": "green",
}


def _sev(severity: str | None) -> str:
    if severity is None:
        return "[dim]—[/dim]"
    color = SEVERITY_COLORS.get(severity, "dim")
    return f"[{color}]{severity}[/{color}]"


# ── Sections ──────────────────────────────────────────────────────────────────

def print_report(console: Console, report: AnalysisReport, show_snippets: bool = False) -> None:
    """Render every section of a report, endpoint errors first."""
    for endpoint, message in report.errors.items():
        console.print(f"[bold red]✗ {endpoint}[/bold red] [dim]{message}[/dim]")

    print_overview(console, report.overview)
    print_findings(console, list(report.findings), show_snippets=show_snippets)
    print_histograms(console, list(report.histograms))
    print_labels(console, list(report.labels))
    print_jobs(console, list(report.jobs))


def print_overview(console: Console, overview: Overview) -> None:
    intervals = ", ".join(overview.scrape_intervals) or "—"
    console.print()
    console.rule("[bold]Overview[/bold]")
    console.print(
        f"  total series   {_sev(overview.series_severity)} [bold]{overview.total_series:,}[/bold]"
    )
    console.print(f"  label pairs    {overview.label_pairs:,}")
    console.print(f"  targets up     {overview.targets_up} / {overview.targets_total}")
    console.print(f"  intervals      {intervals}")

    if overview.top_metrics:
        console.print(_counts_table("Top Metrics by Series Count", "Metric", "Series", overview.top_metrics))
    if overview.top_labels:
        console.print(_counts_table("Top Labels by Value Count", "Label", "Values", overview.top_labels))
    if overview.top_label_value_pairs:
        console.print(_counts_table(
            "Top Label-Value Pairs by Series Count", "Pair", "Series", overview.top_label_value_pairs,
        ))


def _counts_table(title: str, name_header: str, value_header: str, rows) -> Table:
    table = Table(title=title, border_style="bright_black")
    table.add_column(name_header, style="bold", min_width=30)
    table.add_column(value_header, justify="right")
    for entry in rows:
        table.add_row(entry.name, f"{entry.value:,}")
    return table


def print_findings(console: Console, findings: list[Finding], show_snippets: bool = False) -> None:
    if not findings:
        console.print("\n[green]No findings detected. Your Prometheus instance looks healthy![/green]")
        return

    table = Table(title="Recommendations", show_lines=True, border_style="bright_black")
    table.add_column("#",        style="dim", width=3, justify="right")
    table.add_column("Severity", width=10,    justify="center")
    table.add_column("Category", style="dim", width=12)
    table.add_column("Finding",  style="bold", min_width=30)
    table.add_column("Impact",   min_width=20)

    for i, f in enumerate(findings, 1):
        table.add_row(str(i), _sev(f.severity), f.category, f.title, f.impact_description)

    console.print()
    console.print(table)

    if show_snippets:
        for f in findings:
            if f.remediation_snippet:
                console.print(Panel(
                    Group(Text(f.suggested_fix), Syntax(f.remediation_snippet, "yaml")),
                    title=f"[bold]{f.id}[/bold]",
                    border_style=SEVERITY_COLORS.get(f.severity, "dim"),
                ))


def print_histograms(console: Console, histograms: list[HistogramCandidate]) -> None:
    if not histograms:
        console.print("\n[dim]No _bucket metrics found.[/dim]")
        return

    table = Table(title="Histogram Risk", border_style="bright_black")
    table.add_column("Metric",       style="bold", min_width=30)
    table.add_column("Bucket Series", justify="right")
    table.add_column("Est. Buckets",  justify="right")
    table.add_column("Sum/Count",     justify="right")
    table.add_column("Savings",       justify="right")
    table.add_column("Risk",          justify="center")

    for h in histograms:
        table.add_row(
            h.name,
            f"{h.bucket_series_count:,}",
            str(h.estimated_buckets_per_series),
            f"{h.sum_series_count + h.count_series_count:,}",
            f"~{h.savings_percent}%",
            f"{_sev(h.severity)} {h.risk_score}",
        )

    console.print()
    console.print(table)


def print_labels(console: Console, labels: list[LabelRisk]) -> None:
    if not labels:
        return

    table = Table(title="Label Churn Risk", border_style="bright_black")
    table.add_column("Label",         style="bold", min_width=20)
    table.add_column("Unique Values", justify="right")
    table.add_column("Dynamic",       justify="center")
    table.add_column("High Card.",    justify="center")
    table.add_column("Risk",          justify="center")

    for label in labels:
        table.add_row(
            label.label,
            f"{label.unique_value_count:,}",
            "✓" if label.is_dynamic_pattern else "",
            "✓" if label.is_high_cardinality else "",
            _sev(label.risk_tier),
        )

    console.print()
    console.print(table)


def print_jobs(console: Console, jobs: list[JobSummary]) -> None:
    if not jobs:
        return

    table = Table(title="Scrape Jobs", border_style="bright_black")
    table.add_column("Job",          style="bold", min_width=20)
    table.add_column("Targets",      justify="right")
    table.add_column("Interval",     justify="center")
    table.add_column("Avg Duration", justify="right")
    table.add_column("Health",       justify="center")

    for job in jobs:
        interval = f"[yellow]{job.interval} (fast)[/yellow]" if job.is_fast else job.interval
        duration = (
            f"{job.avg_scrape_duration_seconds * 1000:.0f}ms"
            if job.avg_scrape_duration_seconds > 0
            else "—"
        )
        color = "green" if job.healthy_count == job.target_count else "red"
        table.add_row(
            job.job,
            str(job.target_count),
            interval,
            duration,
            f"[{color}]{job.healthy_count}/{job.target_count}[/{color}]",
        )

    console.print()
    console.print(table)


def print_tree(console: Console, tree: MetricTree) -> None:
    """Render one metric's multiplier tree."""
    console.print()
    console.rule(f"[bold]{tree.metric}[/bold]  [dim]{tree.total_series:,} series[/dim]")

    if not tree.labels:
        console.print("[dim]No labels besides __name__.[/dim]")
        return

    if tree.product != tree.total_series:
        console.print(
            f"  theoretical max {tree.product:,}, actual {tree.total_series:,} "
            f"[dim]({tree.density_percent}% density)[/dim]"
        )
    if tree.overflow_risk:
        console.print("  [yellow]product exceeds 2^53; JSON clients will lose precision[/yellow]")

    table = Table(border_style="bright_black")
    table.add_column("Label",  style="bold", min_width=20)
    table.add_column("×",      justify="right")
    table.add_column("Sample values", style="dim")

    for b in tree.labels:
        count = f"[red]{b.unique_value_count}[/red]" if b.multiplier_level == "explosion" else (
            f"[yellow]{b.unique_value_count}[/yellow]" if b.multiplier_level == "high"
            else str(b.unique_value_count)
        )
        table.add_row(b.label, count, ", ".join(b.sample_values))

    console.print(table)


def print_impact(console: Console, actions: list[SimulationAction], impact: SimulationImpact) -> None:
    table = Table(title="Active Simulations", border_style="bright_black")
    table.add_column("#",      style="dim", width=3, justify="right")
    table.add_column("Action", style="dim")
    table.add_column("Target", style="bold")
    table.add_column("Series Removed", justify="right")

    for i, (action, removed) in enumerate(zip(actions, impact.contributions), 1):
        table.add_row(str(i), action.kind.value.replace("_", " "), action.target, f"{removed:,}")

    console.print()
    console.print(table)
    console.print(
        f"\n  series reduction  [bold green]-{impact.percent_reduction}%[/bold green]"
        f"\n  series removed    [bold]{impact.estimated_series_removed:,}[/bold]"
        f"\n  remaining series  [bold]{impact.remaining_series:,}[/bold]"
    )
    console.print("[dim]Directional estimates based on current TSDB data. "
                  "drop_label figures are rough.[/dim]\n")


def print_churn(console: Console, churn: ChurnStats) -> None:
    def fmt(value: float | None, digits: int = 0) -> str:
        return "—" if value is None else f"{value:,.{digits}f}"

    console.print()
    console.rule("[bold]Churn & Memory Pressure[/bold]")
    console.print(f"  head series        {_sev(churn.series_severity)} {fmt(churn.head_series)}")
    console.print(f"  head chunks        {_sev(churn.chunk_severity)} {fmt(churn.head_chunks)}")
    console.print(f"  series created/s   {fmt(churn.series_created_rate, 2)}")
    console.print(f"  series removed/s   {fmt(churn.series_removed_rate, 2)}")
    console.print(f"  net churn/s        {_sev(churn.net_churn_severity)} {fmt(churn.net_churn_rate, 2)}")
    console.print(f"  chunks created/s   {fmt(churn.chunks_created_rate, 2)}")

    if churn.top_series_added:
        console.print(_samples_table("Top Targets by Series Added", "Series Added", churn.top_series_added))
    if churn.top_post_relabel:
        console.print(_samples_table(
            "Top Targets by Samples After Relabeling", "Samples", churn.top_post_relabel,
        ))


def _samples_table(title: str, value_header: str, samples) -> Table:
    table = Table(title=title, border_style="bright_black")
    table.add_column("Job", style="bold")
    table.add_column("Instance", style="dim")
    table.add_column(value_header, justify="right")
    for sample in samples:
        table.add_row(
            sample.labels.get("job", ""),
            sample.labels.get("instance", ""),
            f"{sample.value:,.0f}",
        )
    return table


def print_connections(console: Console, configs: list[PrometheusConfig]) -> None:
    if not configs:
        console.print("[dim]No saved connections.[/dim]")
        return
    for i, config in enumerate(configs, 1):
        auth = f" [dim](as {config.username})[/dim]" if config.username else ""
        console.print(f"  {i:>2}. [cyan]{config.base_url}[/cyan]{auth}")
