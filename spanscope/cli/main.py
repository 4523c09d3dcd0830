from __future__ import annotations

from pathlib import Path
from typing import Optional
import typer

from rich.console import Console
from rich.table import Table

from spanscope.analysis.detectors.complexity import high_complexity
from spanscope.analysis.runner import analyze as run_engine
from spanscope.core.config import EngineConfig
from spanscope.core.errors import ConfigError
from spanscope.ingestion.walker import DEFAULT_INCLUDE, load_sources, walk_repo
from spanscope.logging import configure_logging
from spanscope.presets import DEFAULT_RULES, load_rules, save_rules
from spanscope.reporting.exporters import export_json_report


app = typer.Typer(add_completion=False, help="Tolerant structural analysis for curly-brace source code")
console = Console()


@app.command("analyze")
def analyze(
    path: str = typer.Argument(..., help="Path to file or folder to analyze"),
    include: list[str] = typer.Option(DEFAULT_INCLUDE, help="Glob patterns to include"),
    exclude: list[str] = typer.Option([], help="Glob patterns to exclude (gitignore syntax)"),
    max_bytes: int = typer.Option(2_000_000, help="Per-file size cap in bytes"),
    rules_file: str = typer.Option("presets/rules.yaml", help="Rules/thresholds file"),
    json_out: Optional[str] = typer.Option(None, "--json-out", help="Directory to write report.json into"),
    top: int = typer.Option(20, help="Rows to show per table"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    configure_logging(verbose=verbose)
    root = Path(path)
    if not root.exists():
        typer.secho(f"Path not found: {root}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    rules = load_rules(Path(rules_file))
    try:
        config = EngineConfig.from_rules(rules)
    except ConfigError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)
    warn_at = int((rules.get("complexity") or {}).get("warn_at", 10))

    console.rule("[bold]Scanning")
    metas = walk_repo(root, include, exclude, max_bytes, follow_symlinks=False)
    if not metas:
        typer.secho("No files matched include/exclude filters.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=0)

    console.rule("[bold]Analyzing")
    report = run_engine(load_sources(root, metas), config)

    spans = {s.id: s for fr in report.files.values() for s in fr.spans}
    results = [c for fr in report.files.values() for c in fr.complexity]

    table = Table(title="File metrics")
    table.add_column("File", overflow="fold")
    table.add_column("Lines", justify="right")
    table.add_column("Code", justify="right")
    table.add_column("Comments", justify="right")
    table.add_column("Functions", justify="right")
    table.add_column("Avg / max complexity", justify="right")
    for fr in list(report.files.values())[:top]:
        m = fr.metrics
        if m is None:
            continue
        table.add_row(fr.file_id, str(m.total_lines), str(m.code_lines), str(m.comment_lines),
                      str(m.functions), f"{m.average_complexity:.1f} / {m.max_complexity}")
    console.print(table)

    table = Table(title=f"Complex spans (cyclomatic >= {warn_at})")
    table.add_column("Span", overflow="fold")
    table.add_column("Kind")
    table.add_column("Lines", justify="right")
    table.add_column("Cyclomatic", justify="right")
    table.add_column("Cognitive", justify="right")
    for c in high_complexity(results, warn_at)[:top]:
        s = spans[c.span_id]
        table.add_row(f"{s.file_id}:{s.qualified_name}", s.kind.value,
                      f"{s.start_line}-{s.end_line}", str(c.cyclomatic), str(c.cognitive))
    console.print(table)

    table = Table(title="Duplicate groups")
    table.add_column("Kind")
    table.add_column("Similarity", justify="right")
    table.add_column("Members", overflow="fold")
    for g in report.duplicate_groups[:top]:
        names = ", ".join(f"{spans[m].file_id}:{spans[m].name}" for m in g.members)
        table.add_row(g.kind.value, f"{g.similarity:.2f}", names)
    console.print(table)

    if report.name_collisions:
        table = Table(title="Function names defined in several files")
        table.add_column("Name", overflow="fold")
        table.add_column("Files", overflow="fold")
        for nc in report.name_collisions[:top]:
            table.add_row(nc.name, ", ".join(nc.file_ids))
        console.print(table)

    table = Table(title="Diagnostics")
    table.add_column("File", overflow="fold")
    table.add_column("Offset", justify="right")
    table.add_column("Kind")
    table.add_column("Message", overflow="fold")
    for d in report.diagnostics[:top]:
        table.add_row(d.file_id, str(d.offset), d.kind.value, d.message)
    console.print(table)
    if len(report.diagnostics) > top:
        console.print(f"... and {len(report.diagnostics) - top} more")

    if json_out:
        out = export_json_report(report, Path(json_out))
        typer.secho(f"Wrote report: {out}", fg=typer.colors.GREEN)


@app.command("init-rules")
def init_rules(
    rules_file: str = typer.Option("presets/rules.yaml", help="Where to write the default rules"),
    force: bool = typer.Option(False, help="Overwrite an existing file"),
) -> None:
    """Write the default thresholds as a YAML preset."""
    target = Path(rules_file)
    if target.exists() and not force:
        typer.secho(f"{target} already exists (use --force to overwrite)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    out = save_rules(DEFAULT_RULES, target)
    console.print(f"[green]Wrote default rules to {out}[/]")


if __name__ == "__main__":
    app()
