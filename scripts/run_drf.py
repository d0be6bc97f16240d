#!/usr/bin/env python
"""
Compute DRF/DBF/DTF statistics for a fitted two-group model and save reports.
"""

import dataclasses
import logging
from pathlib import Path

import pandas as pd
import typer
from matplotlib.figure import Figure
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from drf_analysis.core.utils import get_rng
from drf_analysis.drf import (
    CovarianceNotAvailableError,
    DIFResult,
    DrawLimitExceededError,
    DRFConfigurationError,
    DRFSettings,
    DRFTestResult,
    FrequencyTableError,
    drf,
    load_config,
)
from drf_analysis.irt.schemas import MultipleGroupModelSchema

PROJECT_DIR = Path(__file__).parent.parent.absolute()
DEFAULT_OUTPUT_DIR = PROJECT_DIR / "reports" / "drf"

console = Console(force_terminal=True, legacy_windows=True)
app = typer.Typer()


def _format_value(value: object) -> str:
    if isinstance(value, float):
        return "NA" if pd.isna(value) else f"{value:.4f}"
    return str(value)


def render_table(df: pd.DataFrame, title: str) -> Table:
    """Convert a result table to a rich Table."""
    table = Table(title=title)
    table.add_column(df.index.name or "", style="cyan")
    for col in df.columns:
        table.add_column(str(col), justify="right")
    for label, row in df.iterrows():
        table.add_row(str(label), *(_format_value(v) for v in row.tolist()))
    return table


def parse_focal_items(value: str | None) -> list[int] | None:
    """Parse a comma-separated list of 1-based item numbers."""
    if value is None:
        return None
    try:
        return [int(v) - 1 for v in value.split(",") if v.strip()]
    except ValueError as e:
        console.print(f"[red]Invalid focal items: {value}[/red]")
        raise typer.Exit(1) from e


@app.command()
def main(
    model_path: Path = typer.Argument(
        ...,
        help="Path to fitted two-group model JSON",
    ),
    config_path: Path | None = typer.Option(
        None,
        "-c",
        "--config",
        help="YAML file with DRF settings",
    ),
    draws: int | None = typer.Option(
        None,
        "-n",
        "--draws",
        help="Number of imputations (overrides the config file)",
    ),
    focal_items: str | None = typer.Option(
        None,
        "-f",
        "--focal-items",
        help="Comma-separated 1-based item numbers (default: all items)",
    ),
    dif: bool = typer.Option(
        False,
        "--dif",
        help="Report item-level statistics",
    ),
    ci: float | None = typer.Option(
        None,
        "--ci",
        help="Confidence level",
    ),
    p_adjust: str | None = typer.Option(
        None,
        "--p-adjust",
        help="p-value adjustment for item-level tests",
    ),
    seed: int | None = typer.Option(
        None,
        "-s",
        "--seed",
        help="Random seed for reproducibility",
    ),
    n_workers: int | None = typer.Option(
        None,
        "-w",
        "--workers",
        help="Worker pool size (0 = all cores)",
    ),
    plot: bool = typer.Option(
        False,
        "--plot",
        help="Write a PNG of the curve difference instead of tables",
    ),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR,
        "-o",
        "--output-dir",
        help="Output directory for reports",
    ),
) -> None:
    """Compute DRF statistics for a fitted model and write CSV/JSON reports."""
    settings = DRFSettings()
    logging.getLogger().setLevel(settings.log_level)

    if not model_path.exists():
        console.print(f"[red]File not found: {model_path}[/red]")
        raise typer.Exit(1)

    try:
        config = load_config(config_path, settings)
        overrides: dict[str, object] = {}
        if draws is not None:
            overrides["draws"] = draws
        if ci is not None:
            overrides["ci"] = ci
        if p_adjust is not None:
            overrides["p_adjust"] = p_adjust
        if seed is not None:
            overrides["seed"] = seed
        if n_workers is not None:
            overrides["n_workers"] = n_workers
        config = dataclasses.replace(config, **overrides)  # type: ignore[arg-type]
    except (DRFConfigurationError, FileNotFoundError) as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(1) from e

    console.print("[dim]Loading model...[/dim]")
    with open(model_path) as f:
        model = MultipleGroupModelSchema.model_validate_json(f.read()).to_domain()

    console.print(
        Panel(
            f"[bold]DRF Analysis[/bold]\n\n"
            f"Model: [cyan]{model_path}[/cyan]\n"
            f"Groups: [cyan]{', '.join(model.group_names)}[/cyan]\n"
            f"Items: [cyan]{model.n_items}[/cyan]\n"
            f"Draws: [cyan]{config.draws}[/cyan]\n"
            f"CI: [cyan]{config.ci}[/cyan]",
            title="Configuration",
        )
    )

    try:
        result = drf(
            model,
            config,
            focal_items=parse_focal_items(focal_items),
            dif=dif,
            plot=plot,
            rng=get_rng(config.seed),
        )
    except (
        DRFConfigurationError,
        CovarianceNotAvailableError,
        DrawLimitExceededError,
        FrequencyTableError,
    ) as e:
        console.print(f"[red]DRF computation failed: {e}[/red]")
        raise typer.Exit(1) from e

    output_dir.mkdir(parents=True, exist_ok=True)
    stem = model_path.stem

    if isinstance(result, Figure):
        output_path = output_dir / f"{stem}_drf.png"
        result.savefig(output_path, dpi=150)
        console.print(
            Panel(
                f"[bold green]Plot saved[/bold green]\n\n"
                f"Output: [cyan]{output_path}[/cyan]",
                title="Done",
            )
        )
        return

    tables: dict[str, pd.DataFrame] = {}
    if isinstance(result, DIFResult):
        tables["sDIF"] = result.signed
        if result.unsigned is not None:
            tables["uDIF"] = result.unsigned
    elif isinstance(result, DRFTestResult):
        tables["DRF"] = result.table
    else:
        tables["pointwise"] = result.table

    written = []
    for name, df in tables.items():
        console.print(render_table(df, name))
        csv_path = output_dir / f"{stem}_{name}.csv"
        json_path = output_dir / f"{stem}_{name}.json"
        df.to_csv(csv_path)
        df.to_json(json_path, orient="index", indent=2)
        written.extend([csv_path, json_path])

    console.print(
        Panel(
            "[bold green]Reports saved[/bold green]\n\n"
            + "\n".join(f"Output: [cyan]{p}[/cyan]" for p in written),
            title="Done",
        )
    )


if __name__ == "__main__":
    app()
