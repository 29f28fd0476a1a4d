"""laywatch CLI, powered by Typer.

Usage::

    uv run laywatch db init
    uv run laywatch lay size 3.5 0.2 [--bankroll 1000] [--kelly-multiplier 0.5]
    uv run laywatch lay evaluate odds.json [--provider odds_api] [--persist]
    uv run laywatch lay calibrate results.csv [--bins 10]
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from laywatch.config import settings
from laywatch.constants import CURRENCY_SYMBOLS

app = typer.Typer(name="laywatch", help="Opening-price anchoring and Kelly lay sizing")
console = Console()

_SIGNAL_STYLES = {
    "conservative": "green",
    "strong": "yellow",
    "premium": "red",
    "none": "dim",
}


def _money(amount: float | None) -> str:
    if amount is None:
        return "-"
    return f"{CURRENCY_SYMBOLS.get(settings.currency, '')}{amount:,.2f}"


def _num(value: float | None, fmt: str = ".2f") -> str:
    return "-" if value is None else format(value, fmt)


# ── Database commands ───────────────────────────────────────────────────

db_app = typer.Typer(help="Snapshot store commands")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Create the snapshot and anchor tables."""
    from laywatch.data.schema import create_all_tables

    create_all_tables()
    console.print(f"[green]Tables ready:[/green] {settings.db_path_str}")


# ── Lay commands ────────────────────────────────────────────────────────

lay_app = typer.Typer(help="Lay sizing and race evaluation commands")
app.add_typer(lay_app, name="lay")


@lay_app.command("size")
def lay_size(
    lay_odds: float = typer.Argument(..., help="Decimal lay odds"),
    p_win: float = typer.Argument(..., help="Model probability the runner wins"),
    bankroll: float = typer.Option(None, help="Bankroll (default: config)"),
    commission: float = typer.Option(None, help="Exchange commission rate (default: config)"),
    kelly_multiplier: float = typer.Option(None, help="Kelly multiplier (default: config mode)"),
    max_liability_pct: float = typer.Option(None, help="Max liability, percent of bankroll"),
    min_stake: float = typer.Option(None, help="Exchange minimum stake"),
) -> None:
    """Size a single lay with the commission-aware Kelly rule."""
    from laywatch.betting.probability import break_even_probability
    from laywatch.betting.sizing import size_lay

    commission = settings.commission if commission is None else commission
    result = size_lay(
        bankroll=settings.bankroll if bankroll is None else bankroll,
        lay_odds=lay_odds,
        p_win=p_win,
        commission=commission,
        kelly_multiplier=settings.resolved_kelly_multiplier if kelly_multiplier is None else kelly_multiplier,
        max_liability_pct=settings.max_liability_pct if max_liability_pct is None else max_liability_pct,
        min_stake=settings.min_stake if min_stake is None else min_stake,
    )

    table = Table(title=f"Lay @ {lay_odds:.2f}, P(win) {p_win:.1%}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Break-even P(win)", f"{break_even_probability(lay_odds, commission):.2%}")
    table.add_row("Full Kelly f*", f"{result.kelly_fraction:.4f}")
    table.add_row("Lay stake", _money(result.lay_stake))
    table.add_row("Liability", _money(result.liability))
    table.add_row("Profit if loses", _money(result.profit_if_lose))
    table.add_row("Loss if wins", _money(result.loss_if_win))
    table.add_row("EV", _money(result.ev))
    table.add_row("EV % bankroll", f"{result.ev_pct_bankroll:.4f}%")
    table.add_row("Capped by max liability", str(result.capped_by_max_liability))
    table.add_row("Below min stake", str(result.below_min_stake))
    console.print(table)


@lay_app.command("evaluate")
def lay_evaluate(
    payload_file: Path = typer.Argument(..., exists=True, help="Saved provider JSON payload"),
    provider: str = typer.Option("odds_api", help="Payload schema: odds_api or racing_api"),
    persist: bool = typer.Option(False, help="Record the batch and anchors in DuckDB"),
) -> None:
    """Evaluate every race in a saved odds payload."""
    from laywatch.betting.anchors import resolve_anchors
    from laywatch.betting.engine import LayEngine
    from laywatch.data.ingest.odds import OddsProvider, parse_events

    try:
        odds_provider = OddsProvider(provider)
    except ValueError:
        console.print(f"[red]Unknown provider {provider!r}[/red]")
        raise typer.Exit(1)

    cards = parse_events(json.loads(payload_file.read_text()), odds_provider)
    engine = LayEngine()

    if persist:
        from laywatch.data.schema import create_all_tables
        from laywatch.data.snapshots import record_batch

        create_all_tables()

    for card in cards:
        if not settings.within_field_size(card.runner_count):
            console.print(f"[dim]Skipping {card.race_name}: {card.runner_count} runners[/dim]")
            continue

        if persist:
            anchors = record_batch(card.race_id, card.observations, race_name=card.race_name).anchors
        else:
            # Without history this batch is its own opening.
            resolved = resolve_anchors(card.race_id, card.observations, set())
            anchors = {name: r.anchor_price for name, r in resolved.items()}

        race = engine.evaluate_race(card.race_id, card.observations, anchors)

        table = Table(title=f"{card.race_name}  ({card.commence_time})  book {_num(race.book_percentage, '.1f')}%")
        table.add_column("Runner", style="cyan")
        table.add_column("Open", justify="right")
        table.add_column("Current", justify="right")
        table.add_column("Comp %", justify="right")
        table.add_column("Signal")
        table.add_column("P model", justify="right")
        table.add_column("P market", justify="right")
        table.add_column("Stake", justify="right")
        table.add_column("Liability", justify="right")
        table.add_column("EV", justify="right")
        table.add_column("Verdict")

        for r in race.runners:
            d = r.decision
            style = _SIGNAL_STYLES[r.signal.value]
            table.add_row(
                r.runner,
                _num(r.anchor_price),
                _num(r.prices.current_price),
                _num(r.compression_pct, ".1f"),
                f"[{style}]{r.signal.value}[/{style}]",
                _num(d.p_model, ".3f"),
                _num(d.p_market, ".3f"),
                _money(d.sizing.lay_stake) if d.sizing else "-",
                _money(d.sizing.liability) if d.sizing else "-",
                _money(d.ev),
                "[bold green]LAY[/bold green]" if d.place_lay and d.sizing.is_bet else "; ".join(d.reasons),
            )
        console.print(table)

    if persist:
        from laywatch.data.db import close

        close()


@lay_app.command("calibrate")
def lay_calibrate(
    results_csv: Path = typer.Argument(..., exists=True, help="CSV with decimal_odds and won columns"),
    bins: int = typer.Option(10, help="Probability bins for the report"),
) -> None:
    """Fit model alpha/beta from settled results and show calibration."""
    import pandas as pd

    from laywatch.betting.calibration import CalibrationAnalyzer
    from laywatch.betting.probability import ModelParams

    analyzer = CalibrationAnalyzer(pd.read_csv(results_csv))
    if analyzer.results.empty:
        console.print("[red]No settled runners with valid odds found.[/red]")
        raise typer.Exit(1)

    console.print("\n[bold]Calibration: raw implied probability[/bold]")
    console.print(analyzer.calibration_report(ModelParams(), n_bins=bins).to_string(index=False))

    fitted = analyzer.fit_model_params()
    console.print(f"\n[bold]Calibration: fitted alpha={fitted.alpha:.4f} beta={fitted.beta:.4f}[/bold]")
    console.print(analyzer.calibration_report(fitted, n_bins=bins).to_string(index=False))
    console.print(
        f"\nSet [cyan]LAYWATCH_MODEL_ALPHA={fitted.alpha:.4f}[/cyan] "
        f"and [cyan]LAYWATCH_MODEL_BETA={fitted.beta:.4f}[/cyan] to use them."
    )


if __name__ == "__main__":
    app()
