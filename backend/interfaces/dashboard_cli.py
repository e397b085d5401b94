"""Terminal dashboard for the offers statistics API.

Usage examples:

- One-shot daily view against a local server:
    `offers-dashboard --base-url http://localhost:8000`

- Monthly view kept on screen, rate refreshed every 5 minutes:
    `offers-dashboard --group-by monthly --watch`

- Export the rows and KPI cards to Excel:
    `offers-dashboard --group-by weekly --export offers.xlsx`

- Preview without sending requests:
    `offers-dashboard --dry-run`
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from app.config import get_settings
from application.dashboard import OffersView, format_duration, format_pln
from application.rate_monitor import RateMonitor, RateSnapshot
from application.rate_service import RateAggregator
from domain.offer import Granularity, InvalidParameterError

BASE_URL = "http://localhost:8000"
SESSION = requests.Session()
DRY_RUN = False
CONSOLE = Console()

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Offers analytics dashboard in the terminal")
    parser.add_argument("--base-url", type=str, default=None, help="Backend base URL (e.g. http://localhost:8000)")
    parser.add_argument("--group-by", type=str, default=Granularity.DAILY.value, choices=Granularity.choices())
    parser.add_argument("--watch", action="store_true", help="Keep refreshing until Ctrl-C")
    parser.add_argument("--interval", type=float, default=None, help="Refresh interval in seconds (watch mode)")
    parser.add_argument("--export", type=str, default=None, help="Write rows and KPIs to this .xlsx file")
    parser.add_argument("--dry-run", action="store_true", help="Print requests without sending")
    return parser.parse_args(argv)


def update_base_url(url: str) -> None:
    global BASE_URL
    BASE_URL = url.rstrip("/")


# --- HTTP helpers ---------------------------------------------------------

def fetch_offers(group_by: str) -> List[Dict[str, Any]]:
    if DRY_RUN:
        CONSOLE.print(
            Panel.fit(
                f"[DRY] POST {BASE_URL}/api/offers-data\n{{\"groupBy\": \"{group_by}\"}}",
                title="Dry Run",
                border_style="magenta",
            )
        )
        return []
    resp = SESSION.post(f"{BASE_URL}/api/offers-data", json={"groupBy": group_by}, timeout=10)
    if resp.status_code >= 400:
        try:
            message = resp.json().get("error")
        except ValueError:
            message = None
        raise requests.HTTPError(message or f"HTTP error! status: {resp.status_code}", response=resp)
    return resp.json().get("rows") or []


def load_rows(view: OffersView, group_by: str) -> bool:
    """Fetch rows for `group_by`; only the newest request may land in the view."""
    ticket = view.begin(group_by)
    try:
        rows = fetch_offers(group_by)
    except requests.RequestException as exc:
        logger.error("Error fetching data: %s", exc)
        return view.fail(ticket, str(exc))
    return view.apply(ticket, rows)


# --- Rendering ------------------------------------------------------------

def _rate_line(snapshot: RateSnapshot) -> str:
    if snapshot.value is None and snapshot.loading:
        return "[dim]BTC/PLN: loading…[/]"
    if snapshot.value is None:
        return f"[red]BTC/PLN: Error[/] [dim]{escape(snapshot.error or 'no data')}[/]"
    line = f"[bold]BTC/PLN:[/] {format_pln(snapshot.value)} [dim]({snapshot.rate.sources} sources)[/]"
    if snapshot.error:
        line += f"  [yellow]⚠ stale: {escape(snapshot.error)}[/]"
    return line


def _kpi_table(view: OffersView, snapshot: RateSnapshot) -> Table:
    summary = view.summary(snapshot.value)
    table = Table(box=box.SIMPLE, show_header=False, expand=True)
    for _ in range(3):
        table.add_column(justify="center")

    profit = f"{summary.total_profit_sats:,} sats"
    if snapshot.value is not None:
        profit += f"\n≈ {format_pln(summary.total_profit_fiat, 2)}"
    success = "—" if summary.avg_success is None else f"{summary.avg_success:.1f}%"

    table.add_row(
        f"[bold cyan]Total Volume[/]\n{format_pln(summary.total_volume)}",
        f"[bold green]Total Profit[/]\n{profit}",
        f"[bold magenta]Success Rate[/]\n{success}",
    )
    table.add_row(
        f"[bold]Offers[/]\n[green]{summary.total_success} ok[/] / [red]{summary.total_failed} failed[/]",
        f"[bold]Avg Time to Accept[/]\n{format_duration(summary.avg_time_to_accept)}",
        f"[bold]Avg Time to Full Payment[/]\n{format_duration(summary.avg_time_to_full_payment)}",
    )
    return table


def _rows_table(view: OffersView, snapshot: RateSnapshot) -> Table:
    table = Table(title=f"Offers by {view.granularity.value}", box=box.SIMPLE_HEAVY)
    for header in ("Date", "Success %", "Success", "Failed", "Profit (sats)", "Profit (PLN)",
                   "Volume", "Volume (sats)", "Accept", "Full payment"):
        table.add_column(header, justify="right" if header != "Date" else "left")
    for row in view.rows:
        pct = row.get("success_percentage")
        table.add_row(
            str(row.get("date")),
            "—" if pct is None else f"{float(pct):.2f}",
            str(row.get("success", 0)),
            str(row.get("failed", 0)),
            f"{int(row.get('profit') or 0):,}",
            format_pln(snapshot.to_fiat(row.get("profit")), 2),
            format_pln(row.get("volume")),
            f"{int(row.get('volume_sats') or 0):,}",
            format_duration(row.get("avg_reserved_seconds")),
            format_duration(row.get("avg_total_seconds")),
        )
    return table


def render(view: OffersView, snapshot: RateSnapshot) -> Group:
    header = Panel.fit(
        f"[bold blue]Offers Analytics Dashboard[/]  [dim]{BASE_URL}[/]\n{_rate_line(snapshot)}",
        border_style="blue",
    )
    if view.error:
        body = Panel.fit(
            f"[red]{escape(view.error)}[/]\n[dim]Make sure the API server is running on {BASE_URL}[/]",
            title="Failed to load data",
            border_style="red",
        )
        return Group(header, body)
    if not view.rows:
        return Group(header, Panel.fit("[dim]No offers in range[/]"))
    return Group(header, _kpi_table(view, snapshot), _rows_table(view, snapshot))


# --- Excel export ---------------------------------------------------------

EXPORT_COLUMNS = (
    ("date", "Date"),
    ("success_percentage", "Success %"),
    ("success", "Success"),
    ("failed", "Failed"),
    ("profit", "Profit (sats)"),
    ("volume", "Volume (PLN)"),
    ("volume_sats", "Volume (sats)"),
    ("avg_reserved_seconds", "Avg accept (s)"),
    ("avg_total_seconds", "Avg full payment (s)"),
)


def export_excel(filename: str, view: OffersView, snapshot: RateSnapshot) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = f"offers-{view.granularity.value}"

    header_fill = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
    for col, (_, title) in enumerate(EXPORT_COLUMNS, start=1):
        cell = ws.cell(row=1, column=col, value=title)
        cell.font = Font(bold=True)
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")
    profit_col = len(EXPORT_COLUMNS) + 1
    ws.cell(row=1, column=profit_col, value="Profit (PLN)").font = Font(bold=True)

    for row_idx, row in enumerate(view.rows, start=2):
        for col, (key, _) in enumerate(EXPORT_COLUMNS, start=1):
            ws.cell(row=row_idx, column=col, value=row.get(key))
        ws.cell(row=row_idx, column=profit_col, value=round(snapshot.to_fiat(row.get("profit")), 2))

    summary_ws = wb.create_sheet("summary")
    summary_ws.append(["BTC/PLN rate", snapshot.value])
    for key, value in view.summary(snapshot.value).to_dict().items():
        summary_ws.append([key, value])

    for sheet in (ws, summary_ws):
        for col_idx in range(1, sheet.max_column + 1):
            max_len = max(
                (len(str(sheet.cell(row=r, column=col_idx).value or "")) for r in range(1, sheet.max_row + 1)),
                default=0,
            )
            sheet.column_dimensions[get_column_letter(col_idx)].width = max(9, min(24, max_len + 2))

    try:
        wb.save(filename)
        CONSOLE.print(f"[green]✔ Excel exported: {filename}[/]")
    except OSError as exc:
        CONSOLE.print(f"[red]Failed to write Excel: {exc}[/]")


# --- Entry points ---------------------------------------------------------

async def run_once(args: argparse.Namespace, monitor: RateMonitor) -> None:
    view = OffersView()
    await asyncio.to_thread(load_rows, view, args.group_by)
    if DRY_RUN:
        for provider in monitor.aggregator.providers:
            CONSOLE.print(f"[DRY] GET {provider.url}")
        snapshot = monitor.snapshot
    else:
        snapshot = await monitor.refresh()
    CONSOLE.print(render(view, snapshot))
    if args.export:
        export_excel(args.export, view, snapshot)


async def watch(args: argparse.Namespace, monitor: RateMonitor, interval: float) -> None:
    """Mount: start the rate timer; teardown: cancel it, whatever ends the loop."""
    view = OffersView()
    with Live(render(view, monitor.snapshot), console=CONSOLE, refresh_per_second=2) as live:

        async def _redraw(snapshot: RateSnapshot) -> None:
            live.update(render(view, snapshot))

        monitor.on_update = _redraw
        await monitor.start()
        try:
            while True:
                await asyncio.to_thread(load_rows, view, args.group_by)
                live.update(render(view, monitor.snapshot))
                await asyncio.sleep(interval)
        finally:
            await monitor.stop()


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(message)s", handlers=[RichHandler(console=CONSOLE)])
    global DRY_RUN
    DRY_RUN = bool(args.dry_run)
    if args.base_url:
        update_base_url(args.base_url)

    settings = get_settings()
    monitor = RateMonitor(RateAggregator.from_config(settings), interval_seconds=settings.rate_refresh_seconds)
    try:
        if args.watch and not DRY_RUN:
            asyncio.run(watch(args, monitor, args.interval or settings.rate_refresh_seconds))
        else:
            asyncio.run(run_once(args, monitor))
    except InvalidParameterError as exc:
        CONSOLE.print(f"[red]{exc}[/]")
    except KeyboardInterrupt:
        CONSOLE.print("[dim]Stopped[/]")


if __name__ == "__main__":
    main()
