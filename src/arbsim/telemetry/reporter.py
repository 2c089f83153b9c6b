"""
Console reporter for one trading session.

Renders a boxed status panel from the session's status snapshot and a
final summary when the run ends.
"""

import asyncio
import sys
from collections.abc import Callable, Mapping
from typing import Any, TextIO

from arbsim import __version__
from arbsim.config.constants import REPORT_INTERVAL
from arbsim.utils.time import format_duration_s


StatusSource = Callable[[], Mapping[str, Any]]


class SessionReporter:
    """
    Real-time console dashboard for a session.

    Displays lifecycle state, daily counters, trade outcomes, P&L and
    tick latency.
    """

    BOX_TL = "\u2554"  # ╔
    BOX_TR = "\u2557"  # ╗
    BOX_BL = "\u255a"  # ╚
    BOX_BR = "\u255d"  # ╝
    BOX_H = "\u2550"  # ═
    BOX_V = "\u2551"  # ║
    BOX_LT = "\u2560"  # ╠
    BOX_RT = "\u2563"  # ╣
    THIN_V = "\u2502"  # │

    def __init__(
        self,
        status: StatusSource,
        width: int = 72,
        output: TextIO | None = None,
        clear_screen: bool = True,
    ) -> None:
        """
        Initialize reporter.

        Args:
            status: Callable returning a session status snapshot.
            width: Panel width in characters.
            output: Output stream (default: stdout).
            clear_screen: Redraw in place instead of appending.
        """
        self._status = status
        self._width = width
        self._output = output or sys.stdout
        self._clear_screen = clear_screen
        self._running = False
        self._task: asyncio.Task[None] | None = None

    def _line(self, content: str) -> str:
        inner = self._width - 2
        return f"{self.BOX_V}{content.ljust(inner)[:inner]}{self.BOX_V}"

    def _divider(self) -> str:
        return f"{self.BOX_LT}{self.BOX_H * (self._width - 2)}{self.BOX_RT}"

    def render(self) -> str:
        """
        Render the panel.

        Returns:
            Formatted panel string.
        """
        status = self._status()
        stats = status["stats"]
        decisions = status["decisions"]
        metrics = status["metrics"]
        tick = metrics["latencies"].get("tick", {})

        state = "RUNNING" if status["is_running"] else "STOPPED"
        if status.get("halt_reason"):
            state = "HALTED"

        tick_ms = "---"
        if tick.get("count"):
            tick_ms = f"{tick['avg'] / 1000:.1f}/{tick['p95'] / 1000:.1f}ms"
        sep = f" {self.THIN_V} "

        lines = [
            f"{self.BOX_TL}{self.BOX_H * (self._width - 2)}{self.BOX_TR}",
            self._line(
                f"  ARBSIM v{__version__} | {status['name'].upper()} | {state} | "
                f"{status['trading_speed']} ({status['trading_interval_ms']}ms)"
            ),
            self._divider(),
            self._line(
                f"  Uptime: {format_duration_s(metrics['uptime_seconds'])}"
                f"{sep}Today: {status['daily_trade_count']}/{status['max_daily_trades']}"
                f"{sep}Policy: {status['policy']}"
            ),
            self._divider(),
            self._line(
                f"  Trades: {stats['total_trades']:<6}{sep}Won: {stats['successful_trades']:<6}"
                f"{sep}Failed: {stats['failed_trades']:<5}{sep}Stops: {stats['stop_loss_hits']}"
            ),
            self._line(
                f"  Win rate: {stats['win_rate']:5.1f}%{sep}PF: {stats['profit_factor']:.2f}"
                f"{sep}Sharpe: {stats['sharpe_ratio']:.2f}{sep}DD: {stats['max_drawdown']:.2f}%"
            ),
            self._line(
                f"  Decisions: {decisions['evaluated']:<4}{sep}Approved: {decisions['approved']:<4}"
                f"{sep}Rejected: {decisions['rejected']:<4}{sep}Tick: {tick_ms}"
            ),
            self._divider(),
            self._line(
                f"  P&L: {stats['net_profit']:+.4f} USDT{sep}Today: {status['daily_pnl']:+.4f}"
                f"{sep}Balance: {status['current_balance']:.2f}"
                f"{sep}{metrics['rates']['trades_per_min']:.1f}/min"
            ),
        ]

        if status.get("halt_reason"):
            lines.append(self._line(f"  {status['halt_reason']}"))
        if status.get("open_positions"):
            lines.append(self._line(f"  {status['open_positions']} partial fill(s) need attention"))

        lines.append(f"{self.BOX_BL}{self.BOX_H * (self._width - 2)}{self.BOX_BR}")
        return "\n".join(lines)

    def display(self) -> None:
        """Display the panel once."""
        if self._clear_screen:
            self._output.write("\033[2J\033[H")
        self._output.write(self.render())
        self._output.write("\n")
        self._output.flush()

    async def run(self, interval: float = REPORT_INTERVAL) -> None:
        self._running = True
        while self._running:
            self.display()
            await asyncio.sleep(interval)

    def start(self, interval: float = REPORT_INTERVAL) -> asyncio.Task[None]:
        """Start the reporter as a background task."""
        self._task = asyncio.create_task(self.run(interval))
        return self._task

    def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()

    def print_summary(self) -> None:
        """Print a final summary."""
        status = self._status()
        stats = status["stats"]
        decisions = status["decisions"]
        out = self._output

        out.write("\n" + "=" * 50 + "\n")
        out.write(f"  SESSION SUMMARY ({status['name']})\n")
        out.write("=" * 50 + "\n")
        out.write(f"  Uptime: {format_duration_s(status['metrics']['uptime_seconds'])}\n")
        if status.get("halt_reason"):
            out.write(f"  Halted: {status['halt_reason']}\n")
        out.write("\n  DECISIONS:\n")
        out.write(f"    Evaluated:     {decisions['evaluated']:,}\n")
        out.write(f"    Approval rate: {decisions['approval_rate']:.1f}%\n")
        out.write("\n  TRADES:\n")
        out.write(f"    Total:      {stats['total_trades']:,}\n")
        out.write(f"    Successful: {stats['successful_trades']:,}\n")
        out.write(f"    Failed:     {stats['failed_trades']:,} ({stats['partial_trades']} partial)\n")
        out.write(f"    Stop-loss:  {stats['stop_loss_hits']:,}\n")
        out.write(f"    Win rate:   {stats['win_rate']:.1f}%\n")
        out.write("\n  P&L:\n")
        out.write(f"    Net profit:   {stats['net_profit']:+.6f} USDT\n")
        out.write(f"    Fees:         {stats['total_fees']:.6f} USDT\n")
        out.write(f"    Max drawdown: {stats['max_drawdown']:.2f}%\n")
        out.write("=" * 50 + "\n")
        out.flush()
