"""
Entry point for the arbitrage simulator.

Usage:
    python -m arbsim run --mode demo --duration 60
    python -m arbsim serve
    arbsim run  # if installed via pip
"""

import argparse
import asyncio
import random
import sys


# Try to use uvloop for better performance
try:
    import uvloop

    UVLOOP_AVAILABLE = True
except ImportError:
    UVLOOP_AVAILABLE = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="arbsim", description="Cross-venue arbitrage simulator")
    commands = parser.add_subparsers(dest="command")

    run = commands.add_parser("run", help="Run one session headless with a console dashboard")
    run.add_argument("--mode", choices=["demo", "live", "paper", "enhanced"], default=None)
    run.add_argument("--speed", choices=["slow", "medium", "fast"], default=None)
    run.add_argument("--duration", type=float, default=60.0, help="Seconds to run (0 = until Ctrl+C)")
    run.add_argument("--no-dashboard", action="store_true", help="Log only, no console panel")

    commands.add_parser("serve", help="Serve the HTTP API with uvicorn")
    return parser


async def run_session(
    mode: str,
    speed: str,
    duration: float,
    dashboard: bool,
) -> int:
    """
    Run one session over a fresh simulated market.

    Returns:
        Exit code (0 for success).
    """
    from arbsim.config.settings import get_settings
    from arbsim.core.presets import build_session
    from arbsim.core.types import TradingSpeed
    from arbsim.simulation.market import SimulatedMarket
    from arbsim.telemetry.reporter import SessionReporter

    settings = get_settings()
    rng = random.Random(settings.random_seed)
    market = SimulatedMarket.from_settings(settings, rng)
    session = build_session(
        mode,
        market,
        venues=settings.venues,
        symbols=settings.symbols,
        rng=rng,
        speed=TradingSpeed(speed),
    )
    reporter = SessionReporter(session.get_status, clear_screen=dashboard)

    market.start()
    session.start()
    if dashboard:
        reporter.start()

    try:
        if duration > 0:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    finally:
        reporter.stop()
        await session.shutdown()
        market.stop()
        reporter.print_summary()

    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success).
    """
    from arbsim import __version__
    from arbsim.config.settings import get_settings
    from arbsim.telemetry.logger import setup_logging

    args = build_parser().parse_args(argv)
    command = args.command or "run"

    try:
        settings = get_settings()
    except Exception as e:
        print(f"Configuration error: {e}")
        print("\nCheck the ARBSIM_* environment variables or your .env file.")
        return 1

    if command == "serve":
        from arbsim.api.server import main as serve

        serve()
        return 0

    mode = getattr(args, "mode", None) or settings.default_mode
    speed = getattr(args, "speed", None) or settings.trading_speed
    duration = getattr(args, "duration", 60.0)
    dashboard = not getattr(args, "no_dashboard", False)
    use_uvloop = settings.use_uvloop and UVLOOP_AVAILABLE

    print(
        f"""
╔═══════════════════════════════════════════════════════════════╗
║     ARBITRAGE SIMULATOR v{__version__:<37}║
║                                                               ║
║     Cross-venue spread detection and simulated execution      ║
╚═══════════════════════════════════════════════════════════════╝
    """
    )
    print("Configuration:")
    print(f"  Mode:      {mode}")
    print(f"  Speed:     {speed}")
    print(f"  Symbols:   {', '.join(settings.symbols)}")
    print(f"  Venues:    {', '.join(settings.venues)}")
    print(f"  Duration:  {f'{duration:.0f}s' if duration > 0 else 'until Ctrl+C'}")
    print(f"  uvloop:    {'Enabled' if use_uvloop else 'Disabled'}")
    print()

    async_logger = setup_logging(settings.log_level if not dashboard else "WARNING", settings.log_file)
    try:
        coro = run_session(mode, speed, duration, dashboard)
        if use_uvloop:
            return uvloop.run(coro)
        return asyncio.run(coro)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0
    finally:
        async_logger.stop()


if __name__ == "__main__":
    sys.exit(main())
