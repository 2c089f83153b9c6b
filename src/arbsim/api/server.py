"""
FastAPI server exposing the trading sessions.

One session per mode runs over a shared simulated market. The API starts,
stops, tunes and inspects sessions; it never reaches into their state
except through the session controller.
"""

import logging
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import orjson
from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from arbsim import __version__
from arbsim.config.settings import AppSettings, get_settings
from arbsim.core.errors import ArbsimError, ConfigurationError, UnknownSessionError
from arbsim.core.event_bus import EventBus
from arbsim.core.presets import SessionMode, build_session
from arbsim.core.session import TradingSession
from arbsim.core.types import TradingSpeed
from arbsim.simulation.market import SimulatedMarket
from arbsim.strategy.rules import RuleValidator


logger = logging.getLogger(__name__)


class ORJSONResponse(JSONResponse):
    """JSON response rendered with orjson (datetimes and enums included)."""

    def render(self, content: Any) -> bytes:
        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS)


# =============================================================================
# Request Models
# =============================================================================


class SpeedRequest(BaseModel):
    speed: TradingSpeed


# =============================================================================
# Session Registry
# =============================================================================


class SessionRegistry:
    """Owns the shared market and one session per mode."""

    def __init__(
        self,
        settings: AppSettings,
        market: SimulatedMarket | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._settings = settings
        seed = settings.random_seed
        self.market = market or SimulatedMarket.from_settings(settings, random.Random(seed))
        self.event_bus = event_bus or EventBus()
        speed = TradingSpeed(settings.trading_speed)

        self.sessions: dict[SessionMode, TradingSession] = {
            mode: build_session(
                mode,
                self.market,
                venues=settings.venues,
                symbols=settings.symbols,
                rng=random.Random(None if seed is None else seed + index),
                speed=speed,
                event_bus=self.event_bus,
            )
            for index, mode in enumerate(SessionMode)
        }

    def get(self, mode: str) -> TradingSession:
        """
        Look up a session.

        Raises:
            UnknownSessionError: No such mode.
        """
        return self.sessions[SessionMode.parse(mode)]

    async def shutdown(self) -> None:
        for session in self.sessions.values():
            await session.shutdown()
        self.market.stop()


def _registry(request: Request) -> SessionRegistry:
    registry: SessionRegistry = request.app.state.registry
    return registry


# =============================================================================
# Handlers
# =============================================================================


async def health(request: Request) -> dict[str, Any]:
    registry = _registry(request)
    return {
        "status": "ok",
        "version": __version__,
        "market": registry.market.stats,
        "sessions": {mode.value: s.is_running for mode, s in registry.sessions.items()},
    }


async def list_sessions(request: Request) -> list[dict[str, Any]]:
    return [
        {
            "mode": mode.value,
            "is_running": session.is_running,
            "policy": session.policy.name,
            "trades": session.trade_count,
        }
        for mode, session in _registry(request).sessions.items()
    ]


async def get_status(mode: str, request: Request) -> dict[str, Any]:
    return _registry(request).get(mode).get_status()


async def start_session(mode: str, request: Request) -> dict[str, Any]:
    session = _registry(request).get(mode)
    started = session.start()
    return {"status": "started" if started else "already_running", "mode": mode}


async def stop_session(mode: str, request: Request) -> dict[str, Any]:
    session = _registry(request).get(mode)
    stopped = session.stop("api request")
    return {"status": "stopped" if stopped else "not_running", "mode": mode}


async def get_trades(
    mode: str, request: Request, limit: int = Query(20, ge=1, le=1000)
) -> list[dict[str, Any]]:
    return [t.to_dict() for t in _registry(request).get(mode).get_recent_trades(limit)]


async def get_opportunities(
    mode: str, request: Request, limit: int = Query(20, ge=1, le=1000)
) -> list[dict[str, Any]]:
    return [o.to_dict() for o in _registry(request).get(mode).get_opportunities(limit)]


async def get_risk_settings(mode: str, request: Request) -> dict[str, Any]:
    return _registry(request).get(mode).settings.model_dump(by_alias=True)


async def update_risk_settings(
    mode: str, request: Request, update: dict[str, Any] = Body(...)
) -> dict[str, Any]:
    """Merge a partial update; keys may be snake_case or camelCase."""
    settings = _registry(request).get(mode).update_risk_settings(update)
    return settings.model_dump(by_alias=True)


async def reset_risk_settings(mode: str, request: Request) -> dict[str, Any]:
    return _registry(request).get(mode).reset_risk_settings().model_dump(by_alias=True)


async def set_speed(mode: str, body: SpeedRequest, request: Request) -> dict[str, Any]:
    interval = _registry(request).get(mode).set_trading_speed(body.speed)
    return {"speed": body.speed.value, "trading_interval_ms": interval}


async def scan_now(mode: str, request: Request) -> list[dict[str, Any]]:
    return [o.to_dict() for o in _registry(request).get(mode).scan_now()]


async def acknowledge_trade(mode: str, trade_id: str, request: Request) -> dict[str, Any]:
    if not _registry(request).get(mode).acknowledge_partial(trade_id):
        raise HTTPException(status_code=404, detail=f"No partial trade awaiting follow-up: {trade_id}")
    return {"trade_id": trade_id, "acknowledged": True}


async def list_rules() -> dict[str, Any]:
    return {"rules": RuleValidator().catalog()}


async def handle_arbsim_error(request: Request, exc: ArbsimError) -> ORJSONResponse:
    if isinstance(exc, ConfigurationError):
        status_code = 422
    elif isinstance(exc, UnknownSessionError):
        status_code = 404
    else:
        status_code = 400
    logger.warning(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    return ORJSONResponse(exc.to_dict(), status_code=status_code)


# =============================================================================
# Application
# =============================================================================


def create_app(
    settings: AppSettings | None = None,
    market: SimulatedMarket | None = None,
) -> FastAPI:
    """
    Create the API application.

    Args:
        settings: Process settings (default: environment).
        market: Market data source to share (default: built from settings).

    Returns:
        FastAPI app whose lifespan starts the market and stops every session.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        registry = SessionRegistry(settings, market)
        app.state.registry = registry
        registry.market.start()
        logger.info(f"API ready with sessions: {', '.join(m.value for m in registry.sessions)}")
        yield
        await registry.shutdown()

    app = FastAPI(
        title="Arbitrage Simulator",
        version=__version__,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.add_exception_handler(ArbsimError, handle_arbsim_error)  # type: ignore[arg-type]

    app.get("/api/health")(health)
    app.get("/api/rules")(list_rules)
    app.get("/api/sessions")(list_sessions)
    app.get("/api/sessions/{mode}/status")(get_status)
    app.post("/api/sessions/{mode}/start")(start_session)
    app.post("/api/sessions/{mode}/stop")(stop_session)
    app.get("/api/sessions/{mode}/trades")(get_trades)
    app.post("/api/sessions/{mode}/trades/{trade_id}/acknowledge")(acknowledge_trade)
    app.get("/api/sessions/{mode}/opportunities")(get_opportunities)
    app.post("/api/sessions/{mode}/scan")(scan_now)
    app.get("/api/sessions/{mode}/settings")(get_risk_settings)
    app.post("/api/sessions/{mode}/settings")(update_risk_settings)
    app.post("/api/sessions/{mode}/settings/reset")(reset_risk_settings)
    app.post("/api/sessions/{mode}/speed")(set_speed)
    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    print(
        f"""
╔═══════════════════════════════════════════════════════════════╗
║              ARBITRAGE SIMULATOR - API                        ║
╚═══════════════════════════════════════════════════════════════╝

API: http://{settings.api_host}:{settings.api_port}/api/health
Press Ctrl+C to stop.
    """
    )
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
