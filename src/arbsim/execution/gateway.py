"""
Paper execution gateway.

Fills single-leg orders against the simulated market's current quotes
with latency, a price-tolerance check and a stochastic fill rate. Each
call is independent, so buy and sell legs may run concurrently.
"""

import asyncio
import logging
import random
import uuid

from arbsim.config.constants import EXECUTION_LATENCY_MS, PAPER_FILL_RATE
from arbsim.core.errors import ExecutionError
from arbsim.core.types import MarketDataSource, OrderResult, OrderSide, RandomSource


logger = logging.getLogger(__name__)


class PaperGateway:
    """
    Simulated order gateway backed by a market data source.

    Buys fill at the venue ask and sells at the venue bid, provided the
    price has not moved beyond the tolerance from the limit price. Fills
    carry no fee; the executor charges the fee rate of the tick's
    risk settings.
    """

    def __init__(
        self,
        market: MarketDataSource,
        rng: RandomSource | None = None,
        fill_rate: float = PAPER_FILL_RATE,
        latency_ms: tuple[float, float] = EXECUTION_LATENCY_MS,
        price_tolerance_pct: float = 0.3,
    ) -> None:
        """
        Initialize paper gateway.

        Args:
            market: Quote source used for fill prices.
            rng: Random source for latency and fill rolls.
            fill_rate: Probability a leg fills.
            latency_ms: Min/max simulated round-trip latency.
            price_tolerance_pct: Max adverse move from the limit price.
        """
        self._market = market
        self._rng = rng or random.Random()
        self._fill_rate = fill_rate
        self._latency_ms = latency_ms
        self._tolerance = price_tolerance_pct / 100
        self._orders = 0

    async def place_order(
        self,
        venue: str,
        symbol: str,
        side: OrderSide,
        quantity: float,
        limit_price: float,
    ) -> OrderResult:
        """
        Place one order leg.

        Returns:
            OrderResult; fill misses and price moves are reported in it.

        Raises:
            ExecutionError: No fresh quote to fill against.
        """
        self._orders += 1
        await asyncio.sleep(self._rng.uniform(*self._latency_ms) / 1000)

        if quantity <= 0:
            return OrderResult(success=False, error="Quantity must be positive")

        quote = self._market.get_quote(symbol, venue)
        if quote is None:
            raise ExecutionError(
                f"No fresh quote for {symbol} on {venue}",
                {"venue": venue, "symbol": symbol, "side": side.value},
            )

        if side == OrderSide.BUY:
            price = quote.ask
            moved = price > limit_price * (1 + self._tolerance)
        else:
            price = quote.bid
            moved = price < limit_price * (1 - self._tolerance)

        if moved:
            return OrderResult(
                success=False,
                error=f"Price moved beyond tolerance: {price:.6g} vs limit {limit_price:.6g}",
            )

        if self._rng.random() >= self._fill_rate:
            return OrderResult(success=False, error="Order not filled")

        order_id = f"{venue.lower()}-{uuid.uuid4().hex[:12]}"
        logger.debug(f"Paper fill {side.value} {quantity:.6g} {symbol}@{venue} {price:.6g}")

        return OrderResult(
            success=True,
            order_id=order_id,
            executed_price=price,
            executed_quantity=quantity,
        )

    @property
    def orders_placed(self) -> int:
        return self._orders
