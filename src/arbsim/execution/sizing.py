"""
Position sizing policy.

A trade's quantity is the tightest of three limits: the configured base
size for the symbol, the per-trade exposure cap, and a fraction of the
thinner venue's volume.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from arbsim.config.constants import BASE_SIZES, DEFAULT_BASE_SIZE, VOLUME_FRACTION


@dataclass(slots=True, frozen=True)
class SizingDecision:
    """Chosen quantity and the limit that produced it."""

    quantity: float
    notional: float
    limited_by: str


class PositionSizer:
    """Sizes trades as min(base size, max exposure / price, volume x fraction)."""

    def __init__(
        self,
        base_sizes: Mapping[str, float] | None = None,
        volume_fraction: float = VOLUME_FRACTION,
        default_base_size: float = DEFAULT_BASE_SIZE,
    ) -> None:
        """
        Initialize sizer.

        Args:
            base_sizes: Base order size per symbol in base-asset units.
            volume_fraction: Share of available venue volume one trade may take.
            default_base_size: Base size for symbols missing from the catalog.
        """
        self._base_sizes = dict(BASE_SIZES if base_sizes is None else base_sizes)
        self._volume_fraction = volume_fraction
        self._default_base_size = default_base_size

    def base_size(self, symbol: str) -> float:
        return self._base_sizes.get(symbol, self._default_base_size)

    def size(
        self,
        symbol: str,
        price: float,
        max_exposure: float,
        available_volume: float,
    ) -> SizingDecision:
        """
        Decide the trade quantity.

        Args:
            symbol: Trading symbol.
            price: Buy price.
            max_exposure: Maximum notional allowed for the trade.
            available_volume: Notional volume of the thinner venue.

        Returns:
            SizingDecision; zero quantity when the price is not positive.
        """
        if price <= 0:
            return SizingDecision(0.0, 0.0, "price")

        limits = {
            "base_size": self.base_size(symbol),
            "exposure": max_exposure / price,
            "volume": available_volume / price * self._volume_fraction,
        }
        limited_by = min(limits, key=limits.__getitem__)
        quantity = max(limits[limited_by], 0.0)

        return SizingDecision(quantity, quantity * price, limited_by)
