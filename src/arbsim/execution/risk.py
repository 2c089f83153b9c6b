"""
Fast-path risk gate for trade execution.

Provides the three ordered pre-trade checks used by sessions that skip
the full rule battery: minimum net spread, per-trade exposure, and the
current drawdown.
"""

import logging

from arbsim.config.settings import RiskSettings
from arbsim.core.types import Opportunity


logger = logging.getLogger(__name__)


class RiskCheckResult:
    """Result of a risk check."""

    __slots__ = ("passed", "reason", "check")

    def __init__(
        self,
        passed: bool,
        reason: str = "",
        check: str = "",
    ) -> None:
        self.passed = passed
        self.reason = reason
        self.check = check

    def __bool__(self) -> bool:
        return self.passed

    def __repr__(self) -> str:
        return f"RiskCheckResult(passed={self.passed}, check={self.check!r}, reason={self.reason!r})"


class RiskGate:
    """
    Ordered pre-trade checks, short-circuiting on the first failure.

    1. net spread >= minimum spread
    2. notional <= account balance x max exposure per trade
    3. current max drawdown <= max drawdown
    """

    def __init__(self) -> None:
        """Initialize risk gate."""
        self._checks = 0
        self._rejections: dict[str, int] = {"spread": 0, "exposure": 0, "drawdown": 0}

    def check(
        self,
        opportunity: Opportunity,
        settings: RiskSettings,
        current_drawdown_pct: float,
    ) -> RiskCheckResult:
        """
        Perform pre-trade risk checks.

        Args:
            opportunity: Candidate opportunity (already sized).
            settings: Risk settings read for this tick.
            current_drawdown_pct: Max drawdown computed from the ledger.

        Returns:
            RiskCheckResult with pass/fail and reason.
        """
        self._checks += 1

        if opportunity.net_spread_pct < settings.minimum_spread_pct:
            return self._reject(
                "spread",
                f"Net spread {opportunity.net_spread_pct:.4f}% below minimum "
                f"{settings.minimum_spread_pct:.4f}%",
            )

        max_exposure = settings.max_exposure
        if opportunity.notional_size > max_exposure:
            return self._reject(
                "exposure",
                f"Notional {opportunity.notional_size:.2f} exceeds max exposure {max_exposure:.2f}",
            )

        if current_drawdown_pct > settings.max_drawdown_pct:
            return self._reject(
                "drawdown",
                f"Drawdown {current_drawdown_pct:.2f}% exceeds limit {settings.max_drawdown_pct:.2f}%",
            )

        return RiskCheckResult(True)

    def _reject(self, check: str, reason: str) -> RiskCheckResult:
        self._rejections[check] += 1
        logger.debug(f"Risk gate rejected ({check}): {reason}")
        return RiskCheckResult(False, reason, check)

    def to_dict(self) -> dict[str, object]:
        """Export gate statistics."""
        return {
            "checks": self._checks,
            "rejections": dict(self._rejections),
        }
