"""
Unit tests for configuration: RiskSettings, AppSettings and the settings store.

Tests defaults, aliases, bounds and atomic partial updates.
"""

import pytest
from pydantic import ValidationError

from arbsim.config.settings import AppSettings, RiskSettings
from arbsim.config.store import InMemorySettingsStore
from arbsim.core.errors import ConfigurationError


class TestRiskSettings:
    """Tests for RiskSettings."""

    def test_defaults(self, risk_settings: RiskSettings) -> None:
        """Test documented default values."""
        assert risk_settings.minimum_spread_pct == 0.15
        assert risk_settings.max_exposure_per_trade_pct == 5.0
        assert risk_settings.max_daily_trades == 200
        assert risk_settings.max_drawdown_pct == 10.0
        assert risk_settings.slippage_limit_pct == 0.3
        assert risk_settings.stop_loss_pct == 1.0
        assert risk_settings.trading_fees_pct == 0.1
        assert risk_settings.account_balance == 10_000.0

    def test_derived_values(self, risk_settings: RiskSettings) -> None:
        assert risk_settings.max_exposure == pytest.approx(500.0)
        assert risk_settings.round_trip_fees_pct == pytest.approx(0.2)

    def test_camel_case_aliases(self) -> None:
        settings = RiskSettings.model_validate({"minimumSpreadPct": 0.4, "max_daily_trades": 5})

        assert settings.minimum_spread_pct == 0.4
        assert settings.max_daily_trades == 5
        assert settings.model_dump(by_alias=True)["maxDailyTrades"] == 5

    def test_frozen(self, risk_settings: RiskSettings) -> None:
        with pytest.raises(ValidationError):
            risk_settings.stop_loss_pct = 2.0  # type: ignore[misc]

    def test_rejects_unknown_fields(self) -> None:
        with pytest.raises(ValidationError):
            RiskSettings.model_validate({"leverage": 10})


class TestAppSettings:
    """Tests for AppSettings."""

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARBSIM_TRADING_SPEED", "fast")
        monkeypatch.setenv("ARBSIM_RANDOM_SEED", "42")

        settings = AppSettings()

        assert settings.trading_speed == "fast"
        assert settings.random_seed == 42

    def test_requires_two_venues(self) -> None:
        """Test a single distinct venue cannot produce a spread."""
        with pytest.raises(ValidationError):
            AppSettings(venues=["Binance", "Binance"])

    def test_blank_entries_dropped(self) -> None:
        settings = AppSettings(symbols=[" BTCUSDT ", ""], venues=["Binance", "OKX"])

        assert settings.symbols == ["BTCUSDT"]


class TestInMemorySettingsStore:
    """Tests for InMemorySettingsStore."""

    def test_partial_update(self, settings_store: InMemorySettingsStore) -> None:
        """Test a partial update keeps other fields."""
        updated = settings_store.set({"minimumSpreadPct": 0.25})

        assert updated.minimum_spread_pct == 0.25
        assert updated.stop_loss_pct == 1.0
        assert settings_store.get() is updated

    def test_unknown_key_rejected(self, settings_store: InMemorySettingsStore) -> None:
        """Test unknown keys raise and leave settings untouched."""
        before = settings_store.get()

        with pytest.raises(ConfigurationError) as exc_info:
            settings_store.set({"stopLossPct": 2.0, "leverage": 10})

        assert exc_info.value.context["fields"] == ["leverage"]
        assert settings_store.get() is before

    def test_out_of_bounds_rejected(self, settings_store: InMemorySettingsStore) -> None:
        """Test a bad value rejects the whole update."""
        before = settings_store.get()

        with pytest.raises(ConfigurationError) as exc_info:
            settings_store.set({"stop_loss_pct": 2.0, "max_daily_trades": 0})

        assert exc_info.value.context["fields"] == ["max_daily_trades"]
        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert settings_store.get() is before

    def test_wrong_type_rejected(self, settings_store: InMemorySettingsStore) -> None:
        with pytest.raises(ConfigurationError):
            settings_store.set({"accountBalance": "lots"})

    def test_reset(self) -> None:
        """Test reset restores the store's own defaults."""
        defaults = RiskSettings(account_balance=100.0)
        store = InMemorySettingsStore(defaults)
        store.set({"account_balance": 500.0})

        assert store.reset() is defaults
        assert store.get().account_balance == 100.0

    def test_error_serializes(self, settings_store: InMemorySettingsStore) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            settings_store.set({"nope": 1})

        data = exc_info.value.to_dict()

        assert data["error"] == "CONFIGURATION_ERROR"
        assert "nope" in data["message"]
