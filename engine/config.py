"""Engine configuration — loads config/engine.json, no I/O during a run."""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from engine.currency import ONE, ZERO, optional_decimal, optional_int, to_decimal
from engine.errors import ConfigurationError, ValidationError
from engine.periods import Horizon

logger = logging.getLogger(__name__)

_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


@lru_cache(maxsize=16)
def load_config(name: str) -> dict:
    """Load a JSON config file by name (without .json extension)."""
    path = _CONFIG_DIR / f"{name}.json"
    with open(path, "r") as f:
        return json.load(f)


def _dec(data: dict, key: str, default=None) -> Decimal:
    raw = data.get(key, default)
    if raw is None:
        raise ConfigurationError(f"Missing setting: {key}")
    try:
        return to_decimal(raw, key)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def _int(data: dict, key: str, default=None) -> int | None:
    """Whole-number setting; None stays None (optional settings)."""
    try:
        return optional_int(data.get(key, default), key)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def _check_unit(name: str, value: Decimal) -> None:
    if not ZERO <= value <= ONE:
        raise ConfigurationError(f"{name} must be within [0, 1], got {value}")


def _check_non_negative(name: str, value: Decimal) -> None:
    if value < ZERO:
        raise ConfigurationError(f"{name} must be >= 0, got {value}")


@dataclass(frozen=True)
class WorkingCapitalSettings:
    """Day-count drivers for the working-capital balances."""
    collection_days: Decimal = Decimal("30")
    payment_days: Decimal = Decimal("45")
    deferred_income_factor: Decimal = ZERO
    accrual_days: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: dict | None) -> "WorkingCapitalSettings":
        data = data or {}
        return cls(
            collection_days=_dec(data, "collection_days", 30),
            payment_days=_dec(data, "payment_days", 45),
            deferred_income_factor=_dec(data, "deferred_income_factor", 0),
            accrual_days=_dec(data, "accrual_days", 0),
        )

    def validate(self) -> None:
        _check_non_negative("collection_days", self.collection_days)
        _check_non_negative("payment_days", self.payment_days)
        _check_non_negative("accrual_days", self.accrual_days)
        _check_unit("deferred_income_factor", self.deferred_income_factor)


@dataclass(frozen=True)
class SolverSettings:
    """Circular solver limits. The cap is a contract, not a tuning knob."""
    max_iterations: int = 100
    tolerance: Decimal = Decimal("0.01")
    warm_start: bool = True

    @classmethod
    def from_dict(cls, data: dict | None) -> "SolverSettings":
        data = data or {}
        settings = cls(
            max_iterations=_int(data, "max_iterations", 100),
            tolerance=_dec(data, "tolerance", "0.01"),
            warm_start=bool(data.get("warm_start", True)),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.max_iterations is None or self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.tolerance <= ZERO:
            raise ConfigurationError(
                f"tolerance must be > 0, got {self.tolerance}")


@dataclass(frozen=True)
class GlobalAssumptions:
    """Economic assumptions shared by every sub-model in a scenario."""
    cpi_rate: Decimal = Decimal("0.03")
    discount_rate: Decimal = Decimal("0.08")
    tax_rate: Decimal = ZERO
    zakat_rate: Decimal = Decimal("0.025")
    debt_interest_rate: Decimal = Decimal("0.05")
    deposit_interest_rate: Decimal = Decimal("0.02")
    minimum_cash_balance: Decimal = Decimal("1000000")
    depreciation_rate: Decimal = Decimal("0.10")
    starting_cash: Decimal = Decimal("5000000")
    opening_fixed_assets: Decimal = ZERO
    opening_equity: Decimal | None = None
    metrics_start_year: int | None = None
    inflation_indices: dict[str, Decimal] = field(default_factory=dict)
    working_capital: WorkingCapitalSettings = field(
        default_factory=WorkingCapitalSettings)

    @classmethod
    def from_dict(cls, data: dict) -> "GlobalAssumptions":
        try:
            indices = {
                str(name): to_decimal(rate, f"inflation_indices.{name}")
                for name, rate in (data.get("inflation_indices") or {}).items()
            }
            opening_equity = optional_decimal(
                data.get("opening_equity"), "opening_equity")
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc
        return cls(
            cpi_rate=_dec(data, "cpi_rate", "0.03"),
            discount_rate=_dec(data, "discount_rate", "0.08"),
            tax_rate=_dec(data, "tax_rate", 0),
            zakat_rate=_dec(data, "zakat_rate", "0.025"),
            debt_interest_rate=_dec(data, "debt_interest_rate", "0.05"),
            deposit_interest_rate=_dec(data, "deposit_interest_rate", "0.02"),
            minimum_cash_balance=_dec(data, "minimum_cash_balance", 1000000),
            depreciation_rate=_dec(data, "depreciation_rate", "0.10"),
            starting_cash=_dec(data, "starting_cash", 5000000),
            opening_fixed_assets=_dec(data, "opening_fixed_assets", 0),
            opening_equity=opening_equity,
            metrics_start_year=_int(data, "metrics_start_year"),
            inflation_indices=indices,
            working_capital=WorkingCapitalSettings.from_dict(
                data.get("working_capital")),
        )

    def with_overrides(self, **changes) -> "GlobalAssumptions":
        """Copy with some fields replaced (numbers normalized to Decimal)."""
        normalized = {}
        for key, value in changes.items():
            if key == "metrics_start_year":
                value = _int(changes, key)
            elif isinstance(value, (int, float, str)):
                value = to_decimal(value, key)
            normalized[key] = value
        return dataclasses.replace(self, **normalized)

    @property
    def equity_at_open(self) -> Decimal:
        """Opening equity, derived from opening assets when not given."""
        if self.opening_equity is not None:
            return self.opening_equity
        return self.starting_cash + self.opening_fixed_assets

    def index_rate(self, name: str | None) -> Decimal | None:
        """Rate for a named inflation index; CPI when name is None."""
        if name is None:
            return self.cpi_rate
        return self.inflation_indices.get(name)

    def validate(self, horizon: Horizon) -> None:
        """Raise ConfigurationError for inconsistent settings."""
        _check_unit("discount_rate", self.discount_rate)
        _check_unit("tax_rate", self.tax_rate)
        _check_unit("zakat_rate", self.zakat_rate)
        _check_unit("depreciation_rate", self.depreciation_rate)
        _check_non_negative("debt_interest_rate", self.debt_interest_rate)
        _check_non_negative("deposit_interest_rate", self.deposit_interest_rate)
        _check_non_negative("minimum_cash_balance", self.minimum_cash_balance)
        _check_non_negative("starting_cash", self.starting_cash)
        _check_non_negative("opening_fixed_assets", self.opening_fixed_assets)
        if self.cpi_rate <= -ONE:
            raise ConfigurationError(f"cpi_rate must be > -1, got {self.cpi_rate}")
        if (self.metrics_start_year is not None
                and not horizon.contains(self.metrics_start_year)):
            raise ConfigurationError(
                f"metrics_start_year {self.metrics_start_year} outside "
                f"horizon {horizon.start_year}-{horizon.end_year}")
        self.working_capital.validate()


@dataclass(frozen=True)
class EngineConfig:
    """Consolidated engine configuration from config/engine.json."""
    horizon: Horizon = Horizon(2023, 2052)
    solver: SolverSettings = field(default_factory=SolverSettings)
    assumptions: GlobalAssumptions = field(default_factory=GlobalAssumptions)

    @classmethod
    def from_dict(cls, data: dict) -> "EngineConfig":
        hz = data.get("horizon", {})
        cfg = cls(
            horizon=Horizon.of(hz.get("start_year", 2023), hz.get("end_year", 2052)),
            solver=SolverSettings.from_dict(data.get("solver")),
            assumptions=GlobalAssumptions.from_dict(data.get("assumptions", {})),
        )
        cfg.assumptions.validate(cfg.horizon)
        return cfg

    @classmethod
    def load(cls, name: str = "engine") -> "EngineConfig":
        """Load and validate a config file from the config directory."""
        cfg = cls.from_dict(load_config(name))
        logger.debug("Loaded config %s: horizon %d-%d, solver cap %d",
                     name, cfg.horizon.start_year, cfg.horizon.end_year,
                     cfg.solver.max_iterations)
        return cfg

    def with_horizon(self, start_year: int, end_year: int) -> "EngineConfig":
        return dataclasses.replace(self, horizon=Horizon.of(start_year, end_year))

    def with_solver(self, **changes) -> "EngineConfig":
        solver = dataclasses.replace(self.solver, **changes)
        solver.validate()
        return dataclasses.replace(self, solver=solver)
