"""Configuration management for the payroll engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

from ph_payroll.calculators.types import ComponentCategory, ComponentMode, PayFrequency

DEFAULT_OVERTIME_MULTIPLIERS: dict[str, Decimal] = {
    "Regular OT": Decimal("1.25"),
    "Night Differential": Decimal("0.10"),
    "Rest Day OT": Decimal("1.30"),
    "Special Holiday OT": Decimal("1.30"),
    "Regular Holiday OT": Decimal("2.00"),
    "Rest Day + Special Holiday OT": Decimal("1.50"),
    "Rest Day + Regular Holiday OT": Decimal("2.60"),
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    engine_version: str
    host: str
    port: int
    debug: bool
    log_level: str

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./ph_payroll.db"),
            engine_version=os.getenv("ENGINE_VERSION", "1.0.0"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the CLI and the API server."""
    logging.basicConfig(
        level=(level or get_settings().log_level),
        format=LOG_FORMAT,
    )


def _normalize_key(name: str) -> str:
    return " ".join(str(name).split()).upper()


@dataclass(frozen=True)
class PayrollConfig:
    """
    Tenant payroll configuration passed explicitly into calculators and runners.

    Attributes:
        philhealth_rate: Total premium rate, split evenly EE/ER.
        philhealth_min_base / philhealth_max_base: Clamp for the premium base.
        pagibig_ee_rate / pagibig_er_rate: Housing-fund rates.
        pagibig_cap_base: Compensation cap for the housing fund.
        pagibig_monthly_floor: Minimum monthly EE contribution for daily-paid
            employees whose first half is split.
        working_days_per_year: Default factor for daily/monthly conversion.
        hours_per_day: Hours in a paid day.
        pay_frequency: Semi-monthly or monthly tenant.
        other_benefits_ceiling: Annual exemption for 13th month and other benefits.
        component_modes: Component name -> apportionment mode.
        employee_mode_overrides: "{employee_code}-{component}" -> mode.
        component_categories: Tenant name table for the classifier.
        overtime_multipliers: Overtime type -> multiplier of the hourly rate.
    """

    philhealth_rate: Decimal = Decimal("0.05")
    philhealth_min_base: Decimal = Decimal("10000")
    philhealth_max_base: Decimal = Decimal("100000")
    pagibig_ee_rate: Decimal = Decimal("0.02")
    pagibig_er_rate: Decimal = Decimal("0.02")
    pagibig_cap_base: Decimal = Decimal("10000")
    pagibig_monthly_floor: Decimal = Decimal("100")
    working_days_per_year: int = 261
    hours_per_day: int = 8
    pay_frequency: PayFrequency = PayFrequency.SEMI_MONTHLY
    other_benefits_ceiling: Decimal = Decimal("90000")
    component_modes: dict[str, ComponentMode] = field(default_factory=dict)
    employee_mode_overrides: dict[str, ComponentMode] = field(default_factory=dict)
    component_categories: dict[str, ComponentCategory] = field(default_factory=dict)
    overtime_multipliers: dict[str, Decimal] = field(
        default_factory=lambda: dict(DEFAULT_OVERTIME_MULTIPLIERS)
    )

    def __post_init__(self) -> None:
        """Validate configuration."""
        for name in ("philhealth_rate", "pagibig_ee_rate", "pagibig_er_rate"):
            rate = getattr(self, name)
            if rate < 0 or rate > 1:
                raise ValueError(f"{name} must be between 0 and 1")
        if self.philhealth_min_base > self.philhealth_max_base:
            raise ValueError("philhealth_min_base cannot exceed philhealth_max_base")
        if self.working_days_per_year < 1:
            raise ValueError("working_days_per_year must be at least 1")
        if self.hours_per_day < 1:
            raise ValueError("hours_per_day must be at least 1")
        if self.other_benefits_ceiling < 0:
            raise ValueError("other_benefits_ceiling cannot be negative")

    @property
    def cutoffs_per_year(self) -> int:
        return 24 if self.pay_frequency == PayFrequency.SEMI_MONTHLY else 12

    @property
    def cutoffs_per_month(self) -> int:
        return 2 if self.pay_frequency == PayFrequency.SEMI_MONTHLY else 1

    def mode_for(self, employee_code: str, component: str) -> ComponentMode:
        """Resolve apportionment mode: employee override, component mode, then split."""
        key = _normalize_key(component)
        prefix = f"{employee_code}-"
        for override_key, mode in self.employee_mode_overrides.items():
            if override_key.startswith(prefix) and _normalize_key(override_key[len(prefix):]) == key:
                return ComponentMode(mode)
        for name, mode in self.component_modes.items():
            if _normalize_key(name) == key:
                return ComponentMode(mode)
        return ComponentMode.SPLIT

    def category_table(self) -> dict[str, ComponentCategory]:
        return {_normalize_key(k): ComponentCategory(v) for k, v in self.component_categories.items()}
