"""
Centralized settings and path configuration for the proposal engine.
"""
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    # Walk up from this file to find the project root
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def get_package_root() -> Path:
    """Directory of the proposal_engine package itself."""
    return Path(__file__).resolve().parent.parent


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path

    # Per-kind defaults used when a service is added to a proposal
    service_catalog: Path

    # Date key used for services without a scheduled date
    unscheduled_key: str = 'TBD'

    # Mindfulness classes are priced by length, not by hours
    mindfulness_prices: dict[int, float] = field(
        default_factory=lambda: {30: 1250, 45: 1375, 60: 1500}
    )
    default_class_length: int = 45

    # Facilitator payout as a share of the mindfulness fixed price
    mindfulness_pro_share: float = 0.3

    # (minimum occurrences, discount percent), highest tier first
    recurring_tiers: tuple = ((9, 20), (4, 15))

    # Hour multipliers used to build pricing options
    option_hour_multipliers: tuple = (1.0, 1.25, 1.5)

    # Staffing alternative limits
    max_hours_per_day: float = 8.0
    hour_increment: float = 0.5
    max_pros: int = 10
    max_staffing_alternatives: int = 5

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure."""
        root = project_root or get_project_root()

        return cls(
            project_root=root,
            service_catalog=get_package_root() / 'data' / 'service_defaults.csv',
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
