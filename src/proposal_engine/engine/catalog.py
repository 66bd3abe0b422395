"""
Service Catalog - default parameters for each service kind.

Loaded from data/service_defaults.csv so rates can be updated without a code
change. Used when a new service is added to a proposal.
"""
from typing import Optional

import pandas as pd

from ..config.settings import get_settings, Settings
from .normalize import to_number

# Headshot packages override the photographer rate and retouching fee
HEADSHOT_TIERS = {
    'basic': {'proHourly': 400, 'hourlyRate': 600, 'retouchingCost': 40},
    'premium': {'proHourly': 500, 'hourlyRate': 750, 'retouchingCost': 50},
    'executive': {'proHourly': 600, 'hourlyRate': 900, 'retouchingCost': 60},
}

# Mindfulness formats fix the class length (and with it the price)
MINDFULNESS_TYPES = {
    'intro': {'classLength': 45, 'appTime': 45, 'totalHours': 0.75},
    'drop-in': {'classLength': 30, 'appTime': 30, 'totalHours': 0.5},
    'mindful-movement': {'classLength': 60, 'appTime': 60, 'totalHours': 1},
}


class ServiceCatalog:
    """Per-kind service defaults backed by a CSV table."""

    def __init__(self, settings: Optional[Settings] = None):
        """Load the defaults table."""
        self.settings = settings or get_settings()

        catalog_path = self.settings.service_catalog
        if not catalog_path.exists():
            raise FileNotFoundError(f"service_defaults.csv not found at {catalog_path}.")

        self.defaults = pd.read_csv(catalog_path, dtype={'serviceType': str})
        self.defaults['serviceType'] = self.defaults['serviceType'].str.strip().str.lower()
        self.defaults = self.defaults.drop_duplicates('serviceType').set_index('serviceType')

    def reload_data(self):
        """Reload the defaults table from disk."""
        self.__init__(self.settings)

    @property
    def service_types(self) -> list[str]:
        return list(self.defaults.index)

    def is_known(self, service_type: str) -> bool:
        return str(service_type or '').strip().lower() in self.defaults.index

    def defaults_for(self, service_type: str) -> dict:
        """
        Default field values for a service kind.

        Returns an empty dict for kinds the catalog does not list.
        """
        key = str(service_type or '').strip().lower()
        if key not in self.defaults.index:
            return {}

        row = self.defaults.loc[key]
        values = {}
        for column, value in row.items():
            if pd.isna(value):
                continue
            if column == 'participants':
                values[column] = str(value).strip()
            else:
                values[column] = to_number(value.item() if hasattr(value, 'item') else value)
        return values

    def apply_defaults(self, service: dict) -> dict:
        """Fill in any field the caller left out with the kind's default."""
        merged = self.defaults_for(service.get('serviceType'))
        merged.update({k: v for k, v in service.items() if v is not None})
        return merged


_catalog: Optional[ServiceCatalog] = None


def get_catalog() -> ServiceCatalog:
    """Get the shared catalog instance."""
    global _catalog
    if _catalog is None:
        _catalog = ServiceCatalog()
    return _catalog
