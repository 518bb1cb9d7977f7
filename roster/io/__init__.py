"""I/O utilities for CSV import."""

from .import_csv import import_blocks_csv, import_extras_csv, import_mass_times_csv, import_ministers_csv

__all__ = [
    "import_ministers_csv",
    "import_mass_times_csv",
    "import_extras_csv",
    "import_blocks_csv",
]
