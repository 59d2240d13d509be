"""
Bootstrap: first-run seeding of structural records.
"""

from ecclesia.bootstrap.seed import DEFAULT_SECTORS, SeedReport, seed_database

__all__ = ["DEFAULT_SECTORS", "SeedReport", "seed_database"]
