"""
Fixtures package for the BZRED testing framework.

This package provides the SQLite-backed Bugzilla and Redmine stores, the
settings used to drive a migration and a small Bugzilla dataset.
"""

# Export store fixtures
from tests.fixtures.stores import (
    app_config,
    bugzilla_config,
    bugzilla_store,
    create_database,
    enumeration_config,
    migration_config,
    redmine_config,
    redmine_store,
    rows,
    seed,
)

# Export dataset fixtures
from tests.fixtures.datasets import BUGZILLA_DATA, bugzilla_dataset, load_dataset
