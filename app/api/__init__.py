# app/api/__init__.py

from app.api import aggregates
from app.api import auth
from app.api import contracts
from app.api import display_data
from app.api import feature_flags
from app.api import meters
from app.api import projections
from app.api import readings

__all__ = [
    "aggregates",
    "auth",
    "contracts",
    "display_data",
    "feature_flags",
    "meters",
    "projections",
    "readings",
]
