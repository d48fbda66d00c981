"""
app/connectors package marker.
"""

from app.connectors.base import BaseConnector
from app.connectors.competitors_api import CompetitorsAPIConnector

__all__ = [
    "BaseConnector",
    "CompetitorsAPIConnector",
]
