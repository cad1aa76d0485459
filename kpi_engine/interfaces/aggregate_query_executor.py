"""
Aggregate query executor interface.

The engine reads business data only through this contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from kpi_engine.models.query import AggregateQuery


class IAggregateQueryExecutor(ABC):
    """Abstract interface for read-only aggregate queries."""

    @abstractmethod
    async def run_aggregate(self, query: AggregateQuery) -> float:
        """
        Run a sum/average/count over a time-bounded, filtered data source.

        Returns 0 (not an error) when the result set is empty.
        """
        pass
