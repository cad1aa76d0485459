"""
SQLAlchemy implementation of the aggregate query executor.

Builds ``SELECT SUM|AVG|COUNT(col) FROM table WHERE time BETWEEN ... AND
<filters>`` from lightweight ``table()``/``column()`` constructs. Table and
column names come only from the data-source catalog; every value is a bound
parameter.
"""

from __future__ import annotations

from sqlalchemy import DateTime, Float, and_, column, func, select, table
from sqlalchemy.exc import SQLAlchemyError

from kpi_engine.core.config import get_settings
from kpi_engine.core.exceptions import InfrastructureError, ValidationError
from kpi_engine.core.logger import setup_logger
from kpi_engine.infrastructure.local.database import get_engine, get_session_factory
from kpi_engine.interfaces.aggregate_query_executor import IAggregateQueryExecutor
from kpi_engine.models.enums import AggregateFunction, FilterOperator
from kpi_engine.models.query import AggregateQuery, FilterSpec
from kpi_engine.services.data_sources import DataSource, get_data_source

logger = setup_logger(__name__)

_AGGREGATES = {
    AggregateFunction.SUM: func.sum,
    AggregateFunction.AVERAGE: func.avg,
    AggregateFunction.COUNT: func.count,
}


class SqlAlchemyAggregateQueryExecutor(IAggregateQueryExecutor):
    """Runs aggregate queries against the business database."""

    def __init__(self, session_factory=None):
        if session_factory is None:
            session_factory = get_session_factory(get_engine(get_settings().source_database_url))
        self._session_factory = session_factory

    def _resolve_source(self, query: AggregateQuery) -> DataSource:
        source = get_data_source(query.data_source)
        if source is None:
            raise ValidationError(f"Unknown data source: {query.data_source}")
        if not source.allows_aggregate(query.field):
            raise ValidationError(f"Field not allowed on {source.name}: {query.field}")
        if not source.allows_time(query.time_field):
            raise ValidationError(f"Time field not allowed on {source.name}: {query.time_field}")
        for spec in query.filters:
            if not source.allows_filter(spec.field):
                raise ValidationError(f"Filter field not allowed on {source.name}: {spec.field}")
        return source

    def _filter_clause(self, spec: FilterSpec):
        col = column(spec.field)
        op = spec.operator
        if op == FilterOperator.IN:
            values = spec.value if isinstance(spec.value, list) else [spec.value]
            return col.in_(values)
        if isinstance(spec.value, list):
            raise ValidationError(f"Operator {op.value} expects a single value for {spec.field}")
        if op == FilterOperator.EQ:
            return col == spec.value
        if op == FilterOperator.NE:
            return col != spec.value
        if op == FilterOperator.GT:
            return col > spec.value
        if op == FilterOperator.GTE:
            return col >= spec.value
        if op == FilterOperator.LT:
            return col < spec.value
        return col <= spec.value

    def build_statement(self, query: AggregateQuery):
        """Build the SELECT for a query after allowlist checks."""
        source = self._resolve_source(query)
        value_col = column(query.field, Float) if query.field in source.numeric_fields else column(query.field)
        time_col = column(query.time_field, DateTime)

        conditions = [time_col.between(query.start, query.end)]
        conditions.extend(self._filter_clause(spec) for spec in query.filters)
        return (
            select(_AGGREGATES[query.function](value_col))
            .select_from(table(source.table))
            .where(and_(*conditions))
        )

    async def run_aggregate(self, query: AggregateQuery) -> float:
        """Run one aggregate; NULL (empty result set) becomes 0."""
        stmt = self.build_statement(query)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                scalar = result.scalar()
        except SQLAlchemyError as exc:
            raise InfrastructureError(
                f"Aggregate query on {query.data_source} failed", details=str(exc)
            ) from exc
        logger.debug(
            f"Aggregate {query.function.value}({query.field}) on {query.data_source} "
            f"for KPI {query.kpi_id}: {scalar}"
        )
        return float(scalar) if scalar is not None else 0.0
