"""
Calculation engine.

Turns a KPI definition into a number by issuing aggregate queries through
the injected executor. Percentage, ratio and formula divisions by zero
yield 0.0 instead of raising.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, Optional

from kpi_engine.core.config import get_settings
from kpi_engine.core.exceptions import CalculationError, ValidationError
from kpi_engine.interfaces.aggregate_query_executor import IAggregateQueryExecutor
from kpi_engine.models.enums import AggregateFunction, CalculationType, FilterOperator, Period
from kpi_engine.models.kpi import Calculation, KpiDefinition
from kpi_engine.models.query import AggregateQuery, FilterSpec
from kpi_engine.services.data_sources import DataSource, get_data_source
from kpi_engine.services.formula import evaluate_formula, formula_variables
from kpi_engine.utils.datetime_utils import ensure_utc, now_utc, period_window

_SIMPLE_FUNCTIONS = {
    CalculationType.SUM: AggregateFunction.SUM,
    CalculationType.AVERAGE: AggregateFunction.AVERAGE,
    CalculationType.COUNT: AggregateFunction.COUNT,
}
_TWO_FIELD_TYPES = (CalculationType.PERCENTAGE, CalculationType.RATIO)


# ===========================================
# Validation
# ===========================================


def _check_aggregate_field(source: DataSource, function: AggregateFunction, field: str) -> None:
    if function == AggregateFunction.COUNT:
        if not source.allows_aggregate(field):
            raise ValidationError(f"Field '{field}' is not available on data source '{source.name}'")
    elif field not in source.numeric_fields:
        raise ValidationError(f"Field '{field}' is not a numeric field of data source '{source.name}'")


def _check_filters(source: DataSource, filters: list[FilterSpec]) -> None:
    for spec in filters:
        if not source.allows_filter(spec.field):
            raise ValidationError(f"Filter field '{spec.field}' is not allowed on data source '{source.name}'")
        if spec.operator != FilterOperator.IN and isinstance(spec.value, list):
            raise ValidationError(f"Filter '{spec.field}' with operator '{spec.operator.value}' needs a single value")


def validate_calculation(calculation: Calculation) -> None:
    """
    Check a calculation spec against the calculation rules and the
    data-source allowlist.

    Raises:
        ValidationError: On the first violated rule.
    """
    source = get_data_source(calculation.data_source)
    if source is None:
        raise ValidationError(f"Unknown data source: {calculation.data_source}")

    calc_type = calculation.type
    if calc_type in _SIMPLE_FUNCTIONS:
        if not calculation.fields:
            raise ValidationError(f"{calc_type.value} calculation requires at least one field")
        _check_aggregate_field(source, _SIMPLE_FUNCTIONS[calc_type], calculation.fields[0])
    elif calc_type in _TWO_FIELD_TYPES:
        if len(calculation.fields) != 2:
            raise ValidationError(
                f"{calc_type.value} calculation requires exactly two fields",
                details={"fields": calculation.fields},
            )
        for field in calculation.fields:
            _check_aggregate_field(source, AggregateFunction.SUM, field)
    elif calc_type == CalculationType.FORMULA:
        if not calculation.formula:
            raise ValidationError("formula calculation requires a formula")
        if not calculation.variables:
            raise ValidationError("formula calculation requires at least one variable")
        try:
            names = formula_variables(calculation.formula)
        except CalculationError as exc:
            raise ValidationError(exc.message, details=exc.details) from exc
        undeclared = names - set(calculation.variables)
        if undeclared:
            raise ValidationError(f"Formula references undeclared variables: {sorted(undeclared)}")
        for name, variable in calculation.variables.items():
            if not name.isidentifier():
                raise ValidationError(f"Invalid variable name: {name!r}")
            _check_aggregate_field(source, variable.aggregate, variable.field)
            _check_filters(source, variable.filters)

    _check_filters(source, calculation.filters)

    time_range = calculation.time_range
    if not source.allows_time(time_range.field):
        raise ValidationError(f"Time field '{time_range.field}' is not allowed on data source '{source.name}'")
    if time_range.period == Period.CUSTOM:
        if time_range.start is None or time_range.end is None:
            raise ValidationError("custom period requires start and end")
        if ensure_utc(time_range.start) >= ensure_utc(time_range.end):
            raise ValidationError("custom period requires start < end")


# ===========================================
# Engine
# ===========================================


class CalculationEngine:
    """Evaluates KPI definitions into values."""

    def __init__(
        self,
        executor: IAggregateQueryExecutor,
        query_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._executor = executor
        self._query_timeout = query_timeout or get_settings().QUERY_TIMEOUT_SECONDS
        self._clock = clock

    async def compute(self, definition: KpiDefinition) -> float:
        """
        Compute the current value of a KPI.

        Raises:
            CalculationError: On executor failure, timeout, or a formula that
                cannot be evaluated.
        """
        calc = definition.calculation
        kpi_id = str(definition.id)
        try:
            start, end = period_window(
                calc.time_range.period, self._clock(), calc.time_range.start, calc.time_range.end
            )
        except ValueError as exc:
            raise CalculationError(str(exc), kpi_id=kpi_id) from exc

        if calc.type in _SIMPLE_FUNCTIONS:
            if not calc.fields:
                raise CalculationError(f"{calc.type.value} calculation has no field", kpi_id=kpi_id)
            return await self._aggregate(
                calc, _SIMPLE_FUNCTIONS[calc.type], calc.fields[0], start, end, kpi_id
            )

        if calc.type in _TWO_FIELD_TYPES:
            if len(calc.fields) != 2:
                raise CalculationError(f"{calc.type.value} calculation needs two fields", kpi_id=kpi_id)
            numerator = await self._aggregate(calc, AggregateFunction.SUM, calc.fields[0], start, end, kpi_id)
            denominator = await self._aggregate(calc, AggregateFunction.SUM, calc.fields[1], start, end, kpi_id)
            if denominator == 0:
                return 0.0
            ratio = numerator / denominator
            return ratio * 100 if calc.type == CalculationType.PERCENTAGE else ratio

        if calc.type == CalculationType.FORMULA:
            if not calc.formula:
                raise CalculationError("formula calculation has no formula", kpi_id=kpi_id)
            values: dict[str, float] = {}
            for name, variable in calc.variables.items():
                values[name] = await self._aggregate(
                    calc, variable.aggregate, variable.field, start, end, kpi_id, variable.filters
                )
            try:
                return evaluate_formula(calc.formula, values)
            except CalculationError as exc:
                raise CalculationError(exc.message, kpi_id=kpi_id, details=exc.details) from exc

        raise CalculationError(f"Unsupported calculation type: {calc.type}", kpi_id=kpi_id)

    async def _aggregate(
        self,
        calc: Calculation,
        function: AggregateFunction,
        field: str,
        start: datetime,
        end: datetime,
        kpi_id: str,
        extra_filters: Optional[list[FilterSpec]] = None,
    ) -> float:
        query = AggregateQuery(
            data_source=calc.data_source,
            function=function,
            field=field,
            time_field=calc.time_range.field,
            start=start,
            end=end,
            filters=list(calc.filters) + list(extra_filters or []),
            kpi_id=kpi_id,
        )
        try:
            result = await asyncio.wait_for(
                self._executor.run_aggregate(query), timeout=self._query_timeout
            )
        except asyncio.TimeoutError as exc:
            raise CalculationError(
                f"Aggregate query timed out after {self._query_timeout}s", kpi_id=kpi_id
            ) from exc
        except CalculationError:
            raise
        except Exception as exc:
            raise CalculationError(
                f"Aggregate query failed: {exc}", kpi_id=kpi_id, details=type(exc).__name__
            ) from exc
        return float(result) if result is not None else 0.0
