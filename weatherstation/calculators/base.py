"""
Calculator base class.

A calculator turns the current values of a source binding into one output
value. It never publishes by itself: the owning derived topic rounds and
publishes whatever calculate() returns.
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from weatherstation.models.topic import Value
from weatherstation.registry.source_binding import SourceBinding


def as_float(value: Any) -> Optional[float]:
    """Numeric view of a topic value, None if it isn't a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def round_to_precision(value: Value, precision: int) -> Value:
    """Round numbers to `precision` significant digits, pass strings through."""
    if isinstance(value, str) or precision is None or precision <= 0:
        return value
    return float(f"{float(value):.{precision}g}")


def format_value(value: Value) -> str:
    """Bus payload for a topic value ("1" rather than "1.0")."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, float):
        return repr(value)
    return str(value)


class Calculator(ABC):
    """
    Strategy for computing a derived topic value.

    Subclasses set `name` and `required_fields` and implement compute().
    compute() returns None when inputs are insufficient; the derived topic
    then keeps its previous value and publishes nothing.
    """

    name: str = ""
    required_fields: Tuple[str, ...] = ()

    def __init__(self, options: Optional[Dict[str, Any]] = None):
        self.options: Dict[str, Any] = dict(options or {})

    def update(self, options: Optional[Dict[str, Any]] = None) -> None:
        """Apply redeclared options."""
        self.options = dict(options or {})

    def calculate(self, binding: SourceBinding) -> Optional[Value]:
        return self.compute(binding)

    @abstractmethod
    def compute(self, binding: SourceBinding) -> Optional[Value]:
        """Compute the output from the binding's current values."""

    def numeric_fields(
        self,
        binding: SourceBinding,
        optional: Tuple[str, ...] = ()
    ) -> Optional[Dict[str, Optional[float]]]:
        """
        Numeric values of the required (and optional) fields.

        Returns:
            Field -> float mapping, or None if a required field has no
            numeric value yet. Missing optional fields map to None.
        """
        fields: Dict[str, Optional[float]] = {}
        for field_name in self.required_fields:
            number = as_float(binding.field_value(field_name))
            if number is None:
                return None
            fields[field_name] = number

        for field_name in optional:
            fields[field_name] = as_float(binding.field_value(field_name))
        return fields

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
