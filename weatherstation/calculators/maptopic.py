"""
Map topic calculator - re-types a single source topic.
"""

import re
from typing import Optional, Union

from weatherstation.calculators.base import Calculator, as_float
from weatherstation.models.topic import SOURCE_FIELDS, SOURCE_SINGLE
from weatherstation.registry.source_binding import SourceBinding

TRANSFORM_STRING_BOOLEAN = "string-boolean"
TRANSFORM_STRING_FLOAT = "string-float"

# leading decimal number, e.g. "12.5" of "12.5C"
_LEADING_FLOAT = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def leading_float(value) -> Optional[float]:
    """Number at the start of a value ("12.5C" -> 12.5), None if there is none."""
    number = as_float(value)
    if number is not None:
        return number

    match = _LEADING_FLOAT.match(str(value))
    return as_float(match.group(0)) if match else None


class MapTopic(Calculator):
    """
    Maps the value of one source topic.

    transform option:
      - "string-boolean": "true" -> 1, "false" -> 0, anything else -> nothing
      - "string-float":   leading number of the value, nothing if there is none
      - unset (contact sensors): "true" -> 1, anything else -> 0
    """

    name = "maptopic"

    @property
    def transform(self) -> Optional[str]:
        return self.options.get("transform")

    def source_value(self, binding: SourceBinding):
        if binding.kind == SOURCE_SINGLE:
            return binding.values.get(binding.spec)
        if binding.kind == SOURCE_FIELDS and binding.spec:
            first_field = next(iter(binding.spec))
            return binding.field_value(first_field)
        return None

    def compute(self, binding: SourceBinding) -> Optional[Union[int, float]]:
        value = self.source_value(binding)
        if value is None or value == "":
            return None

        text = str(value).strip()

        if self.transform == TRANSFORM_STRING_BOOLEAN:
            if text == "true":
                return 1
            if text == "false":
                return 0
            return None

        if self.transform == TRANSFORM_STRING_FLOAT:
            return leading_float(value)

        return 1 if text == "true" else 0
