"""
Average calculators.
"""

import logging
from typing import List, Optional

from weatherstation.calculators.base import Calculator, as_float
from weatherstation.models.topic import SOURCE_FIELDS
from weatherstation.registry.source_binding import SourceBinding

logger = logging.getLogger(__name__)


def _present_values(binding: SourceBinding) -> List[float]:
    numbers = [as_float(binding.values.get(topic)) for topic in binding.watched_topics]
    return [number for number in numbers if number is not None]


class Average(Calculator):
    """
    Mean of the source topics.

    For list and single sources every source needs a numeric value, otherwise
    no value is produced. Field-mapped sources average whatever is present.
    """

    name = "average"

    def compute(self, binding: SourceBinding) -> Optional[float]:
        if binding.kind == SOURCE_FIELDS:
            return AverageLenient.mean(binding)

        topics = binding.watched_topics
        if not topics:
            return None

        numbers = _present_values(binding)
        if len(numbers) != len(topics):
            logger.debug(f"Average missing {len(topics) - len(numbers)} source(s)")
            return None

        return sum(numbers) / len(numbers)


class AverageLenient(Calculator):
    """Mean of whichever source topics have a numeric value (at least one)."""

    name = "averagelenient"

    @staticmethod
    def mean(binding: SourceBinding) -> Optional[float]:
        numbers = _present_values(binding)
        if not numbers:
            return None
        return sum(numbers) / len(numbers)

    def compute(self, binding: SourceBinding) -> Optional[float]:
        return self.mean(binding)
