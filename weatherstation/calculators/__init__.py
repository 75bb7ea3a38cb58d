"""
Calculator catalog.

Maps calculator names (as used in derived topic declarations) to classes.
"""

from typing import Any, Dict, List, Optional, Type

from weatherstation.calculators.average import Average, AverageLenient
from weatherstation.calculators.base import Calculator
from weatherstation.calculators.maptopic import MapTopic
from weatherstation.calculators.psychrometric import (
    AbsoluteHumidity,
    DewPoint,
    MoistAirDensity,
    MoistAirVolume,
    WetBulb,
    WetBulbHuman,
)


class UnknownCalculatorError(KeyError):
    """Raised when a declaration names a calculator that isn't in the catalog."""


CALCULATORS: Dict[str, Type[Calculator]] = {
    calculator.name: calculator
    for calculator in (
        Average,
        AverageLenient,
        DewPoint,
        WetBulb,
        WetBulbHuman,
        AbsoluteHumidity,
        MapTopic,
        MoistAirVolume,
        MoistAirDensity,
    )
}


def create_calculator(name: str, options: Optional[Dict[str, Any]] = None) -> Calculator:
    """
    Instantiate a calculator by catalog name.

    Raises:
        UnknownCalculatorError: If the name is not in the catalog
    """
    calculator_class = CALCULATORS.get(name)
    if calculator_class is None:
        raise UnknownCalculatorError(name)
    return calculator_class(options)


def available_calculators() -> List[str]:
    return sorted(CALCULATORS)
