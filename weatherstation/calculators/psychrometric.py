"""
Psychrometric calculators.

Formulas come from psychrolib (SI units). The calculators only gate on the
required fields and convert units:
  - relative humidity: percent (0 - 100) -> ratio (0 - 1)
  - pressure: station reading * 100 -> Pa
"""

from typing import Optional

import psychrolib

from weatherstation.calculators.base import Calculator
from weatherstation.registry.source_binding import SourceBinding

psychrolib.SetUnitSystem(psychrolib.SI)

PRESSURE_TO_PASCAL = 100
STANDARD_PRESSURE = 1013.25  # same unit as the declared pressure topics


class DewPoint(Calculator):
    """Dew point temperature (°C) from relative humidity and temperature."""

    name = "dewpoint"
    required_fields = ("humidity", "temperature")

    def compute(self, binding: SourceBinding) -> Optional[float]:
        fields = self.numeric_fields(binding)
        if fields is None:
            return None

        return psychrolib.GetTDewPointFromRelHum(
            fields["temperature"],
            fields["humidity"] / 100
        )


class WetBulb(Calculator):
    """Wet bulb temperature (°C); standard pressure unless a pressure field is bound."""

    name = "wetbulb"
    required_fields = ("humidity", "temperature")

    def compute(self, binding: SourceBinding) -> Optional[float]:
        fields = self.numeric_fields(binding, optional=("pressure",))
        if fields is None:
            return None

        pressure = fields["pressure"] if fields["pressure"] is not None else STANDARD_PRESSURE
        return psychrolib.GetTWetBulbFromRelHum(
            fields["temperature"],
            fields["humidity"] / 100,
            pressure * PRESSURE_TO_PASCAL
        )


class WetBulbHuman(Calculator):
    """
    Perceived wet bulb load: temperature + (max - wetbulb).

    `max` is the survivable wet bulb limit, 42 °C unless configured.
    """

    name = "wetbulbhuman"
    required_fields = ("temperature", "wetbulb")
    default_max = 42

    @property
    def max(self) -> float:
        try:
            return float(self.options.get("max", self.default_max))
        except (TypeError, ValueError):
            return float(self.default_max)

    def compute(self, binding: SourceBinding) -> Optional[float]:
        fields = self.numeric_fields(binding)
        if fields is None:
            return None

        return fields["temperature"] + (self.max - fields["wetbulb"])


class AbsoluteHumidity(Calculator):
    """Humidity ratio from relative humidity, scaled by 100."""

    name = "absolutehumidity"
    required_fields = ("humidity", "temperature", "pressure")

    def compute(self, binding: SourceBinding) -> Optional[float]:
        fields = self.numeric_fields(binding)
        if fields is None:
            return None

        return psychrolib.GetHumRatioFromRelHum(
            fields["temperature"],
            fields["humidity"] / 100,
            fields["pressure"] * PRESSURE_TO_PASCAL
        ) * 100


class MoistAirVolume(Calculator):
    """Specific volume of moist air (m³/kg) from temperature, humidity ratio and pressure."""

    name = "moistairvolume"
    required_fields = ("temperature", "humidity", "pressure")

    def compute(self, binding: SourceBinding) -> Optional[float]:
        fields = self.numeric_fields(binding)
        if fields is None:
            return None

        return psychrolib.GetMoistAirVolume(
            fields["temperature"],
            fields["humidity"],
            fields["pressure"] * PRESSURE_TO_PASCAL
        )


class MoistAirDensity(Calculator):
    """Humidity scaled to g/m³ (humidity * 1000)."""

    name = "moistairdensity"
    required_fields = ("humidity",)

    def compute(self, binding: SourceBinding) -> Optional[float]:
        fields = self.numeric_fields(binding)
        if fields is None:
            return None

        return fields["humidity"] * 1000
