"""
SAP Server — Carbon Estimation Utility
Linear placeholder model mapping prompt tokens to energy and CO2.
"""

import math
from dataclasses import dataclass
from typing import Optional

ENERGY_PER_TOKEN_KWH = 0.001
CO2_PER_KWH = 0.5  # kg CO2 per kWh

# Rough estimation: 1 token ≈ 4 characters
CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class ImpactEstimate:
    """Energy and CO2 contributed by a single prompt."""
    energy_kwh: float
    co2_kg: float


def estimate_impact(
    tokens: float,
    energy: Optional[float] = None,
    co2: Optional[float] = None,
) -> ImpactEstimate:
    """Get the impact of one prompt. Explicit values win over the estimate."""
    energy_kwh = energy if energy is not None else tokens * ENERGY_PER_TOKEN_KWH
    co2_kg = co2 if co2 is not None else energy_kwh * CO2_PER_KWH
    return ImpactEstimate(energy_kwh=energy_kwh, co2_kg=co2_kg)


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


def format_impact(energy_kwh: float, co2_kg: float) -> dict:
    """Format energy and CO2 totals for display."""
    return {
        "energy": f"{energy_kwh:.3f} kWh",
        "co2": f"{co2_kg:.3f} kg",
    }
