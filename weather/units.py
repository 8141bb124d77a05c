"""Linear unit conversions between the metric and imperial display systems."""

from __future__ import annotations

KMH_TO_MPH = 0.621371
MPH_TO_KMH = 1.60934
HPA_TO_INHG = 0.02953
INHG_TO_HPA = 33.8639
MS_TO_KMH = 3.6
MPH_TO_MS = 0.44704


def c_to_f(celsius: float) -> float:
    """Convert Celsius to Fahrenheit."""
    return celsius * 9.0 / 5.0 + 32.0


def f_to_c(fahrenheit: float) -> float:
    """Convert Fahrenheit to Celsius."""
    return (fahrenheit - 32.0) * 5.0 / 9.0


def kmh_to_mph(kmh: float) -> float:
    return kmh * KMH_TO_MPH


def mph_to_kmh(mph: float) -> float:
    return mph * MPH_TO_KMH


def kmh_to_ms(kmh: float) -> float:
    return kmh / MS_TO_KMH


def ms_to_kmh(ms: float) -> float:
    return ms * MS_TO_KMH


def mph_to_ms(mph: float) -> float:
    return mph * MPH_TO_MS


def hpa_to_inhg(hpa: float) -> float:
    return hpa * HPA_TO_INHG


def inhg_to_hpa(inhg: float) -> float:
    return inhg * INHG_TO_HPA
