"""Inscription parsing for Bitcoin transaction witnesses."""

from .ordinals import Inscription, parse_inscriptions, parse_inscriptions_within_witness

__all__ = [
    "Inscription",
    "parse_inscriptions",
    "parse_inscriptions_within_witness",
]
