"""Adapter layer package for external data sources."""

from .exchange_rates import EcbExchangeRateRepository, StaticExchangeRateRepository

__all__ = ["EcbExchangeRateRepository", "StaticExchangeRateRepository"]
