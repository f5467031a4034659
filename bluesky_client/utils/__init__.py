"""
Utility helpers shared by the API layer.
"""

from .circuit_breaker import CircuitBreaker, CircuitBreakerError, CircuitState
from .facets import detect_facets

__all__ = ["CircuitBreaker", "CircuitBreakerError", "CircuitState", "detect_facets"]
