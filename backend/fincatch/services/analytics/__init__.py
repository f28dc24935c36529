# backend/fincatch/services/analytics/__init__.py
"""
Portfolio analytics beyond point-in-time valuation.

Usage:
    from fincatch.services.analytics import BenchmarkAnalyzer, get_benchmark_option
"""

from fincatch.services.analytics.benchmark import (
    BENCHMARK_OPTIONS,
    BENCHMARK_SOURCE,
    BenchmarkAnalyzer,
    BenchmarkComparison,
    BenchmarkOption,
    get_benchmark_option,
)

__all__ = [
    "BENCHMARK_OPTIONS",
    "BENCHMARK_SOURCE",
    "BenchmarkAnalyzer",
    "BenchmarkComparison",
    "BenchmarkOption",
    "get_benchmark_option",
]
