# backend/fincatch/__init__.py
"""
FinCatch valuation and performance engine.

Values stock, gold and bond holdings in a display currency and builds
normalized performance series for charting.

Usage:
    from fincatch.models import parse_entries
    from fincatch.services import PerformanceService

    service = PerformanceService()
    performance = await service.calculate_portfolio_performance(
        parse_entries(rows), "USD"
    )
"""

__version__ = "0.1.0"
