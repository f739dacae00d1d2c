from .market_hours import DEFAULT_TIMEZONE, MarketCalendar

__all__ = ["DEFAULT_TIMEZONE", "MarketCalendar"]
