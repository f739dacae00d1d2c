from .aggregator import (
    DEFAULT_TIMEFRAME,
    TIMEFRAMES,
    build_candles,
    build_timeframe_candles,
    floor_to_bucket,
    timeframe_change_pct,
)
