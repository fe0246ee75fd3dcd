import math

from analytics.metrics import (
    PROFIT_FACTOR_INFINITE,
    compute_stats,
    drawdown_series,
    max_drawdown,
    profit_factor,
    resolve_baseline,
    stats_by_range,
    streaks,
    win_rate,
)
from analytics.normalizer import NormalizedTrade
from analytics.ranges import DAY_MS, RangeWindow

NOW = 1_000 * DAY_MS


def _trade(pnl, close_ts, algo_id="A"):
    return NormalizedTrade(algo_id, "BTC-USDT-SWAP", "long", close_ts, close_ts, pnl, 0.0, 0.0, 0.0)


def test_streaks_example():
    st = streaks([10, 5, -3, 2, 2])
    assert st.win_current == 2
    assert st.win_max == 2
    assert st.lose_current == 0
    assert st.lose_max == 1


def test_zero_pnl_resets_both_streaks():
    st = streaks([1, 1, 0, -1, 0])
    assert (st.win_current, st.lose_current) == (0, 0)
    assert (st.win_max, st.lose_max) == (2, 1)


def test_win_rate_excludes_zero_pnl():
    assert win_rate([0, 0, 0]) == (0.0, 0, 0)
    assert win_rate([5, 0, -5, 0]) == (0.5, 1, 1)


def test_profit_factor_sentinel():
    assert profit_factor([10, 5]) == PROFIT_FACTOR_INFINITE
    assert math.isinf(profit_factor([10, 5]))
    assert profit_factor([]) == 0.0
    assert profit_factor([0, 0]) == 0.0
    assert profit_factor([30, -10]) == 3.0


def test_drawdown_first_point_zero_and_never_positive():
    series = drawdown_series([-50, 200, -10, -300, 40], 1000)
    assert series[0] == 0.0
    assert all(d <= 0 for d in series)
    assert max_drawdown([], 1000) == 0.0


def test_end_to_end_scenario():
    trades = [
        _trade(100, NOW - 3 * DAY_MS),
        _trade(-40, NOW - 2 * DAY_MS),
        _trade(20, NOW - 1 * DAY_MS),
    ]
    st = compute_stats(trades, RangeWindow.D30, 1000, NOW)
    assert st.total_trades == 3
    assert st.total_pnl == 80
    assert abs(st.win_rate - 2 / 3) < 1e-9
    assert abs(st.max_drawdown_ratio - (-40 / 1100)) < 1e-9
    assert round(st.max_drawdown_ratio, 4) == -0.0364
    assert st.profit_factor == 3.0
    assert st.insufficient_data is False


def test_sort_is_by_close_ts_and_stable():
    # input out of order: the loss must land between the two wins
    trades = [_trade(20, NOW - DAY_MS), _trade(100, NOW - 3 * DAY_MS), _trade(-40, NOW - 2 * DAY_MS)]
    st = compute_stats(trades, RangeWindow.ALL, 1000, NOW)
    assert abs(st.max_drawdown_ratio - (-40 / 1100)) < 1e-9
    assert (st.win_streak_current, st.lose_streak_max) == (1, 1)


def test_window_filter_applies():
    trades = [_trade(100, NOW - 40 * DAY_MS), _trade(-10, NOW - DAY_MS)]
    assert compute_stats(trades, RangeWindow.D30, 1000, NOW).total_trades == 1
    assert compute_stats(trades, RangeWindow.D90, 1000, NOW).total_trades == 2


def test_all_zero_trades_flag_insufficient_data():
    st = compute_stats([_trade(0, NOW), _trade(0, NOW)], RangeWindow.ALL, 1000, NOW)
    assert st.total_trades == 2
    assert st.rated_trades == 0
    assert st.win_rate == 0.0
    assert st.insufficient_data is True


def test_stats_by_range_covers_every_window():
    per_range = stats_by_range([_trade(5, NOW - 100 * DAY_MS)], 1000, NOW)
    assert set(per_range) == set(RangeWindow)
    assert per_range[RangeWindow.D30].total_trades == 0
    assert per_range[RangeWindow.D180].total_trades == 1


def test_resolve_baseline():
    assert resolve_baseline(2500, 1000) == 2500
    assert resolve_baseline(0, 1000) == 1000
    assert resolve_baseline(None, 1000) == 1000
    assert resolve_baseline("junk", 1000) == 1000
