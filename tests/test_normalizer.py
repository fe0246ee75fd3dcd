from analytics.normalizer import NormalizedTrade, normalize_rows, normalize_trade, to_number


def test_pnl_wins_over_total_pnl():
    t = normalize_trade({"pnl": "12.5", "totalPnl": "99", "cTime": "1000"})
    assert t.pnl == 12.5


def test_missing_pnl_defaults_to_zero():
    t = normalize_trade({"uTime": "2000"})
    assert t.pnl == 0.0


def test_blank_pnl_falls_through_to_next_key():
    t = normalize_trade({"pnl": "", "totalPnl": "-3", "cTime": "1000"})
    assert t.pnl == -3.0


def test_raw_keys_consulted_after_row():
    t = normalize_trade({"ts": 5000, "raw": {"fillPnl": "4.2", "fillPx": "101.5", "fillSz": "-2"}})
    assert t.pnl == 4.2
    assert t.entry_price == 101.5
    assert t.size == 2.0


def test_timestamps_from_positions_history_row():
    t = normalize_trade({"cTime": "1000", "uTime": "3000", "openAvgPx": "10", "closeAvgPx": "12"})
    assert (t.open_ts, t.close_ts, t.ts) == (1000, 3000, 3000)
    assert t.entry_price == 10.0
    assert t.exit_price == 12.0
    assert t.price == 12.0


def test_single_timestamp_fills_both_ends():
    t = normalize_trade({"fillTime": "7000", "fillPnl": "1"})
    assert t.open_ts == 7000
    assert t.close_ts == 7000


def test_close_before_open_is_reordered():
    t = normalize_trade({"openTs": 5000, "closeTs": 4000})
    assert t.open_ts == 4000
    assert t.close_ts == 5000


def test_row_without_timestamp_is_dropped():
    assert normalize_trade({"pnl": "5"}) is None
    assert normalize_trade("not a row") is None


def test_inst_id_and_meta():
    meta = {"instIds": ["ETH-USDT-SWAP"], "signalChanName": "Trend", "credIdx": 2}
    t = normalize_trade({"uTime": "1", "direction": "Long"}, meta, algo_id="A1")
    assert t.inst_id == "ETH-USDT-SWAP"
    assert t.algo_id == "A1"
    assert t.bot_name == "Trend"
    assert t.side == "long"
    assert t.source_cred_idx == 2


def test_normalize_rows_drops_unplaceable():
    rows = [{"uTime": "1"}, {"pnl": "3"}, None, {"cTime": "2"}]
    trades = normalize_rows(rows, source="positions-history")
    assert len(trades) == 2
    assert all(t.source == "positions-history" for t in trades)


def test_to_number_rejects_junk():
    assert to_number("abc") is None
    assert to_number("nan") is None
    assert to_number(True) is None
    assert to_number(" 3.5 ") == 3.5


def test_dict_round_trip_keeps_fields():
    t = NormalizedTrade("A", "BTC-USDT-SWAP", "long", 1, 2, 3.0, 10.0, 11.0, 1.0, 0, "bot", "contract", "positions-history")
    assert NormalizedTrade.from_dict(t.to_dict()) == t
