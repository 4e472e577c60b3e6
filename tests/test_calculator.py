from rebalance_engine import RebalanceCalculator, TransactionAction, diff


def _summary(transactions):
    return [(t.asset, t.action, t.rebalance_percent) for t in transactions]


def test_identical_allocations_produce_no_transactions():
    allocation = {"stocks": 60, "bonds": 30, "gold": 10}
    assert diff(allocation, dict(allocation), "user-1") == []


def test_increase_is_buy_and_decrease_is_sell():
    transactions = diff(
        {"stocks": 70, "bonds": 20, "gold": 10},
        {"stocks": 60, "bonds": 30, "gold": 10},
        "user-1"
    )
    assert _summary(transactions) == [
        ("bonds", TransactionAction.SELL, 10),
        ("stocks", TransactionAction.BUY, 10),
    ]


def test_asset_missing_from_current_is_bought_in_full():
    transactions = diff({"stocks": 50, "crypto": 50}, {"stocks": 100}, "user-1")
    assert _summary(transactions) == [
        ("crypto", TransactionAction.BUY, 50),
        ("stocks", TransactionAction.SELL, 50),
    ]


def test_asset_missing_from_target_is_sold_in_full():
    transactions = diff({"stocks": 100}, {"stocks": 80, "gold": 20}, "user-1")
    assert _summary(transactions) == [
        ("gold", TransactionAction.SELL, 20),
        ("stocks", TransactionAction.BUY, 20),
    ]


def test_transactions_carry_user_and_positive_percent():
    transactions = diff({"a": 25, "b": 75}, {"a": 75, "b": 25}, "user-42")
    assert all(t.user_id == "user-42" for t in transactions)
    assert all(t.rebalance_percent > 0 for t in transactions)


def test_output_is_sorted_by_asset():
    transactions = diff({"z": 10, "a": 40, "m": 50}, {"m": 20, "z": 50, "a": 30}, "user-1")
    assert [t.asset for t in transactions] == ["a", "m", "z"]


def test_empty_target_sells_everything():
    transactions = RebalanceCalculator().calculate_transactions({}, {"stocks": 60, "bonds": 40}, "user-1")
    assert _summary(transactions) == [
        ("bonds", TransactionAction.SELL, 40),
        ("stocks", TransactionAction.SELL, 60),
    ]


def test_zero_weight_on_one_side_only_is_no_change():
    assert diff({"stocks": 100, "cash": 0}, {"stocks": 100}, "user-1") == []


def test_reduced_weight_sells_the_difference():
    assert _summary(diff({"stocks": 40}, {"stocks": 50}, "user-1")) == [("stocks", TransactionAction.SELL, 10)]


def test_asset_only_in_current_is_sold():
    assert _summary(diff({}, {"gold": 10}, "user-1")) == [("gold", TransactionAction.SELL, 10)]


def test_asset_only_in_target_is_bought():
    assert _summary(diff({"gold": 10}, {}, "user-1")) == [("gold", TransactionAction.BUY, 10)]


def test_two_asset_swap():
    transactions = diff({"stocks": 60, "bonds": 40}, {"stocks": 50, "bonds": 50}, "user-1")
    assert _summary(transactions) == [
        ("bonds", TransactionAction.SELL, 10),
        ("stocks", TransactionAction.BUY, 10),
    ]
