import pytest

from marketmamba.broker import Broker, MockBroker, PositionNotFoundError


@pytest.fixture
def broker():
    return MockBroker(10000.0)


def test_initial_balance_and_equity(broker):
    assert broker.get_balance() == 10000.0
    assert broker.get_equity() == 10000.0
    assert broker.get_open_positions() == []


def test_mock_broker_satisfies_protocol(broker):
    assert isinstance(broker, Broker)
    generic: Broker = broker
    pos = generic.open_market_order("EURUSD", "BUY", 1.0, 1.0, 1.2)
    found = generic.get_position_by_id(pos.id)
    assert found.symbol == "EURUSD"
    assert found.quantity == 1.0
    assert generic.get_balance() == 10000.0


def test_open_buy_entry_is_midpoint(broker):
    pos = broker.open_market_order("EURUSD", "BUY", 0.5, 1.05, 1.15)
    assert pos.id == "mock_pos_1"
    assert pos.broker_id == pos.id
    assert pos.symbol == "EURUSD"
    assert pos.stop_loss < pos.entry_price < pos.take_profit
    assert pos.entry_price - pos.stop_loss == pytest.approx(pos.take_profit - pos.entry_price)
    assert pos.profit == 0


def test_open_sell_entry_is_midpoint(broker):
    pos = broker.open_market_order("EURUSD", "SELL", 1.0, 1.2, 1.0)
    assert pos.take_profit < pos.entry_price < pos.stop_loss
    assert pos.stop_loss - pos.entry_price == pytest.approx(pos.entry_price - pos.take_profit)


def test_sequential_ids_and_listing(broker):
    first = broker.open_market_order("EURUSD", "BUY", 1.0, 1.0, 1.2)
    second = broker.open_market_order("GBPUSD", "SELL", 1.0, 1.4, 1.2)
    assert second.id == "mock_pos_2"
    ids = {p.id for p in broker.get_open_positions()}
    assert ids == {first.id, second.id}


@pytest.mark.parametrize(
    "quantity, sl, tp",
    [(0, 1.0, 1.2), (-1, 1.0, 1.2), (1, 0, 1.2), (1, 1.0, 0), (1, -1.0, 1.2)],
)
def test_open_rejects_invalid_inputs(broker, quantity, sl, tp):
    with pytest.raises(ValueError):
        broker.open_market_order("EURUSD", "BUY", quantity, sl, tp)
    assert broker.get_open_positions() == []


def test_close_position(broker):
    pos = broker.open_market_order("EURUSD", "BUY", 1.0, 1.0, 1.2)
    broker.close_position(pos.id)
    assert broker.get_open_positions() == []
    with pytest.raises(PositionNotFoundError):
        broker.close_position(pos.id)


def test_close_all_positions(broker):
    broker.open_market_order("EURUSD", "BUY", 1.0, 1.0, 1.2)
    broker.open_market_order("GBPUSD", "BUY", 1.0, 1.0, 1.2)
    broker.close_all_positions()
    assert broker.get_open_positions() == []


def test_modify_stop_loss_and_take_profit(broker):
    pos = broker.open_market_order("EURUSD", "BUY", 1.0, 1.0, 1.2)
    broker.modify_stop_loss(pos.id, 1.05)
    broker.modify_take_profit(pos.id, 1.3)
    found = broker.get_position_by_id(pos.id)
    assert found.stop_loss == 1.05
    assert found.take_profit == 1.3


def test_modify_rejects_non_positive(broker):
    pos = broker.open_market_order("EURUSD", "BUY", 1.0, 1.0, 1.2)
    with pytest.raises(ValueError):
        broker.modify_stop_loss(pos.id, 0)
    with pytest.raises(ValueError):
        broker.modify_take_profit(pos.id, -1)
    assert broker.get_position_by_id(pos.id).stop_loss == 1.0


def test_modify_unknown_position(broker):
    with pytest.raises(PositionNotFoundError) as info:
        broker.modify_stop_loss("nope", 1.0)
    assert info.value.position_id == "nope"
    with pytest.raises(PositionNotFoundError):
        broker.modify_take_profit("nope", 1.0)


def test_get_position_by_id_missing(broker):
    with pytest.raises(PositionNotFoundError, match="position not found: ghost"):
        broker.get_position_by_id("ghost")


def test_simulate_price_buy_profit(broker):
    pos = broker.open_market_order("EURUSD", "BUY", 2.0, 1.0, 1.2)
    broker.simulate_price(pos.id, pos.entry_price + 0.05)
    found = broker.get_position_by_id(pos.id)
    assert found.current_price == pytest.approx(pos.entry_price + 0.05)
    assert found.profit > 0
    assert found.profit_pct == pytest.approx(found.profit / (found.entry_price * found.quantity) * 100)


def test_simulate_price_sell_loses_when_price_rises(broker):
    pos = broker.open_market_order("EURUSD", "SELL", 1.0, 1.2, 1.0)
    broker.simulate_price(pos.id, pos.entry_price + 0.05)
    found = broker.get_position_by_id(pos.id)
    assert found.profit < 0
    assert found.profit_pct < 0


def test_simulate_price_unknown(broker):
    with pytest.raises(PositionNotFoundError):
        broker.simulate_price("missing", 1.0)