from decimal import Decimal
import threading

from pydantic import ValidationError
import pytest

from mulapos.core.config import Settings
from mulapos.core.errors import CartEmpty, InvalidPaymentMethod, NoActiveSession
from mulapos.services.display import read_display
from mulapos.services.terminal import PosTerminal


def test_card_payment_leaves_cash_balance(mouse_terminal):
    t = mouse_terminal
    t.start_session(500)
    t.cart.add_product(t.catalog.get("P001"))
    t.cart.add_product(t.catalog.get("P001"))
    # Editar el carrito no mueve la caja
    assert t.sessions.current_cash_balance() == Decimal("500.00")

    receipt = t.checkout.process_payment("card")
    assert receipt.total == Decimal("59.98")

    s = t.sessions.active()
    assert s.total_card == Decimal("59.98")
    assert s.total_cash == Decimal("0.00")
    assert t.sessions.current_cash_balance() == Decimal("500.00")


def test_cash_payment_updates_aggregates_ledger_and_cart(terminal):
    s0 = terminal.start_session(100)
    terminal.cart.add_product(terminal.catalog.get("P003"))
    terminal.cart.set_quantity("P003", 3)
    terminal.cart.add_product(terminal.catalog.get("P008"))
    total = terminal.cart.total()
    assert total == Decimal("102.96")

    receipt = terminal.checkout.process_payment("cash", customer="ACME")

    s1 = terminal.sessions.active()
    assert s1.total_transactions == s0.total_transactions + 1
    assert s1.total_sales == s0.total_sales + total
    assert s1.total_cash == total
    assert terminal.cart.is_empty()
    assert terminal.sessions.current_cash_balance() == Decimal("202.96")

    ledger = terminal.checkout.ledger()
    assert len(ledger) == 1
    sale = ledger[0]
    assert sale.id == receipt.sale.id and sale.id.startswith("SALE-")
    assert sale.amount == total
    assert sale.status == "completed"
    assert sale.customer == "ACME"
    assert sale.payment_method == "cash"
    assert sale.notes == f"POS Sale from session {s0.id}"
    assert [(l.id, l.quantity) for l in sale.items] == [("P003", 3), ("P008", 1)]


def test_default_customer_and_method_normalized(terminal):
    terminal.start_session(0)
    terminal.cart.add_product(terminal.catalog.get("P007"))
    receipt = terminal.checkout.process_payment("Card")
    assert receipt.method == "card"
    assert receipt.sale.customer == "Walk-in Customer"


def test_payment_publishes_empty_snapshot(terminal):
    terminal.start_session(0)
    h = terminal.publisher.current_hash()
    terminal.cart.add_product(terminal.catalog.get("P005"))
    display = terminal.open_display(h)
    assert display.view.item_count == 1

    seen = []
    terminal.channel.subscribe(lambda m: seen.append(m.type), h)
    terminal.checkout.process_payment("cash")

    assert "cleared" in seen
    assert display.view.state == "live"
    assert display.view.cart == [] and display.view.total == 0
    assert terminal.storage.get_json(f"session-{h}")["cart"] == []


def test_empty_cart_or_no_session_is_rejected(terminal):
    with pytest.raises(NoActiveSession):
        terminal.checkout.process_payment("cash")
    terminal.start_session(0)
    with pytest.raises(CartEmpty):
        terminal.checkout.process_payment("cash")
    assert terminal.checkout.ledger() == []


def test_unknown_method_is_rejected(terminal):
    terminal.start_session(0)
    terminal.cart.add_product(terminal.catalog.get("P001"))
    with pytest.raises(InvalidPaymentMethod):
        terminal.checkout.process_payment("bitcoin")
    assert terminal.sessions.active().total_transactions == 0
    assert not terminal.cart.is_empty()


def test_checkout_is_all_or_nothing(terminal, monkeypatch):
    terminal.start_session(0)
    terminal.cart.add_product(terminal.catalog.get("P002"))

    def boom():
        raise RuntimeError("display write failed")

    monkeypatch.setattr(terminal.publisher, "publish_cleared", boom)
    with pytest.raises(RuntimeError):
        terminal.checkout.process_payment("cash")

    s = terminal.sessions.active()
    assert s.total_sales == 0 and s.total_transactions == 0
    assert terminal.checkout.ledger() == []
    assert [i.id for i in terminal.cart.items()] == ["P002"]


def test_ledger_change_is_announced(terminal):
    terminal.start_session(0)
    terminal.cart.add_product(terminal.catalog.get("P001"))
    seen = []
    terminal.channel.subscribe(seen.append)
    receipt = terminal.checkout.process_payment("card")
    ledger_msgs = [m for m in seen if m.type == "ledger"]
    assert len(ledger_msgs) == 1 and ledger_msgs[0].payload["sale_id"] == receipt.sale.id
    assert any(m.type == "storage" and m.payload["key"] == "completed-sales" for m in seen)


def test_cart_publish_cannot_land_after_checkout(file_terminal, monkeypatch):
    t = file_terminal
    t.start_session(0)
    h = t.publisher.current_hash()
    t.cart.add_product(t.catalog.get("P003"))

    entered, release = threading.Event(), threading.Event()
    original = t.publisher.publish

    def slow_publish(items):
        entered.set()
        release.wait(5)
        return original(items)

    monkeypatch.setattr(t.publisher, "publish", slow_publish)
    adder = threading.Thread(target=t.cart.add_product, args=(t.catalog.get("P004"),))
    adder.start()
    assert entered.wait(5)

    receipts = []
    payer = threading.Thread(target=lambda: receipts.append(t.checkout.process_payment("cash")))
    payer.start()
    # El cobro espera a que el cambio de carrito termine de publicarse
    payer.join(0.2)
    assert payer.is_alive()

    release.set()
    adder.join(5)
    payer.join(5)

    assert receipts[0].total == Decimal("629.98")
    assert t.cart.is_empty()
    view = read_display(t.storage, h)
    assert view.state == "live" and view.cart == []


def test_publish_after_close_writes_nothing(terminal):
    s = terminal.start_session(0)
    h = terminal.publisher.current_hash()
    terminal.publisher.retract(s)
    # Un aviso de carrito rezagado no recrea el snapshot de una sesión cerrada
    assert terminal.publisher.publish([]) is None
    assert terminal.publisher.publish_cleared() is None
    assert terminal.storage.get_raw(f"session-{h}") is None


def test_configured_methods_are_the_only_source(settings):
    settings = settings.model_copy(update={"payment_methods": ["card"]})
    t = PosTerminal(settings)
    try:
        t.start_session(0)
        t.cart.add_product(t.catalog.get("P008"))
        with pytest.raises(InvalidPaymentMethod):
            t.checkout.process_payment("cash")
        with pytest.raises(InvalidPaymentMethod):
            t.sessions.record_sale_payment("1.00", "cash")
        assert t.checkout.process_payment("CARD").session.total_card == Decimal("12.99")
    finally:
        t.dispose()


def test_payment_methods_setting_is_normalized_and_closed():
    s = Settings(_env_file=None, payment_methods=["Cash", " CARD "])
    assert s.payment_methods == ["cash", "card"]
    with pytest.raises(ValidationError):
        Settings(_env_file=None, payment_methods=["cash", "card", "ewallet"])
