from decimal import Decimal
import re

from mulapos.services.display import CustomerDisplay, live_sessions, read_display


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_snapshot_round_trip_renders_total(terminal):
    terminal.storage.set_json("session-AB12CD", {
        "hash": "AB12CD",
        "cart": [{"id": "P001", "name": "Mouse", "price": 29.99, "category": "Electronics", "quantity": 2}],
        "timestamp": 1700000000000,
    })
    view = read_display(terminal.storage, "AB12CD")
    assert view.state == "live"
    assert view.total == Decimal("59.98")
    assert len(view.cart) == 1 and view.cart[0].name == "Mouse"
    assert view.last_update == 1700000000000


def test_unknown_hash_is_not_an_empty_cart(terminal):
    view = read_display(terminal.storage, "NOPE")
    assert view.state == "not_found"
    assert view.message == "No active session for this hash"
    assert view.connected is False


def test_corrupted_snapshot_is_reported(terminal):
    terminal.storage.set_raw("session-BAD1", "{not json")
    view = read_display(terminal.storage, "BAD1")
    assert view.state == "corrupted"
    assert view.message == "Session data corrupted"

    # JSON válido pero de otro hash / con cantidades inválidas
    terminal.storage.set_json("session-BAD2", {"hash": "OTHER", "cart": [], "timestamp": 1})
    assert read_display(terminal.storage, "BAD2").state == "corrupted"
    terminal.storage.set_json("session-BAD3", {
        "hash": "BAD3", "cart": [{"id": "x", "name": "x", "price": 1, "category": "c", "quantity": 0}],
        "timestamp": 1,
    })
    assert read_display(terminal.storage, "BAD3").state == "corrupted"


def test_hash_is_128_bit_and_unique(terminal):
    seen = set()
    for _ in range(5):
        terminal.start_session(0)
        h = terminal.publisher.current_hash()
        assert re.fullmatch(r"[0-9A-F]{32}", h)
        seen.add(h)
        terminal.close_session(0)
    assert len(seen) == 5


def test_open_publishes_mapping_details_and_snapshot(terminal):
    s = terminal.start_session(0)
    h = terminal.publisher.current_hash()
    assert terminal.storage.get_json(f"session-hash-{s.id}") == h
    assert terminal.storage.get_json(f"session-details-{h}") == {"id": s.id, "name": s.name}
    assert terminal.storage.get_json(f"session-{h}")["cart"] == []

    terminal.close_session(0)
    assert terminal.storage.keys("session-") == []


def test_display_follows_cart_then_ends_on_close(mouse_terminal):
    t = mouse_terminal
    t.start_session(0)
    h = t.publisher.current_hash()
    display = t.open_display(h)
    assert display.view.state == "live" and display.view.cart == []

    t.cart.add_product(t.catalog.get("P004"))
    assert display.view.total == Decimal("599.99")
    assert display.view.item_count == 1

    t.close_session(0)
    assert display.view.state == "ended"
    assert display.view.message.startswith("Session ended")
    display.close()


def test_polling_catches_missed_notifications(mouse_terminal):
    t = mouse_terminal
    t.start_session(0)
    h = t.publisher.current_hash()
    clock = FakeClock()
    display = CustomerDisplay(t.storage, t.channel, h, poll_seconds=5.0, clock=clock)
    t.cart.add_product(t.catalog.get("P004"))
    assert display.view.item_count == 1

    # Se pierde la suscripción: el cierre no llega por el canal
    display.close()
    t.close_session(0)
    assert display.view.state == "live"

    clock.now += 4.0
    assert display.reconcile().state == "live"
    clock.now += 1.0
    assert display.reconcile().state == "ended"


def test_selection_mode_lists_live_sessions(terminal):
    display = terminal.open_display()
    assert display.view.state == "select" and display.view.sessions == []

    s = terminal.start_session(0)
    h = terminal.publisher.current_hash()
    # En modo selección escucha todo el canal
    assert [(x.hash, x.id, x.name) for x in display.view.sessions] == [(h, s.id, s.name)]
    assert [x.hash for x in live_sessions(terminal.storage)] == [h]

    view = display.select(h)
    assert view.state == "live" and display.hash == h

    terminal.close_session(0)
    assert display.view.state == "ended"
    assert display.select(None).sessions == []


def test_display_ignores_other_sessions_snapshots(terminal):
    terminal.start_session(0)
    h = terminal.publisher.current_hash()
    terminal.storage.set_json("session-FOREIGN", {"hash": "FOREIGN", "cart": [], "timestamp": 5})
    display = terminal.open_display(h)
    before = display.view.last_update
    terminal.storage.set_json("session-FOREIGN", {"hash": "FOREIGN", "cart": [], "timestamp": 6})
    assert display.view.last_update == before


def test_restore_reuses_published_hash(settings, tmp_path):
    from mulapos.services.terminal import PosTerminal

    settings = settings.model_copy(update={"database_url": f"sqlite:///{tmp_path / 'pos.db'}"})
    t1 = PosTerminal(settings)
    t1.start_session(0)
    h = t1.publisher.current_hash()
    t1.cart.add_product(t1.catalog.get("P004"))
    assert read_display(t1.storage, h).item_count == 1
    t1.dispose()

    t2 = PosTerminal(settings)
    try:
        assert t2.publisher.current_hash() == h
        assert t2.publisher.known(h)
        # El carrito en memoria no sobrevive al reinicio: el display tampoco lo muestra
        assert t2.cart.items() == []
        view = read_display(t2.storage, h)
        assert view.state == "live" and view.cart == []
        t2.close_session(0)
        assert t2.storage.keys("session-") == []
    finally:
        t2.dispose()


def test_zero_last_update_still_counts_as_seen(terminal):
    assert read_display(terminal.storage, "GONE", last_update=0).state == "ended"
    assert read_display(terminal.storage, "GONE").state == "not_found"
