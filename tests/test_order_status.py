import order_status


def test_progression_index():
    assert [order_status.status_index(s) for s in order_status.PROGRESSION] == [0, 1, 2, 3]
    assert order_status.status_index("cancelled") == -1


def test_completed_statuses():
    assert order_status.is_status_completed("shipped", "confirmed")
    assert order_status.is_status_completed("shipped", "shipped")
    assert not order_status.is_status_completed("placed", "confirmed")


def test_next_status():
    assert order_status.next_status("placed") == "confirmed"
    assert order_status.next_status("shipped") == "delivered"
    assert order_status.next_status("delivered") is None
    assert order_status.next_status("cancelled") is None


def test_only_early_orders_can_be_cancelled():
    assert order_status.can_cancel("placed")
    assert order_status.can_cancel("confirmed")
    assert not order_status.can_cancel("shipped")
    assert not order_status.can_cancel("cancelled")


def test_labels():
    assert order_status.label("shipped") == "Out for Delivery"
    assert order_status.label("payment_pending") == "Payment Pending"


def test_progress_steps_mark_current():
    steps = order_status.progress_steps("confirmed")
    assert [s["done"] for s in steps] == [True, True, False, False]
    assert [s["key"] for s in steps if s["current"]] == ["confirmed"]
    assert not any(s["done"] for s in order_status.progress_steps("cancelled"))


def test_toast_messages():
    assert order_status.toast_message("shipped") == "🚚 Your order has been shipped and is on the way!"
    assert order_status.toast_message("returned") == "📢 Order status updated to returned"
