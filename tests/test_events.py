from proxy_socket.core.lib.events import EventEmitter


def test_handlers_run_in_registration_order():
    emitter = EventEmitter()
    calls = []
    emitter.on("data", lambda data: calls.append(("first", data)))
    emitter.on("data", lambda data: calls.append(("second", data)))

    assert emitter.emit("data", b"x") is True
    assert calls == [("first", b"x"), ("second", b"x")]


def test_once_and_off():
    emitter = EventEmitter()
    calls = []
    emitter.once("connect", lambda: calls.append("once"))
    handler = emitter.on("connect", lambda: calls.append("always"))

    emitter.emit("connect")
    emitter.off("connect", handler)
    emitter.emit("connect")

    assert calls == ["once", "always"]
    assert emitter.listener_count("connect") == 0


def test_unhandled_signals_are_not_fatal():
    emitter = EventEmitter()
    assert emitter.emit("close") is False
    assert emitter.emit("error", RuntimeError("nobody listens")) is False
