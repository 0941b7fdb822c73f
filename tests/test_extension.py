import pytest

from launchcore.extension import Extension, ExtensionRegistry, ExtensionWatcher, Signal


class Dummy(Extension):
    def __init__(self, ident, name=None):
        self._id = ident
        self._name = name or ident

    def id(self):
        return self._id

    def name(self):
        return self._name

    def description(self):
        return f"{self._name} description"


class Special(Dummy):
    pass


class Recorder(ExtensionWatcher):
    def __init__(self, registry=None, kinds=None):
        self.events = []
        super().__init__(registry, kinds)

    def on_add(self, extension):
        self.events.append(("add", extension.id()))

    def on_remove(self, extension):
        self.events.append(("remove", extension.id()))


def test_signal_calls_in_connection_order():
    calls = []
    signal = Signal()
    signal.connect(lambda v: calls.append(("a", v)))
    signal.connect(lambda v: calls.append(("b", v)))
    signal.emit(7)
    assert calls == [("a", 7), ("b", 7)]


def test_signal_disconnect():
    calls = []
    signal = Signal()

    def dropped(value):
        calls.append(("dropped", value))

    def kept(value):
        calls.append(("kept", value))

    signal.connect(dropped)
    signal.connect(kept)
    signal.disconnect(dropped)
    signal.emit(1)
    assert calls == [("kept", 1)]
    with pytest.raises(ValueError):
        signal.disconnect(dropped)


def test_signal_disconnect_unknown_raises():
    with pytest.raises(ValueError):
        Signal().disconnect(print)


def test_extension_is_abstract():
    with pytest.raises(TypeError):
        Extension()


def test_registry_add_emits_and_orders_by_id():
    registry = ExtensionRegistry()
    seen = []
    registry.added.connect(seen.append)
    b, a = Dummy("b"), Dummy("a")
    registry.add(b)
    registry.add(a)
    assert seen == [b, a]
    assert list(registry.extensions()) == ["a", "b"]


def test_registry_rejects_duplicate_id():
    registry = ExtensionRegistry()
    registry.add(Dummy("x"))
    with pytest.raises(ValueError):
        registry.add(Dummy("x"))


def test_registry_remove():
    registry = ExtensionRegistry()
    seen = []
    registry.removed.connect(seen.append)
    ext = Dummy("x")
    registry.add(ext)
    registry.remove(ext)
    assert seen == [ext]
    assert registry.extensions() == {}
    with pytest.raises(KeyError):
        registry.remove(ext)


def test_registry_filters_by_kind():
    registry = ExtensionRegistry()
    plain, special = Dummy("p"), Special("s")
    registry.add(plain)
    registry.add(special)
    assert registry.extensions(Special) == {"s": special}
    assert registry.extensions(Dummy) == {"p": plain, "s": special}


def test_registry_lookup_by_id_and_kind():
    registry = ExtensionRegistry()
    plain, special = Dummy("p"), Special("s")
    registry.add(plain)
    registry.add(special)
    assert registry.extension("s", Special) is special
    assert registry.extension("p", Special) is None
    assert registry.extension("p") is plain
    assert registry.extension("missing") is None


def test_watcher_only_sees_its_kinds():
    registry = ExtensionRegistry()
    watcher = Recorder(registry, kinds=(Special,))
    plain, special = Dummy("p"), Special("s")
    registry.add(plain)
    registry.add(special)
    registry.remove(special)
    assert watcher.events == [("add", "s"), ("remove", "s")]


def test_watcher_switches_registry():
    first, second = ExtensionRegistry(), ExtensionRegistry()
    watcher = Recorder(first)
    watcher.set_registry(second)
    first.add(Dummy("old"))
    second.add(Dummy("new"))
    assert watcher.events == [("add", "new")]


def test_watcher_close_stops_tracking():
    registry = ExtensionRegistry()
    watcher = Recorder(registry)
    watcher.close()
    registry.add(Dummy("x"))
    assert watcher.events == []


def test_watcher_without_registry_can_attach_later():
    registry = ExtensionRegistry()
    watcher = Recorder()
    registry.add(Dummy("before"))
    watcher.set_registry(registry)
    registry.add(Dummy("after"))
    assert watcher.events == [("add", "after")]