import pytest

from launchcore.engine import HandlerKind, QueryEngine, TriggerError
from launchcore.extension import ExtensionRegistry
from launchcore.handlers import FallbackHandler, GlobalQueryHandler, TriggerQueryHandler
from launchcore.items import RankItem, StandardItem
from launchcore.query import GlobalQuery, TriggerQuery
from launchcore.settings import Settings
from launchcore.usage import UsageHistory


class Trig(TriggerQueryHandler):
    def __init__(self, ext_id, default=None, remap=True, fuzzy_support=False):
        self._id = ext_id
        self._default = default
        self._remap = remap
        self._fuzzy_support = fuzzy_support
        self._fuzzy = False

    def id(self):
        return self._id

    def name(self):
        return self._id

    def description(self):
        return "trigger handler"

    def default_trigger(self):
        return self._default if self._default is not None else super().default_trigger()

    def allow_trigger_remap(self):
        return self._remap

    def supports_fuzzy_matching(self):
        return self._fuzzy_support

    def fuzzy_matching(self):
        return self._fuzzy

    def set_fuzzy_matching(self, enabled):
        self._fuzzy = enabled

    def handle_trigger_query(self, query):
        query.add(StandardItem(self._id, self._id))


class Glob(GlobalQueryHandler):
    def __init__(self, ext_id, items):
        self._id = ext_id
        self._items = items

    def id(self):
        return self._id

    def name(self):
        return self._id

    def description(self):
        return "global handler"

    def handle_global_query(self, query):
        return [RankItem(item, 0.5) for item in self._items]


class Fall(FallbackHandler):
    def id(self):
        return "fb"

    def name(self):
        return "fb"

    def description(self):
        return "fallback handler"

    def fallbacks(self, query_string):
        return [StandardItem("web", query_string)]


@pytest.fixture
def setup():
    registry = ExtensionRegistry()
    settings = Settings()
    engine = QueryEngine(registry, settings)
    return registry, settings, engine


def run(query):
    query.run()
    assert query.wait(5)
    return query


def test_trigger_handler_gets_default_trigger_and_handles_query(setup):
    registry, _, engine = setup
    handler = Trig("files")
    registry.add(handler)
    assert handler.trigger == "files "
    assert engine.is_active(handler, HandlerKind.TRIGGER)
    q = engine.query("files abc")
    assert isinstance(q, TriggerQuery)
    assert q.string == "abc"
    assert q.trigger == "files "


def test_untriggered_query_is_global(setup):
    registry, _, engine = setup
    item = StandardItem("g1", "Global")
    handler = Glob("glob", [item])
    registry.add(handler)
    assert engine.is_active(handler, HandlerKind.GLOBAL)
    assert engine.is_active(handler, HandlerKind.TRIGGER)
    q = run(engine.query("hello"))
    assert isinstance(q, GlobalQuery)
    assert [m.item for m in q.matches()] == [item]


def test_empty_query_skips_global_handlers_unless_configured(setup):
    registry, settings, engine = setup
    item = StandardItem("g1", "Global")
    registry.add(Glob("glob", [item]))
    assert engine.run_empty_query is False
    assert run(engine.query("")).matches() == []
    engine.run_empty_query = True
    assert settings["runEmptyQuery"] is True
    assert [m.item for m in run(engine.query("")).matches()] == [item]


def test_run_empty_query_read_from_settings():
    settings = Settings()
    settings["runEmptyQuery"] = True
    engine = QueryEngine(ExtensionRegistry(), settings)
    assert engine.run_empty_query is True


def test_conflicting_trigger_is_not_activated(setup):
    registry, _, engine = setup
    first, second = Trig("a", default="x "), Trig("b", default="x ")
    registry.add(first)
    registry.add(second)
    assert engine.is_active(first, HandlerKind.TRIGGER)
    assert not engine.is_active(second, HandlerKind.TRIGGER)
    with pytest.raises(TriggerError, match="Trigger 'x ' is reserved for 'a'."):
        engine.set_active(second, HandlerKind.TRIGGER)


def test_set_trigger_remaps_and_persists(setup):
    registry, settings, engine = setup
    handler = Trig("files")
    registry.add(handler)
    engine.set_trigger(handler, "f ")
    assert handler.trigger == "f "
    assert settings["files/trigger"] == "f "
    assert engine.query("f x").trigger == "f "
    assert isinstance(engine.query("files x"), GlobalQuery)
    engine.set_trigger(handler, "")
    assert handler.trigger == "files "
    assert "files/trigger" not in settings
    assert engine.is_active(handler, HandlerKind.TRIGGER)


def test_set_trigger_refused_without_remap(setup):
    registry, _, engine = setup
    handler = Trig("fixed", remap=False)
    registry.add(handler)
    with pytest.raises(TriggerError, match="'fixed' does not allow to remap trigger."):
        engine.set_trigger(handler, "z ")
    assert handler.trigger == "fixed "


def test_set_trigger_to_taken_trigger_raises(setup):
    registry, _, engine = setup
    a, b = Trig("a"), Trig("b")
    registry.add(a)
    registry.add(b)
    with pytest.raises(TriggerError):
        engine.set_trigger(b, "a ")
    assert not engine.is_active(b, HandlerKind.TRIGGER)


def test_set_enabled_persists_and_deactivates(setup):
    registry, settings, engine = setup
    handler = Trig("files")
    registry.add(handler)
    assert engine.is_enabled(handler, HandlerKind.TRIGGER)
    engine.set_enabled(handler, HandlerKind.TRIGGER, False)
    assert settings["files/trigger_handler_enabled"] is False
    assert not engine.is_enabled(handler, HandlerKind.TRIGGER)
    assert not engine.is_active(handler, HandlerKind.TRIGGER)
    assert isinstance(engine.query("files x"), GlobalQuery)


def test_disabled_in_settings_is_not_activated_on_add(setup):
    registry, settings, engine = setup
    settings["files/trigger_handler_enabled"] = False
    handler = Trig("files")
    registry.add(handler)
    assert not engine.is_active(handler, HandlerKind.TRIGGER)


def test_trigger_read_from_settings_on_add(setup):
    registry, settings, engine = setup
    settings["files/trigger"] = "ff "
    handler = Trig("files")
    registry.add(handler)
    assert handler.trigger == "ff "


def test_remove_deactivates(setup):
    registry, _, engine = setup
    handler = Glob("glob", [])
    registry.add(handler)
    registry.remove(handler)
    assert not engine.is_active(handler, HandlerKind.TRIGGER)
    assert not engine.is_active(handler, HandlerKind.GLOBAL)
    assert isinstance(engine.query("glob x"), GlobalQuery)


def test_fuzzy_only_when_supported(setup):
    registry, settings, engine = setup
    fuzzy, plain = Trig("fz", fuzzy_support=True), Trig("pl")
    registry.add(fuzzy)
    registry.add(plain)
    engine.set_fuzzy(fuzzy, True)
    engine.set_fuzzy(plain, True)
    assert engine.fuzzy(fuzzy) is True
    assert settings["fz/fuzzy"] is True
    assert engine.fuzzy(plain) is False
    assert "pl/fuzzy" not in settings


def test_fallback_handler_feeds_queries(setup):
    registry, settings, engine = setup
    handler = Fall()
    registry.add(handler)
    assert engine.is_active(handler, HandlerKind.FALLBACK)
    q = run(engine.query("hello"))
    assert [m.item.text for m in q.fallbacks()] == ["hello"]
    engine.set_enabled(handler, HandlerKind.FALLBACK, False)
    assert settings["fb/fallback_hanlder_enabled"] is False
    assert run(engine.query("hello")).fallbacks() == []


def test_handler_listings(setup):
    registry, _, engine = setup
    t, g, f = Trig("t"), Glob("g", []), Fall()
    for ext in (t, g, f):
        registry.add(ext)
    assert engine.trigger_handlers() == {"g": g, "t": t}
    assert engine.global_handlers() == {"g": g}
    assert engine.fallback_handlers() == {"fb": f}


def test_usage_history_given_to_global_handlers():
    with UsageHistory() as history:
        registry = ExtensionRegistry()
        engine = QueryEngine(registry, Settings(), usage_history=history)
        handler = Glob("g", [])
        registry.add(handler)
        assert handler.usage_history is history
        assert engine.usage_history is history