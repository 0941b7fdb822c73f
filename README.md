# launchcore

The engine behind a keyboard-driven application launcher. It covers what happens
between a keystroke and a ranked list of results:

- an **extension registry** (`launchcore.extension`) with watchers that react when
  extensions are added or removed;
- **items and actions** (`launchcore.items`): `Item`, `StandardItem`, `Action`,
  `RankItem`, `IndexItem`;
- **query handlers** (`launchcore.handlers`): `TriggerQueryHandler` for queries that
  start with a trigger such as `"files "`, `GlobalQueryHandler` for scored results in the
  global search, and `FallbackHandler` for items shown when nothing else matches;
- a **query engine** (`launchcore.engine.QueryEngine`) that routes a query string to the
  right handlers, keeps triggers unique and remembers which handlers are enabled;
- **usage history** (`launchcore.usage.UsageHistory`), backed by SQLite, which ranks
  items you activated recently above the rest;
- **plugin discovery** (`launchcore.plugins`) from plugin metadata;
- a small **local RPC server** (`launchcore.rpc`) so a second invocation can tell the
  running instance to show, hide, toggle and so on.

## Installation

```
pip install .
```

## A first query

```python
from launchcore.extension import ExtensionRegistry
from launchcore.engine import QueryEngine
from launchcore.handlers import GlobalQueryHandler
from launchcore.items import StandardItem, RankItem

class Apps(GlobalQueryHandler):
    def id(self):
        return "apps"
    def name(self):
        return "Applications"
    def description(self):
        return "Launch applications"
    def handle_global_query(self, query):
        item = StandardItem(id="editor", text="Editor")
        return [RankItem(item, 0.5)] if "ed" in query.string else []

registry = ExtensionRegistry()
engine = QueryEngine(registry)
registry.add(Apps())

query = engine.query("ed")
query.run()
query.wait()
for match in query.matches():
    print(match.item.text())
```

A trigger handler is picked when the query string starts with its trigger, which is
`"<id> "` unless changed with `QueryEngine.set_trigger`. Only one handler may own a
trigger; a clash raises `TriggerError`.

## Talking to a running instance

A running launcher listens with `RPCServer`. From the shell:

```
launchcore-rpc toggle
launchcore-rpc show some text
```

The reply of the running instance is printed; the command exits with a failure status
if no instance answers.

## Running the tests

```
pip install .[test]
pytest
```