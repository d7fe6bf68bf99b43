# lodestone

lodestone compares technology *signals*, such as trending repositories or news
items, with a *fingerprint* of a repository. A fingerprint records the
repository's languages, frameworks, dependencies and CI.

lodestone scores every signal against the fingerprint and keeps everything as
plain JSON and JSON Lines files. It can also send a chosen recommendation to the
`claude` command-line tool, which drafts a design spec and a checkbox plan that
lodestone then writes into the repository.

The package needs nothing beyond the Python standard library (Python 3.10 or
later).

## Modules

| Module | Contents |
| --- | --- |
| `lodestone.schema` | The records `Signal`, `Fingerprint`, `Recommendation` and `WorkPackage`, and the enums `EffortLevel`, `ROILevel` and `RiskLevel`. Each record has `to_dict()` and `from_dict()`. |
| `lodestone.scoring` | `compatibility`, `effort`, `risk` and `score`. |
| `lodestone.store` | `FileStore`, which holds an append-only signal log, the current fingerprint and the current list of recommendations. |
| `lodestone.planning` | `Engine`, `PlanResult`, `build_prompt`, `split_response`, `slug_from_rec`, the runners `ClaudeRunner` and `FakeRunner`, and the errors `PlanningError` and `ClaudeNotFoundError`. |
| `lodestone.mcp.protocol` | JSON-RPC constants, `RPCError`, `Tool`, `ContentBlock`, `CallToolResult`, `text_result` and `error_result`. |
| `lodestone.mcp.tools` | `ToolRegistry`, `ToolDeps`, `default_deps` and `register_builtins`. |
| `lodestone.mcp.server` | `Server`, a JSON-RPC server that reads one request per line from a stream. |

## Records

Each record converts to and from a dict:

* `to_dict()` gives the JSON form. Fields that are empty or zero are left out.
  Timestamps are written as RFC 3339, and a timestamp that is not set is written
  as `0001-01-01T00:00:00Z`.
* `from_dict()` reads that form back. It turns the zero time back into `None`.

## Scoring

`compatibility(sig, fp)` measures how well a signal fits the repository:

* It takes the signal's language and topic tags and compares them, ignoring
  case and surrounding spaces, with the fingerprint's languages and frameworks.
* A match with a language counts 1.5 and a match with a framework counts 1.0.
* The sum is divided by the size of the union of all three sets and capped
  at 1.0.
* A signal with no language and no tags scores 0.

`effort(sig, compat)` returns:

* `XL` when compatibility is 0.
* `S` when the signal has fewer than 100 stars.
* `M` otherwise.

`risk(sig, now)` returns:

* `low` for a licensed signal with at least 500 stars and a last commit less
  than 90 days before `now`.
* `high` when the signal has no licence, or its last commit is more than
  180 days old.
* `med` in every other case.

`score(fp, sigs, now=None)` turns each signal into a `Recommendation`:

* The result is sorted by compatibility (highest first), then by stars
  (highest first), then by recommendation ID.
* Each recommendation ID is `sha256:` followed by a hash of the signal ID and
  the canonical JSON of the fingerprint. The same input therefore always gives
  the same output.
* `now` is the time used to judge risk. It defaults to the current UTC time.

## Storage

`FileStore(root)` keeps its files in `root`, which defaults to `.lodestone`. It
creates `root/cache/` when it is constructed.

| Method | What it does |
| --- | --- |
| `append(sig)` | Adds a line to `signals.jsonl`. A signal whose ID is already stored is ignored. |
| `has(signal_id)` | Tells whether a signal with that ID is stored. |
| `list_since(since)` | Returns the stored signals captured at or after `since`. With `None` it returns all of them. |
| `write(fp)` and `read()` | Replace and load `fingerprint.json`. `read()` raises `FileNotFoundError` when no fingerprint has been written. |
| `replace(recs)` and `list_recommendations()` | Replace and load `recommendations.jsonl`. |

Replacing the fingerprint or the recommendations is atomic: the data goes to a
temporary file that is then renamed. A line that cannot be decoded raises
`ValueError`.

```python
from datetime import datetime, timezone

from lodestone.schema import Fingerprint, Signal
from lodestone.scoring import score
from lodestone.store import FileStore

store = FileStore(".lodestone")
store.append(Signal(
    id="sig-1",
    source="github_trending",
    url="https://example.com/repo",
    title="example/repo",
    captured_at=datetime.now(timezone.utc),
    language="Go",
    stars=800,
    topic_tags=["cobra"],
    license="MIT",
))

fp = Fingerprint(languages=["Go"], frameworks=["cobra"])
store.write(fp)

store.replace(score(fp, store.list_since(None)))
for rec in store.list_recommendations():
    print(rec.signal_id, rec.compatibility, rec.effort.value, rec.risk.value)
```

## Planning

`Engine(runner=None, model="claude-opus-4-7", now=None)` creates a planning
engine. The runner defaults to `ClaudeRunner()`.

`engine.plan(fp, rec)` does the following:

1. It builds the prompt with `build_prompt`.
2. It calls `runner.run(model, prompt)`.
3. It splits the reply with `split_response`. The spec is the text between
   `===SPEC===` and `===PLAN===`. The plan is the text after `===PLAN===`, up to
   `===END===` if that marker follows.

The result is a `PlanResult` with `spec`, `plan`, `prompt`, `model`,
`spec_path` and `plan_path`. The two paths are relative:

* `docs/superpowers/specs/<date>-<slug>-design.md`
* `docs/superpowers/plans/<date>-<slug>.md`

The slug comes from `slug_from_rec`. `result.persist(repo_root)` writes both
files below `repo_root` and creates any missing directories.

Errors:

* `ClaudeRunner` runs `claude --print --model <model>` and passes the prompt on
  standard input.
* If `claude` is not on `PATH`, it raises `ClaudeNotFoundError`.
* If `claude` exits with a non-zero status, it raises `PlanningError`.
* A reply with missing or misordered markers, or with an empty section, raises
  `PlanningError`.

`FakeRunner(output=..., error=...)` is meant for tests. It records every call in
`calls` and either returns `output` or raises `error`.

## Tool server

`Server(name, version, registry)` reads JSON-RPC 2.0 requests, one per line,
with `serve(infile, outfile)`. It writes one compact JSON response per line. It
answers these methods:

* `initialize`
* `tools/list`
* `tools/call`

`initialized` and `notifications/initialized` get no reply.

Errors use these codes:

| Problem | Code |
| --- | --- |
| Invalid JSON | -32700 |
| A `jsonrpc` value other than `"2.0"` | -32600 |
| Malformed `tools/call` parameters | -32602 |
| An unknown method | -32601 |
| An exception raised by a tool handler | -32603 |

`handle(raw)` answers a single request. It returns the response as a dict, or
`None` for a notification.

`ToolRegistry.call(name, args)` returns an error result, with `isError: true`,
for an unknown tool instead of raising. The built-in tools report their failures
the same way.

```python
import sys

from lodestone.mcp.server import Server
from lodestone.mcp.tools import ToolRegistry, default_deps, register_builtins

registry = ToolRegistry()
register_builtins(registry, default_deps(".", ".lodestone"))
Server("lodestone-mcp", "0.1.0", registry).serve(sys.stdin, sys.stdout)
```

### Built-in tools

`register_builtins(registry, deps)` always registers these tools:

* `list_signals`: the stored signals, sorted by stars. It accepts the optional
  filters `source`, `since` (RFC 3339) and `top`, and returns `null` when the
  store is empty.
* `query_trends`: signal counts and average stars for each source, plus the
  total. It accepts an optional `since`.
* `generate_plan`: finds the stored recommendation whose ID or signal ID equals
  `rec_id`, plans it against the stored fingerprint, and persists the documents
  below `deps.repo_root`. It accepts an optional `model` argument, which selects
  a fresh `Engine` with that model.

Two more tools are registered only when `ToolDeps` is given the matching
callable:

* `score_repo` needs `analyze_fingerprint`, a callable that receives
  `repo_root` and returns a `Fingerprint`. The tool stores that fingerprint,
  scores all stored signals, replaces the stored recommendations, and returns
  the top five.
* `record_decision` needs `record_decision`, a callable that receives the
  keyword arguments `verb`, `outcome`, `detail` and `args`.

```python
from lodestone.mcp.tools import ToolDeps, ToolRegistry, register_builtins
from lodestone.schema import Fingerprint

deps = ToolDeps(
    store_root=".lodestone",
    repo_root=".",
    analyze_fingerprint=lambda root: Fingerprint(languages=["Go"]),
    record_decision=lambda **entry: print(entry),
)
registry = ToolRegistry()
register_builtins(registry, deps)
```

## What the package does not do

* It installs no command-line program. Start the tool server from your own
  Python code, as shown above.
* It does not analyse a repository to build a fingerprint. You create a
  `Fingerprint` yourself, or supply `analyze_fingerprint` to the tool server.
* It does not fetch signals from any outside source. Signals enter the store
  only through `FileStore.append`.
* It keeps no decision log of its own. `record_decision` hands each entry to
  the callable you supply.