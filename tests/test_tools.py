import json
import os
from datetime import datetime, timezone

import pytest

from lodestone.mcp.protocol import Tool, text_result
from lodestone.mcp.tools import ToolDeps, ToolRegistry, default_deps, register_builtins
from lodestone.planning import DEFAULT_MODEL, Engine, FakeRunner
from lodestone.schema import EffortLevel, Fingerprint, Recommendation, RiskLevel, Signal
from lodestone.scoring import score
from lodestone.store import FileStore

NOW = datetime(2026, 5, 20, 12, 0, 0, tzinfo=timezone.utc)
CAPTURED = datetime(2026, 5, 20, 0, 0, 0, tzinfo=timezone.utc)

HAPPY_OUTPUT = """Hier ist mein Vorschlag:

===SPEC===
# Spec — Anbindung an X

Tradeoff: build vs. buy.
===PLAN===
# Plan — Anbindung an X

- [ ] T1: Integrationstest schreiben
- [ ] T2: Adapter implementieren
===END===

Viel Erfolg!"""


def sample_fp():
    return Fingerprint(
        generated_at=CAPTURED,
        languages=["Go"],
        frameworks=["cobra"],
        deps={"github.com/spf13/cobra": "v1.10.2"},
    )


def sample_rec():
    return Recommendation(
        id="sha256:abc123",
        signal_id="sha256:sig-42",
        compatibility=0.85,
        effort=EffortLevel.S,
        risk=RiskLevel.LOW,
    )


def mk_signal(sig_id, source, stars, captured_at=CAPTURED, lang="Go"):
    return Signal(
        id=sig_id,
        source=source,
        url="https://example.com/" + sig_id,
        title=sig_id,
        captured_at=captured_at,
        stars=stars,
        language=lang,
        license="mit",
    )


@pytest.fixture
def paths(tmp_path):
    return str(tmp_path / "store"), str(tmp_path / "repo")


def make_registry(paths, runner=None, analyzer=None, recorder=None):
    store_root, repo_root = paths
    deps = ToolDeps(
        store_root=store_root,
        repo_root=repo_root,
        planning=Engine(runner=runner or FakeRunner(output=HAPPY_OUTPUT), now=lambda: NOW),
        now=lambda: NOW,
        analyze_fingerprint=analyzer,
        record_decision=recorder,
    )
    registry = ToolRegistry()
    register_builtins(registry, deps)
    return registry


def payload(result):
    return json.loads(result.content[0].text)


def test_registry_lists_in_registration_order_and_calls():
    registry = ToolRegistry()
    registry.register(Tool(name="b", description="b"), lambda args: text_result("B"))
    registry.register(Tool(name="a", description="a"), lambda args: text_result(str(args)))
    assert [tool.name for tool in registry.list()] == ["b", "a"]
    assert registry.call("a", 7).content[0].text == "7"


def test_registry_unknown_tool_is_error_result():
    result = ToolRegistry().call("missing", {})
    assert result.is_error is True
    assert result.content[0].text == "unknown tool: missing"


def test_default_deps(tmp_path):
    deps = default_deps(str(tmp_path / "repo"), str(tmp_path / "store"))
    assert deps.store_root == str(tmp_path / "store")
    assert deps.repo_root == str(tmp_path / "repo")
    assert deps.planning.model == DEFAULT_MODEL
    assert deps.now().tzinfo == timezone.utc


def test_builtins_without_optional_collaborators(paths):
    registry = make_registry(paths)
    assert [t.name for t in registry.list()] == ["list_signals", "query_trends", "generate_plan"]


def test_builtins_with_all_collaborators(paths):
    registry = make_registry(paths, analyzer=lambda root: sample_fp(), recorder=lambda **kw: None)
    assert [t.name for t in registry.list()] == [
        "list_signals",
        "query_trends",
        "score_repo",
        "generate_plan",
        "record_decision",
    ]


def test_list_signals_empty_store(paths):
    result = make_registry(paths).call("list_signals", {})
    assert result.is_error is False
    assert result.content[0].text == "null"


def test_list_signals_sorts_filters_and_limits(paths):
    store = FileStore(paths[0])
    store.append(mk_signal("a", "github_trending", 10))
    store.append(mk_signal("b", "github_trending", 500))
    store.append(mk_signal("c", "hackernews", 50))
    store.append(mk_signal("old", "hackernews", 900, captured_at=datetime(2026, 1, 1, tzinfo=timezone.utc)))
    registry = make_registry(paths)

    assert [s["id"] for s in payload(registry.call("list_signals", {}))] == ["old", "b", "c", "a"]
    filtered = payload(registry.call("list_signals", {"source": "github_trending"}))
    assert [s["id"] for s in filtered] == ["b", "a"]
    assert [s["id"] for s in payload(registry.call("list_signals", {"top": 1}))] == ["old"]
    recent = payload(registry.call("list_signals", {"since": "2026-05-01T00:00:00Z"}))
    assert [s["id"] for s in recent] == ["b", "c", "a"]


def test_list_signals_filter_matching_nothing_gives_empty_list(paths):
    FileStore(paths[0]).append(mk_signal("a", "github_trending", 10))
    result = make_registry(paths).call("list_signals", {"source": "nowhere"})
    assert payload(result) == []


def test_list_signals_bad_since(paths):
    result = make_registry(paths).call("list_signals", {"since": "yesterday"})
    assert result.is_error is True
    assert result.content[0].text.startswith("since must be RFC3339")


def test_list_signals_bad_argument_type(paths):
    result = make_registry(paths).call("list_signals", {"top": "many"})
    assert result.is_error is True
    assert result.content[0].text.startswith("invalid arguments")


def test_query_trends_aggregates(paths):
    store = FileStore(paths[0])
    store.append(mk_signal("x", "a", 100))
    store.append(mk_signal("y", "a", 300))
    store.append(mk_signal("z", "b", 40))
    out = payload(make_registry(paths).call("query_trends", {}))
    assert out["total"] == 3
    assert sum(out["count_by_source"].values()) == out["total"]
    assert out["count_by_source"]["a"] == 2
    assert out["avg_stars"]["b"] == 40


def test_query_trends_ignores_bad_since(paths):
    FileStore(paths[0]).append(mk_signal("x", "a", 100))
    out = payload(make_registry(paths).call("query_trends", {"since": "garbage"}))
    assert out["total"] == 1


def test_score_repo_stores_fingerprint_and_recommendations(paths):
    store = FileStore(paths[0])
    sigs = [mk_signal(f"s{i}", "github_trending", 100 * i) for i in range(6)]
    for sig in sigs:
        store.append(sig)
    registry = make_registry(paths, analyzer=lambda root: sample_fp())

    result = registry.call("score_repo", {})
    assert result.is_error is False
    out = payload(result)
    assert out["fingerprint_summary"] == "languages=[Go] frameworks=[cobra] deps=1"
    expected = [rec.id for rec in score(sample_fp(), sigs, now=NOW)[:5]]
    assert [rec["id"] for rec in out["top_recommendations"]] == expected
    assert store.read() == sample_fp()
    assert len(store.list_recommendations()) == len(sigs)


def test_score_repo_reports_analyzer_failure(paths):
    def broken(root):
        raise RuntimeError("no repo")

    result = make_registry(paths, analyzer=broken).call("score_repo", {})
    assert result.is_error is True
    assert result.content[0].text == "fingerprint: no repo"


def seed_plan_store(store_root):
    store = FileStore(store_root)
    store.write(sample_fp())
    store.replace([sample_rec()])


@pytest.mark.parametrize("rec_id", ["sha256:sig-42", "sha256:abc123"])
def test_generate_plan_persists(paths, rec_id):
    seed_plan_store(paths[0])
    fake = FakeRunner(output=HAPPY_OUTPUT)
    result = make_registry(paths, runner=fake).call("generate_plan", {"rec_id": rec_id})
    assert result.is_error is False
    out = payload(result)
    assert out["spec_path"] == os.path.join(
        "docs", "superpowers", "specs", "2026-05-20-lodestone-sig-42-design.md"
    )
    assert out["spec_md"].startswith("# Spec")
    assert out["plan_md"].startswith("# Plan")
    assert out["model"] == DEFAULT_MODEL
    assert len(fake.calls) == 1
    for rel in (out["spec_path"], out["plan_path"]):
        assert os.path.isfile(os.path.join(paths[1], rel))


def test_generate_plan_requires_rec_id(paths):
    result = make_registry(paths).call("generate_plan", {})
    assert result.content[0].text == "rec_id required"


def test_generate_plan_requires_arguments(paths):
    result = make_registry(paths).call("generate_plan", None)
    assert result.is_error is True
    assert result.content[0].text.startswith("invalid arguments")


def test_generate_plan_without_fingerprint(paths):
    result = make_registry(paths).call("generate_plan", {"rec_id": "x"})
    assert result.is_error is True
    assert result.content[0].text.startswith("read fingerprint:")


def test_generate_plan_unknown_recommendation(paths):
    seed_plan_store(paths[0])
    result = make_registry(paths).call("generate_plan", {"rec_id": "nope"})
    assert result.content[0].text == "recommendation not found: nope"


def test_generate_plan_runner_failure(paths):
    seed_plan_store(paths[0])
    runner = FakeRunner(error=RuntimeError("boom"))
    result = make_registry(paths, runner=runner).call("generate_plan", {"rec_id": "sha256:sig-42"})
    assert result.is_error is True
    assert result.content[0].text == "plan: boom"


def test_record_decision_passes_entry(paths):
    calls = []
    registry = make_registry(paths, recorder=lambda **kw: calls.append(kw))
    result = registry.call(
        "record_decision",
        {"verb": "ingest", "outcome": "ok", "detail": "fetched=3", "args": {"source": "hn"}},
    )
    assert result.content[0].text == '{"ok":true}'
    assert calls == [
        {"verb": "ingest", "outcome": "ok", "detail": "fetched=3", "args": {"source": "hn"}}
    ]


def test_record_decision_requires_verb_and_outcome(paths):
    calls = []
    registry = make_registry(paths, recorder=lambda **kw: calls.append(kw))
    result = registry.call("record_decision", {"verb": "ingest"})
    assert result.content[0].text == "verb and outcome required"
    assert calls == []


def test_record_decision_reports_recorder_failure(paths):
    def failing(**kw):
        raise OSError("disk full")

    registry = make_registry(paths, recorder=failing)
    result = registry.call("record_decision", {"verb": "v", "outcome": "o"})
    assert result.is_error is True
    assert result.content[0].text == "record: disk full"