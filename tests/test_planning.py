import os
from datetime import datetime, timezone

import pytest

from lodestone.planning import (
    DEFAULT_MODEL,
    ClaudeNotFoundError,
    ClaudeRunner,
    Engine,
    FakeCall,
    FakeRunner,
    PlanningError,
    build_prompt,
    slug_from_rec,
    split_response,
)
from lodestone.schema import EffortLevel, Fingerprint, Recommendation, RiskLevel

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

NOW = datetime(2026, 5, 20, 12, 0, 0, tzinfo=timezone.utc)


def sample_fp():
    return Fingerprint(
        generated_at=datetime(2026, 5, 20, tzinfo=timezone.utc),
        languages=["Go"],
        frameworks=["cobra"],
    )


def sample_rec():
    return Recommendation(
        id="sha256:abc123",
        signal_id="sha256:sig-42",
        compatibility=0.85,
        effort=EffortLevel.S,
        risk=RiskLevel.LOW,
    )


def test_engine_plan_happy_path():
    fake = FakeRunner(output=HAPPY_OUTPUT)
    engine = Engine(runner=fake, model="claude-opus-test", now=lambda: NOW)
    res = engine.plan(sample_fp(), sample_rec())

    assert "Anbindung an X" in res.spec
    assert "- [ ] T1" in res.plan
    assert res.model == "claude-opus-test"
    assert res.spec_path == os.path.join(
        "docs", "superpowers", "specs", "2026-05-20-lodestone-sig-42-design.md"
    )
    assert res.plan_path == os.path.join(
        "docs", "superpowers", "plans", "2026-05-20-lodestone-sig-42.md"
    )
    assert len(fake.calls) == 1
    assert fake.calls[0].model == "claude-opus-test"
    assert "===SPEC===" in fake.calls[0].prompt
    assert res.prompt == fake.calls[0].prompt


def test_engine_plan_persists(tmp_path):
    engine = Engine(runner=FakeRunner(output=HAPPY_OUTPUT), now=lambda: NOW)
    res = engine.plan(sample_fp(), sample_rec())
    res.persist(tmp_path)
    spec_file = tmp_path / res.spec_path
    plan_file = tmp_path / res.plan_path
    assert spec_file.is_file()
    assert plan_file.is_file()
    assert spec_file.read_text(encoding="utf-8") == res.spec + "\n"
    assert plan_file.read_text(encoding="utf-8") == res.plan + "\n"


def test_engine_plan_runner_error():
    engine = Engine(runner=FakeRunner(error=RuntimeError("boom")))
    with pytest.raises(RuntimeError, match="boom"):
        engine.plan(sample_fp(), sample_rec())


def test_engine_plan_missing_markers():
    engine = Engine(runner=FakeRunner(output="no markers here"))
    with pytest.raises(PlanningError, match="parse claude output"):
        engine.plan(sample_fp(), sample_rec())


def test_engine_default_model():
    fake = FakeRunner(output=HAPPY_OUTPUT)
    res = Engine(runner=fake, now=lambda: NOW).plan(sample_fp(), sample_rec())
    assert res.model == DEFAULT_MODEL
    assert fake.calls == [FakeCall(model=DEFAULT_MODEL, prompt=res.prompt)]


def test_split_response():
    spec, plan = split_response(HAPPY_OUTPUT)
    assert spec.startswith("# Spec")
    assert plan.startswith("# Plan")
    assert "Viel Erfolg" not in plan
    assert spec.endswith("Tradeoff: build vs. buy.")


def test_split_response_without_end_marker():
    spec, plan = split_response("===SPEC===\nS\n===PLAN===\nP\n")
    assert (spec, plan) == ("S", "P")


def test_split_response_out_of_order():
    with pytest.raises(PlanningError, match="out-of-order"):
        split_response("===PLAN===\nP\n===SPEC===\nS\n")


def test_split_response_empty_section():
    with pytest.raises(PlanningError, match="empty"):
        split_response("===SPEC===\n\n===PLAN===\nP\n===END===")


def test_build_prompt_encodes_json():
    prompt = build_prompt(sample_fp(), sample_rec())
    assert "cobra" in prompt
    assert "sha256:sig-42" in prompt
    assert '"compatibility": 0.85' in prompt


def test_slug_from_rec():
    slug = slug_from_rec(sample_rec())
    assert slug.startswith("lodestone-")
    assert ":" not in slug
    assert slug == "lodestone-sig-42"


def test_slug_falls_back_to_id_and_default():
    rec = Recommendation(
        id="ABC:def", signal_id="", compatibility=0.0,
        effort=EffortLevel.XL, risk=RiskLevel.HIGH,
    )
    assert slug_from_rec(rec) == "lodestone-abc-def"
    rec.id = ":::"
    assert slug_from_rec(rec) == "lodestone-lodestone-plan"


def test_claude_runner_missing_binary():
    runner = ClaudeRunner(binary="definitely-not-an-installed-binary-xyz")
    with pytest.raises(ClaudeNotFoundError):
        runner.run("model", "prompt")