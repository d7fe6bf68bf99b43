"""Turning a recommendation into a spec and a plan through an external model CLI."""

from __future__ import annotations

import json
import os
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from lodestone.schema import Fingerprint, Recommendation

DEFAULT_MODEL = "claude-opus-4-7"

SPEC_MARKER = "===SPEC==="
PLAN_MARKER = "===PLAN==="
END_MARKER = "===END==="

_PROMPT_TEMPLATE = """Du bist ein erfahrener Software-Architekt im Team von `lodestone`.
Für die folgende Recommendation gegen das beschriebene Repo produzierst du:

1. Eine Spec im superpowers-Format (Markdown).
2. Einen ausführbaren Plan mit Checkbox-Tasks (Markdown).

WICHTIG: Antworte deutsch. Verwende exakt diese drei Block-Marker, ohne
Variationen, jeweils auf eigener Zeile:

===SPEC===
<Spec-Inhalt>
===PLAN===
<Plan-Inhalt>
===END===

Repo-Fingerprint (JSON):
{fingerprint}

Recommendation (JSON):
{recommendation}

Konventionen:
- YAGNI. Keine spekulativen Features.
- Plan-Tasks im Format `- [ ] T<N>: <Beschreibung>`, atomar und einzeln testbar.
- Spec listet Tradeoffs explizit (mindestens build-vs-buy oder lokal-vs-extern).
- Spec und Plan sollen jeweils unter 250 Zeilen bleiben."""

_SLUG_RE = re.compile(r"[^a-z0-9]+")


class PlanningError(Exception):
    """Planning failed: the model could not be run or its answer was unusable."""


class ClaudeNotFoundError(PlanningError):
    """The model CLI binary is not on PATH."""


class _Runner(Protocol):
    def run(self, model: str, prompt: str) -> str: ...


@dataclass
class ClaudeRunner:
    """Runs the claude CLI in print mode, feeding the prompt on stdin."""

    binary: str = "claude"

    def run(self, model: str, prompt: str) -> str:
        binary = self.binary or "claude"
        path = shutil.which(binary)
        if path is None:
            raise ClaudeNotFoundError("claude CLI not found in PATH")
        args = [path, "--print"]
        if model:
            args += ["--model", model]
        try:
            completed = subprocess.run(
                args, input=prompt, capture_output=True, text=True, check=False
            )
        except OSError as exc:
            raise PlanningError(f"claude run: {exc}") from exc
        if completed.returncode != 0:
            raise PlanningError(
                f"claude run: exit status {completed.returncode}; stderr: {completed.stderr}"
            )
        return completed.stdout


@dataclass(frozen=True)
class FakeCall:
    """One recorded call of a FakeRunner."""

    model: str
    prompt: str


@dataclass
class FakeRunner:
    """A runner that records calls and returns a canned answer or raises."""

    output: str = ""
    error: Optional[BaseException] = None
    calls: list[FakeCall] = field(default_factory=list)

    def run(self, model: str, prompt: str) -> str:
        self.calls.append(FakeCall(model=model, prompt=prompt))
        if self.error is not None:
            raise self.error
        return self.output


@dataclass
class PlanResult:
    """A generated spec and plan together with their repository-relative paths."""

    spec_path: str
    plan_path: str
    spec: str
    plan: str
    prompt: str
    model: str

    def persist(self, repo_root: Union[str, "os.PathLike[str]"]) -> None:
        """Write the spec and plan below repo_root, creating directories as needed."""
        for rel, content in ((self.spec_path, self.spec), (self.plan_path, self.plan)):
            full = Path(repo_root) / rel
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(content + "\n", encoding="utf-8")


def build_prompt(fp: Fingerprint, rec: Recommendation) -> str:
    """Render the planning prompt with the fingerprint and recommendation as JSON."""
    return _PROMPT_TEMPLATE.format(
        fingerprint=json.dumps(fp.to_dict(), ensure_ascii=False, indent=2),
        recommendation=json.dumps(rec.to_dict(), ensure_ascii=False, indent=2),
    )


def split_response(out: str) -> tuple[str, str]:
    """Extract the spec and plan sections from the model's answer."""
    spec_idx = out.find(SPEC_MARKER)
    plan_idx = out.find(PLAN_MARKER)
    end_idx = out.find(END_MARKER)

    if spec_idx < 0 or plan_idx < 0 or plan_idx < spec_idx:
        raise PlanningError("missing or out-of-order SPEC/PLAN markers in claude output")

    plan_end = end_idx if end_idx > plan_idx else len(out)
    spec = out[spec_idx + len(SPEC_MARKER):plan_idx].strip()
    plan = out[plan_idx + len(PLAN_MARKER):plan_end].strip()
    if not spec or not plan:
        raise PlanningError("empty SPEC or PLAN section")
    return spec, plan


def slug_from_rec(rec: Recommendation) -> str:
    """A file-name-safe slug derived from the recommendation's signal or own ID."""
    base = (rec.signal_id or rec.id).lower()
    base = base.removeprefix("sha256:")[:16]
    base = _SLUG_RE.sub("-", base).strip("-")
    return "lodestone-" + (base or "lodestone-plan")


class Engine:
    """Builds a prompt, asks the runner, and splits the answer into spec and plan."""

    def __init__(
        self,
        runner: Optional[_Runner] = None,
        model: str = DEFAULT_MODEL,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.runner = runner if runner is not None else ClaudeRunner()
        self.model = model
        self.now = now if now is not None else (lambda: datetime.now(timezone.utc))

    def plan(self, fp: Fingerprint, rec: Recommendation) -> PlanResult:
        prompt = build_prompt(fp, rec)
        out = self.runner.run(self.model, prompt)
        try:
            spec, plan = split_response(out)
        except PlanningError as exc:
            raise PlanningError(f"parse claude output: {exc}") from exc
        slug = slug_from_rec(rec)
        date = self.now().strftime("%Y-%m-%d")
        return PlanResult(
            spec=spec,
            plan=plan,
            prompt=prompt,
            model=self.model,
            spec_path=os.path.join("docs", "superpowers", "specs", f"{date}-{slug}-design.md"),
            plan_path=os.path.join("docs", "superpowers", "plans", f"{date}-{slug}.md"),
        )