"""Registry of callable tools and the built-in lodestone tools."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from lodestone.mcp.protocol import CallToolResult, Tool, error_result, text_result
from lodestone.planning import Engine
from lodestone.schema import Fingerprint, _parse_time
from lodestone.scoring import score
from lodestone.store import FileStore

ToolHandler = Callable[[Any], CallToolResult]
FingerprintAnalyzer = Callable[[str], Fingerprint]
DecisionRecorder = Callable[..., None]

_TOP_RECOMMENDATIONS = 5
_MISSING_ARGUMENTS = "invalid arguments: unexpected end of JSON input"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ToolRegistry:
    """Named tools with their handlers, listed in registration order."""

    def __init__(self) -> None:
        self._tools: dict[str, tuple[Tool, ToolHandler]] = {}
        self._order: list[str] = []

    def register(self, tool: Tool, handler: ToolHandler) -> None:
        self._tools[tool.name] = (tool, handler)
        self._order.append(tool.name)

    def list(self) -> list[Tool]:
        return [self._tools[name][0] for name in self._order]

    def call(self, name: str, args: Any) -> CallToolResult:
        """Run a tool; an unknown name gives an error result rather than raising."""
        entry = self._tools.get(name)
        if entry is None:
            return error_result(f"unknown tool: {name}")
        return entry[1](args)


@dataclass
class ToolDeps:
    """What the built-in tools work with.

    ``analyze_fingerprint`` and ``record_decision`` are optional collaborators;
    the tools that need them are only registered when they are given.
    """

    store_root: str
    repo_root: str
    planning: Engine = field(default_factory=Engine)
    now: Callable[[], datetime] = _utc_now
    analyze_fingerprint: Optional[FingerprintAnalyzer] = None
    record_decision: Optional[DecisionRecorder] = None


def default_deps(repo_root: str, store_root: str) -> ToolDeps:
    return ToolDeps(store_root=store_root, repo_root=repo_root, planning=Engine(), now=_utc_now)


def _json_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _decode_args(raw: Any, fields: dict[str, type]) -> dict[str, Any]:
    """Pick typed fields out of a JSON object; absent or null fields are left out."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"expected a JSON object, got {_json_kind(raw)}")
    out: dict[str, Any] = {}
    for key, kind in fields.items():
        value = raw.get(key)
        if value is None:
            continue
        if kind is int:
            valid = isinstance(value, int) and not isinstance(value, bool)
        elif kind is dict:
            valid = isinstance(value, dict) and all(
                item is None or isinstance(item, str) for item in value.values()
            )
            if valid:
                value = {k: item or "" for k, item in value.items()}
        else:
            valid = isinstance(value, kind)
        if not valid:
            raise ValueError(f"field {key!r} has wrong type {_json_kind(value)}")
        out[key] = value
    return out


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _plain_number(value: float) -> Any:
    return int(value) if value.is_integer() else value


def _bracketed(items: list[str]) -> str:
    return "[" + " ".join(items) + "]"


def _list_signals(deps: ToolDeps) -> ToolHandler:
    def handler(raw: Any) -> CallToolResult:
        try:
            args = _decode_args(raw, {"source": str, "since": str, "top": int})
        except ValueError as exc:
            return error_result(f"invalid arguments: {exc}")
        try:
            store = FileStore(deps.store_root)
        except OSError as exc:
            return error_result(f"store: {exc}")
        since = None
        if args.get("since"):
            try:
                since = _parse_time(args["since"])
            except ValueError as exc:
                return error_result(f"since must be RFC3339: {exc}")
        try:
            stored = store.list_since(since)
        except (OSError, ValueError) as exc:
            return error_result(f"list: {exc}")
        if not stored:
            return text_result("null")
        source = args.get("source", "")
        sigs = [sig for sig in stored if sig.source == source] if source else list(stored)
        sigs.sort(key=lambda sig: sig.stars, reverse=True)
        top = args.get("top", 0)
        if top > 0:
            sigs = sigs[:top]
        return text_result(_dump([sig.to_dict() for sig in sigs]))

    return handler


def _query_trends(deps: ToolDeps) -> ToolHandler:
    def handler(raw: Any) -> CallToolResult:
        since_text = raw.get("since") if isinstance(raw, dict) else None
        since = None
        if isinstance(since_text, str) and since_text:
            try:
                since = _parse_time(since_text)
            except ValueError:
                since = None
        try:
            store = FileStore(deps.store_root)
        except OSError as exc:
            return error_result(f"store: {exc}")
        try:
            sigs = store.list_since(since)
        except (OSError, ValueError) as exc:
            return error_result(f"list: {exc}")
        counts: dict[str, int] = {}
        stars: dict[str, int] = {}
        for sig in sigs:
            counts[sig.source] = counts.get(sig.source, 0) + 1
            stars[sig.source] = stars.get(sig.source, 0) + sig.stars
        averages = {src: _plain_number(stars[src] / n) for src, n in counts.items() if n > 0}
        out = {
            "count_by_source": dict(sorted(counts.items())),
            "avg_stars": dict(sorted(averages.items())),
            "total": len(sigs),
        }
        return text_result(_dump(out))

    return handler


def _score_repo(deps: ToolDeps, analyze: FingerprintAnalyzer) -> ToolHandler:
    def handler(raw: Any) -> CallToolResult:
        try:
            fp = analyze(deps.repo_root)
        except Exception as exc:
            return error_result(f"fingerprint: {exc}")
        try:
            store = FileStore(deps.store_root)
        except OSError as exc:
            return error_result(f"store: {exc}")
        try:
            store.write(fp)
        except (OSError, ValueError) as exc:
            return error_result(f"store write: {exc}")
        try:
            sigs = store.list_since(None)
        except (OSError, ValueError) as exc:
            return error_result(f"signals: {exc}")
        try:
            recs = score(fp, sigs, now=deps.now())
        except (TypeError, ValueError) as exc:
            return error_result(f"score: {exc}")
        try:
            store.replace(recs)
        except (OSError, ValueError) as exc:
            return error_result(f"store replace: {exc}")
        summary = (
            f"languages={_bracketed(fp.languages)} "
            f"frameworks={_bracketed(fp.frameworks)} deps={len(fp.deps)}"
        )
        out = {
            "fingerprint_summary": summary,
            "top_recommendations": [rec.to_dict() for rec in recs[:_TOP_RECOMMENDATIONS]],
        }
        return text_result(_dump(out))

    return handler


def _generate_plan(deps: ToolDeps) -> ToolHandler:
    def handler(raw: Any) -> CallToolResult:
        if raw is None:
            return error_result(_MISSING_ARGUMENTS)
        try:
            args = _decode_args(raw, {"rec_id": str, "model": str})
        except ValueError as exc:
            return error_result(f"invalid arguments: {exc}")
        rec_id = args.get("rec_id", "")
        if not rec_id:
            return error_result("rec_id required")
        try:
            store = FileStore(deps.store_root)
        except OSError as exc:
            return error_result(f"store: {exc}")
        try:
            fp = store.read()
        except (OSError, ValueError) as exc:
            return error_result(f"read fingerprint: {exc}")
        try:
            recs = store.list_recommendations()
        except (OSError, ValueError) as exc:
            return error_result(f"read recommendations: {exc}")
        match = next((rec for rec in recs if rec_id in (rec.id, rec.signal_id)), None)
        if match is None:
            return error_result(f"recommendation not found: {rec_id}")
        model = args.get("model", "")
        engine = Engine(model=model) if model else deps.planning
        try:
            result = engine.plan(fp, match)
        except Exception as exc:
            return error_result(f"plan: {exc}")
        try:
            result.persist(deps.repo_root)
        except OSError as exc:
            return error_result(f"persist: {exc}")
        out = {
            "spec_md": result.spec,
            "plan_md": result.plan,
            "spec_path": result.spec_path,
            "plan_path": result.plan_path,
            "model": result.model,
        }
        return text_result(_dump(out))

    return handler


def _record_decision(recorder: DecisionRecorder) -> ToolHandler:
    def handler(raw: Any) -> CallToolResult:
        if raw is None:
            return error_result(_MISSING_ARGUMENTS)
        try:
            args = _decode_args(
                raw, {"verb": str, "outcome": str, "detail": str, "args": dict}
            )
        except ValueError as exc:
            return error_result(f"invalid arguments: {exc}")
        verb = args.get("verb", "")
        outcome = args.get("outcome", "")
        if not verb or not outcome:
            return error_result("verb and outcome required")
        try:
            recorder(
                verb=verb,
                outcome=outcome,
                detail=args.get("detail", ""),
                args=args.get("args", {}),
            )
        except Exception as exc:
            return error_result(f"record: {exc}")
        return text_result('{"ok":true}')

    return handler


def register_builtins(registry: ToolRegistry, deps: ToolDeps) -> None:
    """Register the built-in tools that ``deps`` can support."""
    registry.register(
        Tool(
            name="list_signals",
            description="List signals from the lodestone store, optionally filtered.",
            input_schema={
                "type": "object",
                "properties": {
                    "source": {
                        "type": "string",
                        "description": "optional source filter (e.g. github_trending, hackernews)",
                    },
                    "since": {"type": "string", "description": "RFC3339 cutoff timestamp"},
                    "top": {"type": "integer", "description": "limit to top-N by stars"},
                },
            },
        ),
        _list_signals(deps),
    )
    registry.register(
        Tool(
            name="query_trends",
            description="Aggregate statistics over the stored signals.",
            input_schema={
                "type": "object",
                "properties": {
                    "since": {"type": "string", "description": "RFC3339 cutoff timestamp"},
                },
            },
        ),
        _query_trends(deps),
    )
    if deps.analyze_fingerprint is not None:
        registry.register(
            Tool(
                name="score_repo",
                description="Recompute fingerprint + score and return the top recommendations.",
                input_schema={"type": "object", "properties": {}},
            ),
            _score_repo(deps, deps.analyze_fingerprint),
        )
    registry.register(
        Tool(
            name="generate_plan",
            description="Invoke the planning engine for a specific recommendation ID.",
            input_schema={
                "type": "object",
                "required": ["rec_id"],
                "properties": {"rec_id": {"type": "string"}, "model": {"type": "string"}},
            },
        ),
        _generate_plan(deps),
    )
    if deps.record_decision is not None:
        registry.register(
            Tool(
                name="record_decision",
                description="Append an entry to .lodestone/decisions.log.",
                input_schema={
                    "type": "object",
                    "required": ["verb", "outcome"],
                    "properties": {
                        "verb": {"type": "string"},
                        "outcome": {"type": "string"},
                        "detail": {"type": "string"},
                        "args": {"type": "object"},
                    },
                },
            ),
            _record_decision(deps.record_decision),
        )