"""Architecture summaries built from the vectors stored for a repository."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Protocol, Union

from ..core.vector_store import Match
from . import retrieval

logger = logging.getLogger(__name__)

SUMMARY_PROBE = "Project overview and architecture"

SYSTEM_PROMPT = """You are a technical architect. You MUST respond ONLY with a valid JSON object, nothing else.
Do not include markdown code blocks or any other text.
If you cannot analyze the code, still return valid JSON with appropriate default values.

Response format (ALWAYS valid JSON):
{
  "summary": "A concise 1-paragraph summary of the project",
  "techStack": ["technology1", "technology2"],
  "patterns": ["pattern1", "pattern2", "pattern3"]
}"""

EMPTY_CONTEXT_SUMMARY = (
    "Repository ingestion completed but no code context could be retrieved. "
    "Please ensure the repository was successfully ingested."
)
DEFAULT_SUMMARY = (
    "A full-stack application for managing and analyzing codebases with AI-powered insights."
)
DEFAULT_PATTERNS: tuple[str, ...] = ("Component-based Architecture", "REST API", "Event-driven")

LANGUAGE_BY_EXTENSION = {
    "ts": "TypeScript",
    "tsx": "TypeScript",
    "js": "JavaScript",
    "jsx": "JavaScript",
    "py": "Python",
    "java": "Java",
    "cpp": "C++",
    "c": "C",
    "rs": "Rust",
    "go": "Go",
    "rb": "Ruby",
    "php": "PHP",
    "sql": "SQL",
    "json": "JSON",
    "yaml": "YAML",
    "html": "HTML",
    "css": "CSS",
}

_CODE_FENCE_OPEN = re.compile(r"^```(?:json)?\n?")
_CODE_FENCE_CLOSE = re.compile(r"\n?```$")


class SummaryCompleter(Protocol):
    async def complete(self, system: str, prompt: str) -> str: ...


@dataclass(slots=True)
class RepositoryStats:
    files: int = 0
    lines: str = "0k"
    languages: int = 0


@dataclass(slots=True)
class Analysis:
    summary: str
    tech_stack: List[str]
    patterns: List[str]


@dataclass(slots=True)
class RepositorySummary:
    summary: str
    tech_stack: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
    stats: RepositoryStats = field(default_factory=RepositoryStats)


@dataclass(slots=True)
class ParsedAnalysis:
    """The model answered with a JSON object; missing fields use defaults."""

    analysis: Analysis


@dataclass(slots=True)
class FallbackAnalysis:
    """The model answer was not a JSON object; every field uses its default."""

    analysis: Analysis
    reason: str


AnalysisOutcome = Union[ParsedAnalysis, FallbackAnalysis]


@dataclass(slots=True)
class SourceProfile:
    sources: List[str]
    total_lines: int
    languages: List[str]

    @property
    def stats(self) -> RepositoryStats:
        return RepositoryStats(
            files=len(self.sources),
            lines=f"{self.total_lines / 1000:.1f}k",
            languages=len(self.languages),
        )


def language_for(source: str) -> str | None:
    extension = source.rsplit(".", 1)[-1]
    return LANGUAGE_BY_EXTENSION.get(extension)


def profile_matches(matches: Iterable[Match]) -> SourceProfile:
    """Derive distinct sources, an approximate line count and languages."""

    sources: dict[str, None] = {}
    languages: dict[str, None] = {}
    total_lines = 0
    for match in matches:
        source = match.source
        if source:
            sources.setdefault(source, None)
            language = language_for(source)
            if language:
                languages.setdefault(language, None)
        text = match.text
        if text:
            total_lines += text.count("\n") + 1
    return SourceProfile(sources=list(sources), total_lines=total_lines, languages=list(languages))


def strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _CODE_FENCE_CLOSE.sub("", _CODE_FENCE_OPEN.sub("", cleaned, count=1), count=1)
    return cleaned


def parse_analysis(raw_text: str, defaults: Analysis) -> AnalysisOutcome:
    """Read the model's JSON answer, falling back field by field to ``defaults``."""

    try:
        payload: Any = json.loads(strip_code_fence(raw_text))
    except ValueError as exc:
        return FallbackAnalysis(analysis=_copy(defaults), reason=f"invalid JSON: {exc}")
    if not isinstance(payload, dict):
        return FallbackAnalysis(
            analysis=_copy(defaults), reason=f"expected an object, got {type(payload).__name__}"
        )

    summary = payload.get("summary")
    tech_stack = payload.get("techStack")
    patterns = payload.get("patterns")
    return ParsedAnalysis(
        analysis=Analysis(
            summary=summary if isinstance(summary, str) and summary else defaults.summary,
            tech_stack=_strings(tech_stack) if isinstance(tech_stack, list) else list(defaults.tech_stack),
            patterns=_strings(patterns) if isinstance(patterns, list) else list(defaults.patterns),
        )
    )


def _strings(values: list[Any]) -> List[str]:
    return [value for value in values if isinstance(value, str)]


def _copy(analysis: Analysis) -> Analysis:
    return Analysis(
        summary=analysis.summary,
        tech_stack=list(analysis.tech_stack),
        patterns=list(analysis.patterns),
    )


async def summarize(
    namespace: str,
    *,
    embedder: retrieval.QueryEmbedder,
    store: retrieval.QueryStore,
    completer: SummaryCompleter,
    top_k: int = 100,
) -> RepositorySummary:
    """Retrieve overview context for ``namespace`` and ask the model to describe it.

    With no retrievable context a canned answer is returned and the model is
    never called. Unusable model output never fails the request.
    """

    matches = await retrieval.retrieve(
        SUMMARY_PROBE, namespace, embedder=embedder, store=store, top_k=top_k
    )
    context = retrieval.build_context(matches)
    if not context:
        logger.info("No context found for namespace=%s", namespace or "(default)")
        return RepositorySummary(summary=EMPTY_CONTEXT_SUMMARY)

    profile = profile_matches(matches)
    logger.info(
        "Summarizing namespace=%s from %s sources, context length %s",
        namespace or "(default)",
        len(profile.sources),
        len(context),
    )
    prompt = (
        "Analyze the provided code context and return a JSON response.\n\n"
        f"Context from codebase:\n{context}"
    )
    raw_text = await completer.complete(SYSTEM_PROMPT, prompt)

    defaults = Analysis(
        summary=DEFAULT_SUMMARY,
        tech_stack=list(profile.languages),
        patterns=list(DEFAULT_PATTERNS),
    )
    outcome = parse_analysis(raw_text, defaults)
    if isinstance(outcome, FallbackAnalysis):
        logger.warning(
            "Failed to parse analysis JSON (%s); response was: %s",
            outcome.reason,
            raw_text[:200],
        )

    return RepositorySummary(
        summary=outcome.analysis.summary,
        tech_stack=outcome.analysis.tech_stack,
        patterns=outcome.analysis.patterns,
        stats=profile.stats,
    )
