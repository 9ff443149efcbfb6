"""
Surface-level source pattern detection.

Detectors read source text only; nothing is imported or executed. They
understand enough JavaScript/TypeScript and Python syntax to count
imports, functions, branches and loops, and they count references to the
legacy SDK by a configurable marker (``base44`` by default).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_LEGACY_MARKER = "base44"

# CRUD-shaped calls and domain namespaces
API_CALL_PATTERNS: dict[str, re.Pattern[str]] = {
    "create": re.compile(r"\b(?:create|add|insert)\w*\s*\("),
    "read": re.compile(r"\b(?:get|fetch|read|find)\w*\s*\("),
    "update": re.compile(r"\b(?:update|edit|modify|save)\w*\s*\("),
    "delete": re.compile(r"\b(?:delete|remove|destroy)\w*\s*\("),
    "assessments": re.compile(r"\bassessments?\."),
    "users": re.compile(r"\busers?\."),
    "teams": re.compile(r"\bteams?\."),
    "content": re.compile(r"\bcontent\.|\bposts?\."),
    "ai": re.compile(r"\bai\.|\bcoaching\.|\bchat\.|\brag\."),
}

DOMAIN_ENTITIES: tuple[str, ...] = (
    "Assessment",
    "User",
    "Team",
    "Content",
    "Post",
    "PilarAssessment",
    "UserProfile",
    "StudyGroup",
    "PeerFeedback",
    "Challenge",
    "Trophy",
    "Badge",
    "MasteryLevel",
    "Analytics",
    "CoachConversation",
    "DevelopmentPlan",
)

BUILTIN_HOOKS: tuple[str, ...] = ("useState", "useEffect", "useCallback", "useMemo")
MODERN_HOOKS: tuple[str, ...] = (
    "useApi",
    "useRest",
    "useMigrated",
    "useMigratedEntity",
    "useAssessment",
    "useUser",
    "useTeam",
)

_FUNCTIONS = re.compile(
    r"\bfunction\s+\w+|\bconst\s+\w+\s*=\s*(?:async\s*)?\(|^\s*(?:async\s+)?def\s+\w+",
    re.MULTILINE,
)
_BRANCHES = re.compile(r"\bif\b|\belif\b|\belse\b|\bswitch\b|\bcase\b")
_LOOPS = re.compile(r"\bfor\b|\bwhile\b|\.(?:map|filter|forEach)\s*\(")

_JS_IMPORT = re.compile(r"""\bimport\s+(?:[\w\s{},*$]*?\s+from\s+)?['"]([^'"]+)['"]""")
_JS_REQUIRE = re.compile(r"""\brequire\(\s*['"]([^'"]+)['"]\s*\)""")
_PY_FROM_IMPORT = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\b", re.MULTILINE)
_PY_IMPORT = re.compile(r"^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)\s*$", re.MULTILINE)

INTERNAL_PREFIXES = ("@/", "./", "../", ".")


class Level(str, Enum):
    """Three-step scale used for complexity, risk and priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {Level.LOW: 1, Level.MEDIUM: 2, Level.HIGH: 3}[self]


@dataclass(frozen=True)
class Complexity:
    """Size and control-flow counts of one artifact."""

    lines: int = 0
    functions: int = 0
    branches: int = 0
    loops: int = 0

    @property
    def level(self) -> Level:
        if self.lines > 200 or self.functions > 10 or self.branches > 15 or self.loops > 10:
            return Level.HIGH
        if self.lines > 100 or self.functions > 5 or self.branches > 8 or self.loops > 5:
            return Level.MEDIUM
        return Level.LOW


@dataclass(frozen=True)
class Dependencies:
    """Imported modules of one artifact."""

    modules: tuple[str, ...] = ()
    legacy_marker: str = DEFAULT_LEGACY_MARKER

    @property
    def total(self) -> int:
        return len(self.modules)

    @property
    def internal(self) -> int:
        return sum(1 for m in self.modules if m.startswith(INTERNAL_PREFIXES))

    @property
    def external(self) -> int:
        return self.total - self.internal

    @property
    def has_legacy_dependency(self) -> bool:
        marker = self.legacy_marker.lower()
        return any(marker in m.lower() for m in self.modules)

    @property
    def has_rest_dependency(self) -> bool:
        """A REST/API client is already imported (legacy clients excluded)."""
        marker = self.legacy_marker.lower()
        return any(
            ("api" in m.lower() or "rest" in m.lower()) and marker not in m.lower()
            for m in self.modules
        )


@dataclass(frozen=True)
class PatternCounts:
    """
    Everything the detectors found in one artifact.

    Attributes:
        legacy_references: Occurrences of the legacy SDK marker
        api_calls: Matches per API call pattern
        entities: Occurrences per referenced domain entity
        hooks: Occurrences per data-fetching hook
        complexity: Size and control-flow counts
        dependencies: Imported modules
    """

    legacy_references: int = 0
    api_calls: dict[str, int] = field(default_factory=dict)
    entities: dict[str, int] = field(default_factory=dict)
    hooks: dict[str, int] = field(default_factory=dict)
    complexity: Complexity = field(default_factory=Complexity)
    dependencies: Dependencies = field(default_factory=Dependencies)

    @property
    def total_api_calls(self) -> int:
        return sum(self.api_calls.values())

    @property
    def primary_entity(self) -> str | None:
        """Most referenced entity (first detected wins a tie)."""
        if not self.entities:
            return None
        return max(self.entities.items(), key=lambda item: item[1])[0]

    @property
    def uses_modern_hooks(self) -> bool:
        return any(hook in MODERN_HOOKS for hook in self.hooks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "legacy_references": self.legacy_references,
            "api_calls": dict(self.api_calls),
            "entities": dict(self.entities),
            "primary_entity": self.primary_entity,
            "hooks": dict(self.hooks),
            "complexity": {
                "lines": self.complexity.lines,
                "functions": self.complexity.functions,
                "branches": self.complexity.branches,
                "loops": self.complexity.loops,
                "level": self.complexity.level.value,
            },
            "dependencies": {
                "total": self.dependencies.total,
                "internal": self.dependencies.internal,
                "external": self.dependencies.external,
                "legacy": self.dependencies.has_legacy_dependency,
                "rest": self.dependencies.has_rest_dependency,
            },
        }


def count_legacy_references(code: str, marker: str = DEFAULT_LEGACY_MARKER) -> int:
    """Count identifiers and strings mentioning the legacy marker."""
    pattern = re.compile(rf"\w*{re.escape(marker)}\w*", re.IGNORECASE)
    return len(pattern.findall(code))


def count_api_calls(code: str) -> dict[str, int]:
    return {name: len(pattern.findall(code)) for name, pattern in API_CALL_PATTERNS.items()}


def count_words(code: str, words: tuple[str, ...]) -> dict[str, int]:
    """Occurrences of each whole word, keeping only the ones found."""
    counts = {}
    for word in words:
        found = len(re.findall(rf"\b{re.escape(word)}\b", code))
        if found:
            counts[word] = found
    return counts


def measure_complexity(code: str) -> Complexity:
    return Complexity(
        lines=code.count("\n") + 1 if code else 0,
        functions=len(_FUNCTIONS.findall(code)),
        branches=len(_BRANCHES.findall(code)),
        loops=len(_LOOPS.findall(code)),
    )


def parse_imports(code: str) -> list[str]:
    """Imported module names, JavaScript and Python syntax alike."""
    modules = _JS_IMPORT.findall(code) + _JS_REQUIRE.findall(code)
    modules.extend(_PY_FROM_IMPORT.findall(code))
    for group in _PY_IMPORT.findall(code):
        modules.extend(name.strip() for name in group.split(","))
    return modules


def detect_patterns(
    code: str,
    *,
    legacy_marker: str = DEFAULT_LEGACY_MARKER,
    entities: tuple[str, ...] = DOMAIN_ENTITIES,
) -> PatternCounts:
    """
    Run every detector over one artifact.

    Args:
        code: Source text
        legacy_marker: Token identifying the legacy SDK
        entities: Domain entity names to look for

    Returns:
        PatternCounts
    """
    return PatternCounts(
        legacy_references=count_legacy_references(code, legacy_marker),
        api_calls=count_api_calls(code),
        entities=count_words(code, entities),
        hooks=count_words(code, BUILTIN_HOOKS + MODERN_HOOKS + ("use" + legacy_marker.capitalize(),)),
        complexity=measure_complexity(code),
        dependencies=Dependencies(tuple(parse_imports(code)), legacy_marker),
    )


__all__ = [
    "Level",
    "Complexity",
    "Dependencies",
    "PatternCounts",
    "API_CALL_PATTERNS",
    "DOMAIN_ENTITIES",
    "BUILTIN_HOOKS",
    "MODERN_HOOKS",
    "DEFAULT_LEGACY_MARKER",
    "count_legacy_references",
    "count_api_calls",
    "count_words",
    "measure_complexity",
    "parse_imports",
    "detect_patterns",
]
