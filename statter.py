#!/usr/bin/env python3
"""
Repository Statistics Pipeline (repo-statter)

Streams `git log --numstat` output through an incremental parser and a set of
independent aggregators, producing the analytics bundle a report renders as
charts:

- Growth over time (date-bucketed and commit-indexed series)
- Per-contributor statistics
- Per-file metrics (size, churn, heat, language, category)
- Commit-message word frequencies
- Top-N file rankings and commit/contributor awards

The history is never materialized: each commit record is handed to every
aggregator and then released.

Version: 1.0.0
"""

import bisect
import codecs
import cProfile
import email.utils
import hashlib
import io
import json
import logging
import math
import os
import pstats
import re
import subprocess
import sys
import tempfile
import time
from collections import Counter
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from functools import lru_cache
from importlib import metadata
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

import click
import psutil
import yaml
from colorama import Fore, Style, init as colorama_init
from tqdm import tqdm

colorama_init(autoreset=True)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"
SCHEMA_VERSION = "1.0.0"

MAX_TIME_SERIES_BUCKETS = 50
MEMORY_CHECK_INTERVAL = 5000


# ============================================================================
# ERRORS
# ============================================================================


class StatterError(Exception):
    """Base class for every error raised by the pipeline."""


class ConfigurationError(StatterError, ValueError):
    """Invalid analysis settings. Raised before any input is consumed."""


class GitCommandError(StatterError, RuntimeError):
    """The git log producer could not be started or exited non-zero."""


class AnalysisError(StatterError):
    """Unexpected failure during the streaming pass. No bundle is returned."""


# ============================================================================
# ENUMS & DEFAULT TABLES
# ============================================================================


class FileStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


class FileCategory(str, Enum):
    APPLICATION = "application"
    TEST = "test"
    BUILD = "build"
    DOCUMENTATION = "documentation"
    OTHER = "other"


class ContributorIdentity(str, Enum):
    """How commits are grouped into contributors."""

    NAME = "name"
    NAME_EMAIL = "name_email"


class Granularity(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class ParserState(Enum):
    AWAITING_COMMIT = "awaiting_commit"
    IN_COMMIT_HEADER = "in_commit_header"
    IN_MESSAGE = "in_message"
    IN_NUMSTAT = "in_numstat"


LANGUAGE_MAP = {
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".css": "CSS",
    ".scss": "SCSS",
    ".sass": "SCSS",
    ".html": "HTML",
    ".json": "JSON",
    ".md": "Markdown",
    ".rst": "reStructuredText",
    ".txt": "Text",
    ".adoc": "AsciiDoc",
    ".py": "Python",
    ".java": "Java",
    ".cpp": "C++",
    ".cc": "C++",
    ".cxx": "C++",
    ".hpp": "C++",
    ".c": "C",
    ".h": "C",
    ".cs": "C#",
    ".go": "Go",
    ".rs": "Rust",
    ".php": "PHP",
    ".rb": "Ruby",
    ".swift": "Swift",
    ".kt": "Kotlin",
    ".scala": "Scala",
    ".r": "R",
    ".lua": "Lua",
    ".pl": "Perl",
    ".pm": "Perl",
    ".sql": "SQL",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".xml": "XML",
    ".toml": "TOML",
    ".ini": "INI",
    ".cfg": "Config",
    ".conf": "Config",
    ".properties": "Properties",
    ".env": "Environment",
    ".sh": "Shell",
    ".bash": "Shell",
    ".zsh": "Shell",
    ".fish": "Shell",
    ".ps1": "PowerShell",
    ".psm1": "PowerShell",
    ".bat": "Batch",
    ".cmd": "Batch",
    ".gradle": "Gradle",
    ".mk": "Makefile",
    ".dockerfile": "Dockerfile",
    ".vim": "VimScript",
}

SPECIAL_FILENAMES = {
    "dockerfile": "Dockerfile",
    "makefile": "Makefile",
    "gnumakefile": "Makefile",
    "cmakelists.txt": "CMake",
    ".gitignore": "Git",
    ".gitattributes": "Git",
}

# Languages whose category is not APPLICATION
_BUILD_LANGUAGES = {
    "JSON", "YAML", "XML", "TOML", "INI", "Config", "Properties", "Environment",
    "Shell", "PowerShell", "Batch", "Gradle", "Makefile", "Dockerfile",
    "VimScript",
}
_DOCUMENTATION_LANGUAGES = {"Markdown", "reStructuredText", "Text", "AsciiDoc"}


def _default_extension_categories() -> Dict[str, FileCategory]:
    categories = {}
    for ext, language in LANGUAGE_MAP.items():
        if language in _BUILD_LANGUAGES:
            categories[ext] = FileCategory.BUILD
        elif language in _DOCUMENTATION_LANGUAGES:
            categories[ext] = FileCategory.DOCUMENTATION
        else:
            categories[ext] = FileCategory.APPLICATION
    return categories


DEFAULT_EXTENSION_CATEGORIES = _default_extension_categories()

DEFAULT_BUILD_FILENAMES = frozenset(
    {
        "makefile",
        "gnumakefile",
        "dockerfile",
        "cmakelists.txt",
        "package.json",
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "pyproject.toml",
        "setup.py",
        "setup.cfg",
        "requirements.txt",
        "pipfile",
        "pipfile.lock",
        "poetry.lock",
        "cargo.toml",
        "cargo.lock",
        "go.mod",
        "go.sum",
        "gemfile",
        "gemfile.lock",
        "pom.xml",
        "build.gradle",
        "tsconfig.json",
        ".gitignore",
        ".gitattributes",
    }
)

# Matched against "/" + lowercased path
DEFAULT_TEST_PATTERNS = (
    ".test.",
    ".spec.",
    "/test/",
    "/tests/",
    "/__tests__/",
    "/spec/",
    "/test_",
    "_test.",
)

DEFAULT_STOP_WORDS = frozenset(
    {
        "the", "is", "are", "was", "were", "been", "be", "have", "has", "had",
        "do", "does", "did", "will", "would", "should", "could", "may", "might",
        "must", "can", "a", "an", "and", "or", "but", "in", "on", "at", "to",
        "for", "of", "with", "by", "from", "up", "about", "into", "through",
        "during", "before", "after", "above", "below", "between", "under",
        "since", "without", "within", "along", "following", "across", "behind",
        "beyond", "plus", "except", "yet", "so", "if", "then", "than", "such",
        "both", "either", "neither", "all", "each", "every", "any", "some", "no",
        "not", "only", "just", "also", "very", "too", "quite", "almost",
        "always", "often", "never", "seldom", "rarely", "usually", "generally",
        "sometimes", "now", "once", "twice", "first", "second", "last", "next",
        "previous", "few", "many", "much", "more", "most", "less", "least",
        "own", "same", "other", "another", "what", "which", "who", "whom",
        "whose", "where", "when", "why", "how", "here", "there", "everywhere",
        "anywhere", "somewhere", "nowhere", "this", "that", "these", "those",
        "it", "its", "they", "them", "their", "theirs", "we", "us", "our",
        "ours", "you", "your", "yours", "he", "him", "his", "she", "her",
        "hers", "i", "me", "my", "mine", "myself", "yourself", "himself",
        "herself", "itself", "ourselves", "yourselves", "themselves", "yes",
        "as", "because", "while", "until", "although", "though", "unless",
        "however", "therefore", "thus", "hence", "moreover", "furthermore",
        "meanwhile",
        # VCS boilerplate
        "commit", "commits", "merge", "merged", "merging", "branch", "pull",
        "request", "remote", "tracking", "origin", "signed", "off", "authored",
    }
)

MERGE_MESSAGE_PREFIXES = (
    "merge remote-tracking branch",
    "merge branch",
    "resolved conflicts",
)


# ============================================================================
# DATA STRUCTURES & MODELS
# ============================================================================


@dataclass(frozen=True)
class FileChange:
    """
    One numstat entry. `additions`/`deletions` are None only for binary
    files, where git prints `-` in both columns.
    """

    path: str
    additions: Optional[int]
    deletions: Optional[int]
    status: FileStatus = FileStatus.MODIFIED
    old_path: Optional[str] = None

    @property
    def is_binary(self) -> bool:
        return self.additions is None and self.deletions is None

    @property
    def lines_added(self) -> int:
        return self.additions or 0

    @property
    def lines_deleted(self) -> int:
        return self.deletions or 0

    @property
    def net_lines(self) -> int:
        return self.lines_added - self.lines_deleted


@dataclass(frozen=True)
class CommitRecord:
    sha: str
    author_name: str
    author_email: str
    timestamp: datetime
    message: str
    file_changes: Tuple[FileChange, ...] = ()

    @property
    def lines_added(self) -> int:
        return sum(change.lines_added for change in self.file_changes)

    @property
    def lines_deleted(self) -> int:
        return sum(change.lines_deleted for change in self.file_changes)

    @property
    def net_lines(self) -> int:
        return self.lines_added - self.lines_deleted

    def is_merge_like(self) -> bool:
        """Merge and conflict-resolution commits, which distort awards."""
        message = self.message.lower()
        return message.startswith(MERGE_MESSAGE_PREFIXES) or (
            "merge pull request" in message
        )


@dataclass
class PartialCommit:
    """The commit currently being assembled by the parser."""

    sha: str
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    timestamp: Optional[datetime] = None
    message_lines: Optional[List[str]] = None
    file_changes: List[FileChange] = field(default_factory=list)

    def is_complete(self) -> bool:
        return bool(
            self.sha
            and self.author_name
            and self.author_email
            and self.timestamp is not None
            and self.message_lines is not None
        )

    def build(self) -> CommitRecord:
        return CommitRecord(
            sha=self.sha,
            author_name=self.author_name,
            author_email=self.author_email,
            timestamp=self.timestamp,
            message="\n".join(self.message_lines).strip(),
            file_changes=tuple(self.file_changes),
        )


@dataclass(frozen=True)
class ProgressEvent:
    processed: int
    total: Optional[int]
    percentage: Optional[int]
    complete: bool = False


@dataclass
class CategoryBreakdown:
    total: int = 0
    application: int = 0
    test: int = 0
    build: int = 0
    documentation: int = 0
    other: int = 0

    def add(self, category: FileCategory, value: int):
        self.total += value
        setattr(self, category.value, getattr(self, category.value) + value)

    def merge(self, other: "CategoryBreakdown", sign: int = 1):
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + sign * getattr(other, f.name))

    def copy(self) -> "CategoryBreakdown":
        return replace(self)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class TimeSeriesPoint:
    bucket_start: date
    commit_count: int
    lines_added: CategoryBreakdown
    lines_deleted: CategoryBreakdown
    cumulative_lines: CategoryBreakdown
    bytes_added: CategoryBreakdown
    bytes_deleted: CategoryBreakdown
    cumulative_bytes: CategoryBreakdown
    commit_shas: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket_start": self.bucket_start.isoformat(),
            "commit_count": self.commit_count,
            "lines_added": self.lines_added.to_dict(),
            "lines_deleted": self.lines_deleted.to_dict(),
            "cumulative_lines": self.cumulative_lines.to_dict(),
            "bytes_added": self.bytes_added.to_dict(),
            "bytes_deleted": self.bytes_deleted.to_dict(),
            "cumulative_bytes": self.cumulative_bytes.to_dict(),
            "commit_shas": list(self.commit_shas),
        }


@dataclass
class LinearSeriesPoint:
    commit_index: int
    sha: str
    timestamp: datetime
    lines_added: int
    lines_deleted: int
    net_lines: int
    cumulative_lines: int
    cumulative_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class ContributorStats:
    canonical_name: str
    emails: set = field(default_factory=set)
    commits: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    files_modified: set = field(default_factory=set)
    first_commit: Optional[datetime] = None
    last_commit: Optional[datetime] = None

    @property
    def average_lines_changed(self) -> float:
        if not self.commits:
            return 0.0
        return (self.lines_added + self.lines_deleted) / self.commits

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canonical_name": self.canonical_name,
            "emails": sorted(self.emails),
            "commits": self.commits,
            "lines_added": self.lines_added,
            "lines_deleted": self.lines_deleted,
            "files_modified": len(self.files_modified),
            "first_commit": self.first_commit.isoformat() if self.first_commit else None,
            "last_commit": self.last_commit.isoformat() if self.last_commit else None,
        }


@dataclass
class FileMetrics:
    """
    Per-path history metrics. `raw_lines` is the unclamped running
    additions - deletions; `current_lines` floors it at zero for display.
    """

    path: str
    language: str
    category: FileCategory
    raw_lines: int = 0
    total_commits: int = 0
    total_churn: int = 0
    complexity: Optional[float] = None
    first_appeared: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    contributors: set = field(default_factory=set)
    heat_score: float = 0.0

    @property
    def current_lines(self) -> int:
        return max(0, self.raw_lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "language": self.language,
            "category": self.category.value,
            "current_lines": self.current_lines,
            "raw_lines": self.raw_lines,
            "total_commits": self.total_commits,
            "total_churn": self.total_churn,
            "complexity": self.complexity,
            "first_appeared": (
                self.first_appeared.isoformat() if self.first_appeared else None
            ),
            "last_modified": (
                self.last_modified.isoformat() if self.last_modified else None
            ),
            "contributors": sorted(self.contributors),
            "heat_score": round(self.heat_score, 4),
        }


@dataclass(frozen=True)
class WordFrequencyEntry:
    word: str
    weight: int


@dataclass(frozen=True)
class RankedFile:
    path: str
    value: float
    percentage: float


@dataclass
class Rankings:
    largest: List[RankedFile] = field(default_factory=list)
    most_churn: List[RankedFile] = field(default_factory=list)
    most_complex: List[RankedFile] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CommitAward:
    sha: str
    author_name: str
    timestamp: datetime
    message: str
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sha": self.sha,
            "author_name": self.author_name,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "value": self.value,
        }


@dataclass(frozen=True)
class ContributorAward:
    name: str
    commits: int
    average_lines_changed: float


@dataclass
class Awards:
    most_files_modified: List[CommitAward] = field(default_factory=list)
    most_bytes_added: List[CommitAward] = field(default_factory=list)
    most_bytes_removed: List[CommitAward] = field(default_factory=list)
    most_lines_added: List[CommitAward] = field(default_factory=list)
    most_lines_removed: List[CommitAward] = field(default_factory=list)
    lowest_average_lines_changed: List[ContributorAward] = field(default_factory=list)
    highest_average_lines_changed: List[ContributorAward] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            entries = getattr(self, f.name)
            data[f.name] = [
                entry.to_dict() if isinstance(entry, CommitAward) else asdict(entry)
                for entry in entries
            ]
        return data


@dataclass
class PerformanceMetrics:
    """Timing and resource counters for one analysis run"""

    commits_processed: int = 0
    commits_dropped: int = 0
    lines_dropped: int = 0
    chunks_processed: int = 0
    bytes_read: int = 0
    aggregator_times: Dict[str, float] = field(default_factory=dict)
    memory_peak_mb: float = 0.0
    total_time: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "commits_processed": self.commits_processed,
            "commits_dropped": self.commits_dropped,
            "lines_dropped": self.lines_dropped,
            "chunks_processed": self.chunks_processed,
            "bytes_read": self.bytes_read,
            "aggregator_times": {
                name: round(seconds, 4)
                for name, seconds in self.aggregator_times.items()
            },
            "memory_peak_mb": round(self.memory_peak_mb, 2),
            "total_time_seconds": round(self.total_time, 2),
        }


@dataclass
class AnalysisBundle:
    """Everything one run produces, handed to the report builder."""

    commits_processed: int
    granularity: Optional[Granularity]
    time_series: List[TimeSeriesPoint]
    linear_series: List[LinearSeriesPoint]
    contributors: Dict[str, ContributorStats]
    file_metrics: Dict[str, FileMetrics]
    word_frequencies: List[WordFrequencyEntry]
    rankings: Rankings
    awards: Awards
    generated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def word_frequency_map(self) -> Dict[str, int]:
        return {entry.word: entry.weight for entry in self.word_frequencies}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "generated_at": self.generated_at.isoformat(),
            "commits_processed": self.commits_processed,
            "granularity": self.granularity.value if self.granularity else None,
            "time_series": [point.to_dict() for point in self.time_series],
            "linear_series": [point.to_dict() for point in self.linear_series],
            "contributors": {
                key: stats.to_dict() for key, stats in self.contributors.items()
            },
            "file_metrics": {
                path: metrics.to_dict() for path, metrics in self.file_metrics.items()
            },
            "word_frequencies": self.word_frequency_map,
            "rankings": self.rankings.to_dict(),
            "awards": self.awards.to_dict(),
        }


# ============================================================================
# FILE CATEGORIZATION
# ============================================================================


def _classify(
    path: str,
    test_patterns: Iterable[str],
    extension_categories: Mapping[str, FileCategory],
    build_filenames: FrozenSet[str],
) -> FileCategory:
    lowered = path.lower()
    if any(pattern in "/" + lowered for pattern in test_patterns):
        return FileCategory.TEST

    name = lowered.rsplit("/", 1)[-1]
    ext = os.path.splitext(name)[1]
    if name in build_filenames:
        return FileCategory.BUILD

    return extension_categories.get(ext, FileCategory.OTHER)


@lru_cache(maxsize=8192)
def categorize(path: str) -> FileCategory:
    """
    Classify a path with the default tables.

    Order: test markers, build files, documentation extensions,
    application extensions, everything else.
    """
    return _classify(
        path, DEFAULT_TEST_PATTERNS, DEFAULT_EXTENSION_CATEGORIES, DEFAULT_BUILD_FILENAMES
    )


class FileCategorizer:
    """Categorizer bound to custom heuristics tables, memoized per path"""

    def __init__(
        self,
        test_patterns: Optional[Iterable[str]] = None,
        extension_categories: Optional[Mapping[str, FileCategory]] = None,
        build_filenames: Optional[Iterable[str]] = None,
    ):
        self.test_patterns = tuple(
            p.lower() for p in (test_patterns or DEFAULT_TEST_PATTERNS)
        )
        self.extension_categories = dict(
            extension_categories or DEFAULT_EXTENSION_CATEGORIES
        )
        self.build_filenames = frozenset(
            n.lower() for n in (build_filenames or DEFAULT_BUILD_FILENAMES)
        )
        self._cache: Dict[str, FileCategory] = {}

    def categorize(self, path: str) -> FileCategory:
        category = self._cache.get(path)
        if category is None:
            category = _classify(
                path, self.test_patterns, self.extension_categories, self.build_filenames
            )
            self._cache[path] = category
        return category


@lru_cache(maxsize=8192)
def get_language(path: str) -> str:
    name = path.rsplit("/", 1)[-1].lower()
    if name in SPECIAL_FILENAMES:
        return SPECIAL_FILENAMES[name]
    ext = os.path.splitext(name)[1]
    if not ext:
        return "Other"
    return LANGUAGE_MAP.get(ext, ext)


# ============================================================================
# CONFIGURATION
# ============================================================================


@dataclass
class AnalysisConfig:
    """Settings accepted by the orchestrator. Call validate() before use."""

    max_commits: Optional[int] = None
    progress_interval: int = 100
    top_n: int = 5
    stop_words: FrozenSet[str] = DEFAULT_STOP_WORDS
    min_word_length: int = 3
    test_patterns: Tuple[str, ...] = DEFAULT_TEST_PATTERNS
    extension_categories: Dict[str, FileCategory] = field(
        default_factory=lambda: dict(DEFAULT_EXTENSION_CATEGORIES)
    )
    build_filenames: FrozenSet[str] = DEFAULT_BUILD_FILENAMES
    bytes_per_line: int = 50
    contributor_identity: ContributorIdentity = ContributorIdentity.NAME
    award_min_commits: int = 1
    exclude_merge_commits: bool = True
    heat_frequency_weight: float = 0.4
    heat_recency_weight: float = 0.6
    heat_recency_decay_days: float = 30.0
    chunk_size: int = 64 * 1024

    def validate(self) -> "AnalysisConfig":
        if self.max_commits is not None and (
            not isinstance(self.max_commits, int) or self.max_commits < 0
        ):
            raise ConfigurationError(
                f"max_commits must be a non-negative integer, got {self.max_commits!r}"
            )
        for name in ("progress_interval", "top_n", "bytes_per_line", "chunk_size"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(
                    f"{name} must be a positive integer, got {value!r}"
                )
        if self.award_min_commits < 1:
            raise ConfigurationError("award_min_commits must be at least 1")
        if self.min_word_length < 1:
            raise ConfigurationError("min_word_length must be at least 1")
        if self.heat_recency_decay_days <= 0:
            raise ConfigurationError("heat_recency_decay_days must be positive")
        if not isinstance(self.contributor_identity, ContributorIdentity):
            raise ConfigurationError(
                f"Unknown contributor identity: {self.contributor_identity!r}"
            )
        return self

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "AnalysisConfig":
        """Build from a config-file/CLI mapping; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in values.items():
            key = key.replace("-", "_")
            if key not in known:
                logger.warning("Ignoring unknown configuration key: %s", key)
                continue
            if value is None:
                continue
            kwargs[key] = value

        try:
            if "stop_words" in kwargs:
                kwargs["stop_words"] = frozenset(w.lower() for w in kwargs["stop_words"])
            if "test_patterns" in kwargs:
                kwargs["test_patterns"] = tuple(kwargs["test_patterns"])
            if "build_filenames" in kwargs:
                kwargs["build_filenames"] = frozenset(
                    n.lower() for n in kwargs["build_filenames"]
                )
            if "extension_categories" in kwargs:
                kwargs["extension_categories"] = {
                    ext.lower(): FileCategory(str(cat).lower())
                    for ext, cat in kwargs["extension_categories"].items()
                }
            if "contributor_identity" in kwargs:
                kwargs["contributor_identity"] = ContributorIdentity(
                    kwargs["contributor_identity"]
                )
        except (ValueError, TypeError, AttributeError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        return cls(**kwargs).validate()

    def build_categorizer(self) -> FileCategorizer:
        return FileCategorizer(
            self.test_patterns, self.extension_categories, self.build_filenames
        )

    def estimate_bytes(self, lines: int) -> int:
        # numstat carries no sizes; bytes are estimated from line counts
        return lines * self.bytes_per_line


CONFIG_FILE_NAMES = (
    ".repo-statter.yaml",
    ".repo-statter.yml",
    ".repo-statter.json",
)

PRESETS = {
    "standard": {},
    "quick": {"max_commits": 1000, "top_n": 5},
    "detailed": {"top_n": 10, "progress_interval": 50},
}


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a YAML or JSON file."""
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    file_ext = os.path.splitext(config_path)[1].lower()

    with open(config_path, "r", encoding="utf-8") as f:
        if file_ext in [".yaml", ".yml"]:
            data = yaml.safe_load(f)
        elif file_ext == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {file_ext}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")
    return data


def find_config_file(repo_path: str) -> Optional[str]:
    """Look for a config file in the repository, then the working directory."""
    for search_dir in (repo_path, os.getcwd()):
        for config_name in CONFIG_FILE_NAMES:
            config_path = os.path.join(search_dir, config_name)
            if os.path.exists(config_path):
                return config_path
    return None


class ConfigResolver:
    """
    Resolve configuration with precedence: CLI > Config File > Preset > Defaults
    """

    def __init__(
        self,
        cli_args: Dict[str, Any],
        config_path: Optional[str],
        preset_name: Optional[str],
        repo_path: str,
    ):
        self.cli = {k: v for k, v in cli_args.items() if v is not None}
        self.config = {}
        self.source = None

        if config_path:
            self.config = load_config_file(config_path)
            self.source = config_path
        else:
            auto_path = find_config_file(repo_path)
            if auto_path:
                try:
                    self.config = load_config_file(auto_path)
                    self.source = auto_path
                except (OSError, ValueError, yaml.YAMLError) as e:
                    logger.warning("Found config file but failed to load: %s", e)

        self.config = {k.replace("-", "_"): v for k, v in self.config.items()}

        final_preset_name = preset_name or self.config.get("preset")
        if final_preset_name and final_preset_name not in PRESETS:
            raise ConfigurationError(f"Unknown preset: {final_preset_name}")
        self.preset = dict(PRESETS.get(final_preset_name, {}))

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.cli:
            return self.cli[key]
        if key in self.config:
            return self.config[key]
        if key in self.preset:
            return self.preset[key]
        return default

    def build_config(self) -> AnalysisConfig:
        values = {}
        for f in fields(AnalysisConfig):
            value = self.get(f.name)
            if value is not None:
                values[f.name] = value
        return AnalysisConfig.from_mapping(values)


# ============================================================================
# PROGRESS REPORTING & RESOURCE MONITORING
# ============================================================================


class ProgressReporter:
    """
    Console progress for the CLI: colorama colours and a tqdm commit bar.
    Core code only talks to it through stage_* and the progress handler.
    """

    def __init__(
        self, quiet: bool = False, verbose: bool = False, use_colors: bool = True
    ):
        self.quiet = quiet
        self.verbose = verbose
        self.use_colors = use_colors
        self.start_time = time.time()
        self.stage_times = {}

    def _colorize(self, text: str, color: str) -> str:
        if self.use_colors:
            return f"{color}{text}{Style.RESET_ALL}"
        return text

    def _echo(self, message: str = "", err: bool = False):
        click.echo(message, err=err)

    def stage_start(self, stage_name: str, message: str = ""):
        if self.quiet:
            return
        self.stage_times[stage_name] = time.time()

        separator = self._colorize("=" * 70, Fore.CYAN)
        self._echo(f"\n{separator}")
        self._echo(self._colorize(f"▶ {stage_name}", Fore.BLUE + Style.BRIGHT))
        if message:
            self._echo(f"   {message}")
        self._echo(separator)

    def stage_complete(self, stage_name: str, stats: Optional[Dict] = None):
        if self.quiet:
            return
        elapsed = time.time() - self.stage_times.get(stage_name, time.time())
        self._echo(
            self._colorize(
                f"✔ {stage_name} complete ({elapsed:.2f}s)", Fore.GREEN + Style.BRIGHT
            )
        )
        if stats and self.verbose:
            for key, value in stats.items():
                self._echo(f"   {key}: {value}")

    def create_progress_bar(
        self, total: Optional[int], desc: str = "Processing"
    ) -> Optional[tqdm]:
        if self.quiet:
            return None
        return tqdm(
            total=total,
            desc=self._colorize(desc, Fore.CYAN),
            unit=" commits",
            ncols=100,
        )

    def commit_progress_handler(
        self, total: Optional[int] = None
    ) -> Callable[[ProgressEvent], None]:
        """Return a parser progress callback that drives a tqdm bar."""
        bar = self.create_progress_bar(total, desc="Parsing commits")

        def handle(event: ProgressEvent):
            if bar is None:
                return
            bar.update(event.processed - bar.n)
            if event.complete:
                bar.close()

        return handle

    def info(self, message: str):
        if not self.quiet:
            self._echo(f"{self._colorize('ℹ ', Fore.BLUE)}{message}")

    def error(self, message: str):
        """Always shown"""
        self._echo(self._colorize(f"✖ ERROR: {message}", Fore.RED + Style.BRIGHT), err=True)

    def success(self, message: str):
        if not self.quiet:
            self._echo(self._colorize(f"✨ {message}", Fore.GREEN + Style.BRIGHT))

    def summary(self, stats: Dict[str, Any]):
        if self.quiet:
            return
        elapsed = time.time() - self.start_time

        separator = self._colorize("=" * 70, Fore.CYAN)
        self._echo(f"\n{separator}")
        self._echo(self._colorize("ANALYSIS SUMMARY", Fore.MAGENTA + Style.BRIGHT))
        self._echo(separator)
        for key, value in stats.items():
            self._echo(f"   {key}: {value}")
        self._echo(f"\n{self._colorize(f'Total time: {elapsed:.2f}s', Fore.YELLOW)}")
        self._echo(f"{separator}\n")


class MemoryMonitor:
    """Monitor memory usage and enforce limits"""

    def __init__(self, limit_mb: Optional[float] = None):
        self.limit_mb = limit_mb
        self.peak_mb = 0.0

    def check_memory(self) -> float:
        """Current RSS in MB; raises MemoryError past the limit"""
        memory_mb = psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024
        self.peak_mb = max(self.peak_mb, memory_mb)

        if self.limit_mb and memory_mb > self.limit_mb:
            raise MemoryError(
                f"Memory limit exceeded: {memory_mb:.1f}MB > {self.limit_mb}MB"
            )
        return memory_mb

    def get_peak(self) -> float:
        return self.peak_mb


class ProfilingContext:
    """Context manager for cProfile around a whole run"""

    def __init__(self, enabled: bool = False, output_path: Optional[str] = None):
        self.enabled = enabled
        self.output_path = output_path
        self.profiler = None

    def __enter__(self):
        if self.enabled:
            self.profiler = cProfile.Profile()
            self.profiler.enable()
        return self

    def __exit__(self, *args):
        if self.enabled and self.profiler:
            self.profiler.disable()

            if self.output_path:
                self.profiler.dump_stats(self.output_path)

            s = io.StringIO()
            ps = pstats.Stats(self.profiler, stream=s)
            ps.strip_dirs()
            ps.sort_stats("cumulative")
            ps.print_stats(20)
            click.echo(f"\n{'=' * 70}", err=True)
            click.echo("PERFORMANCE PROFILE (Top 20 functions by cumulative time)", err=True)
            click.echo(f"{'=' * 70}", err=True)
            click.echo(s.getvalue(), err=True)


# ============================================================================
# LINE BUFFER & LOG LINE PARSING
# ============================================================================


class LineBuffer:
    """
    Turns arbitrarily sized chunks into complete lines. A partial trailing
    line is held until the next chunk (or flush) completes it. Bytes are
    decoded incrementally so a UTF-8 sequence split across chunks survives.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        if isinstance(chunk, (bytes, bytearray)):
            text = self._decoder.decode(bytes(chunk))
        else:
            text = chunk
        if not text:
            return []

        lines = (self._pending + text).split("\n")
        self._pending = lines.pop()
        return [line[:-1] if line.endswith("\r") else line for line in lines]

    def flush(self) -> Optional[str]:
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        if not tail:
            return None
        return tail[:-1] if tail.endswith("\r") else tail


_AUTHOR_RE = re.compile(r"^Author:\s*(.*?)\s*<([^<>]*)>\s*$")
_NUMSTAT_RE = re.compile(r"^(\d+|-)\t(\d+|-)\t(.+)$")
_BRACE_RENAME_RE = re.compile(r"^(.*)\{(.*) => (.*)\}(.*)$")
_CREATE_DELETE_RE = re.compile(r"^ (create|delete) mode \d+ (.+)$")
_RENAME_SUMMARY_RE = re.compile(r"^ (?:rename|copy) (.+) \(\d+%\)$")
_MODE_CHANGE_RE = re.compile(r"^ mode change \d+ => \d+ .+$")

_GIT_DATE_FORMATS = (
    "%a %b %d %H:%M:%S %Y %z",  # git default
    "%Y-%m-%d %H:%M:%S %z",  # --date=iso
)


def parse_git_date(value: str) -> Optional[datetime]:
    """
    Parse a `Date:` value into an aware datetime, keeping the source offset.
    Returns None when no known format matches.
    """
    value = value.strip()
    if not value:
        return None

    for fmt in _GIT_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None
        if parsed is None:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _join_rename_part(prefix: str, middle: str, suffix: str) -> str:
    return (prefix + middle + suffix).replace("//", "/").lstrip("/")


def resolve_rename_path(path: str) -> Tuple[str, Optional[str]]:
    """
    Resolve numstat rename notation to (new_path, old_path).

    "src/{old => new}/a.py" -> ("src/new/a.py", "src/old/a.py")
    "a.py => b.py"          -> ("b.py", "a.py")
    """
    match = _BRACE_RENAME_RE.match(path)
    if match:
        prefix, old, new, suffix = match.groups()
        return (
            _join_rename_part(prefix, new, suffix),
            _join_rename_part(prefix, old, suffix),
        )
    if " => " in path:
        old, new = path.split(" => ", 1)
        return new, old
    return path, None


def parse_numstat_line(line: str) -> Optional[FileChange]:
    """Parse `<added>\\t<deleted>\\t<path>`; None if the line is not numstat."""
    match = _NUMSTAT_RE.match(line)
    if not match:
        return None

    added_str, deleted_str, raw_path = match.groups()
    if added_str == "-" and deleted_str == "-":
        additions = deletions = None
    else:
        additions = 0 if added_str == "-" else int(added_str)
        deletions = 0 if deleted_str == "-" else int(deleted_str)

    path, old_path = resolve_rename_path(raw_path)
    status = FileStatus.RENAMED if old_path else FileStatus.MODIFIED
    return FileChange(path, additions, deletions, status, old_path)


# ============================================================================
# COMMIT STREAM PARSER
# ============================================================================


class CommitStreamParser:
    """
    State machine over `git log --numstat` lines.

    AWAITING_COMMIT --"commit "--> IN_COMMIT_HEADER --blank/indent--> IN_MESSAGE
    --numstat/summary--> IN_NUMSTAT; any "commit " line emits the pending
    commit (if complete) and starts the next one.

    Records are returned by feed_line() as soon as their boundary is crossed;
    the parser keeps nothing after emitting. Once `max_commits` records have
    been emitted, `done` is set and further input is ignored.
    """

    def __init__(
        self,
        max_commits: Optional[int] = None,
        progress_interval: int = 100,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
    ):
        if max_commits is not None and max_commits < 0:
            raise ConfigurationError(f"max_commits must be >= 0, got {max_commits}")
        if progress_interval <= 0:
            raise ConfigurationError(
                f"progress_interval must be positive, got {progress_interval}"
            )

        self.max_commits = max_commits
        self.progress_interval = progress_interval
        self.on_progress = on_progress

        self.state = ParserState.AWAITING_COMMIT
        self.commits_emitted = 0
        self.commits_dropped = 0
        self.lines_dropped = 0
        self.done = max_commits == 0

        self._current: Optional[PartialCommit] = None
        self._pending_blank_lines = 0
        self._finished = False

    def feed_line(self, line: str) -> Optional[CommitRecord]:
        if self.done:
            return None

        if line.startswith("commit "):
            record = self._finalize_current()
            if not self.done:
                self._start_commit(line)
            return record

        if self._current is None:
            return None

        if self.state is ParserState.IN_COMMIT_HEADER:
            self._handle_header_line(line)
        elif self.state is ParserState.IN_MESSAGE:
            self._handle_message_line(line)
        elif self.state is ParserState.IN_NUMSTAT:
            self._handle_numstat_line(line)
        return None

    def finish(self) -> Optional[CommitRecord]:
        """End of stream: emit the pending commit if complete, final progress."""
        record = None
        if not self.done:
            record = self._finalize_current()
        self._current = None

        if not self._finished:
            self._finished = True
            self._report_progress(complete=True)
            logger.info(
                "Parsing complete: %d commits emitted, %d dropped",
                self.commits_emitted,
                self.commits_dropped,
            )
        return record

    def parse_lines(self, lines: Iterable[str]) -> Iterator[CommitRecord]:
        for line in lines:
            record = self.feed_line(line)
            if record is not None:
                yield record
            if self.done:
                break
        record = self.finish()
        if record is not None:
            yield record

    def iter_commits(self, chunks: Iterable[Union[bytes, str]]) -> Iterator[CommitRecord]:
        """Parse raw chunks, making no assumption about where they split."""
        buffer = LineBuffer()
        for chunk in chunks:
            for line in buffer.feed(chunk):
                record = self.feed_line(line)
                if record is not None:
                    yield record
                if self.done:
                    self.finish()
                    return

        tail = buffer.flush()
        if tail is not None:
            record = self.feed_line(tail)
            if record is not None:
                yield record
        record = self.finish()
        if record is not None:
            yield record

    # -- state handlers ------------------------------------------------------

    def _start_commit(self, line: str):
        parts = line[len("commit "):].split()
        if not parts:
            self._drop_line(line, "commit line without sha")
            self._current = None
            self.state = ParserState.AWAITING_COMMIT
            return
        self._current = PartialCommit(sha=parts[0])
        self._pending_blank_lines = 0
        self.state = ParserState.IN_COMMIT_HEADER

    def _handle_header_line(self, line: str):
        if not line.strip():
            self._enter_message()
            return
        if line.startswith("    "):
            self._enter_message()
            self._handle_message_line(line)
            return

        if line.startswith("Author:"):
            match = _AUTHOR_RE.match(line)
            if match and match.group(1) and match.group(2).strip():
                self._current.author_name = match.group(1)
                self._current.author_email = match.group(2).strip()
            else:
                self._drop_line(line, "unparsable author")
        elif line.startswith("Date:"):
            timestamp = parse_git_date(line[len("Date:"):])
            if timestamp is None:
                self._drop_line(line, "unparsable date")
            else:
                self._current.timestamp = timestamp
        # Merge:, Commit:, AuthorDate:, CommitDate: carry nothing we keep

    def _enter_message(self):
        self.state = ParserState.IN_MESSAGE
        if self._current.message_lines is None:
            self._current.message_lines = []

    def _handle_message_line(self, line: str):
        if line.startswith("    "):
            if self._pending_blank_lines and self._current.message_lines:
                self._current.message_lines.extend([""] * self._pending_blank_lines)
            self._pending_blank_lines = 0
            self._current.message_lines.append(line[4:])
        elif not line.strip():
            self._pending_blank_lines += 1
        else:
            self._pending_blank_lines = 0
            self.state = ParserState.IN_NUMSTAT
            self._handle_numstat_line(line)

    def _handle_numstat_line(self, line: str):
        if not line.strip():
            return

        change = parse_numstat_line(line)
        if change is not None:
            self._current.file_changes.append(change)
            return

        match = _CREATE_DELETE_RE.match(line)
        if match:
            action, raw_path = match.groups()
            status = FileStatus.ADDED if action == "create" else FileStatus.DELETED
            self._update_status(raw_path, status)
            return

        match = _RENAME_SUMMARY_RE.match(line)
        if match:
            self._update_status(match.group(1), FileStatus.RENAMED)
            return

        if _MODE_CHANGE_RE.match(line):
            return

        self._drop_line(line, "unrecognised line after message")

    def _update_status(self, raw_path: str, status: FileStatus):
        path, old_path = resolve_rename_path(raw_path)
        changes = self._current.file_changes
        for i in range(len(changes) - 1, -1, -1):
            if changes[i].path == path:
                changes[i] = replace(
                    changes[i], status=status, old_path=changes[i].old_path or old_path
                )
                return

    def _drop_line(self, line: str, reason: str):
        self.lines_dropped += 1
        logger.debug("Dropping line (%s): %.80s", reason, line)

    def _finalize_current(self) -> Optional[CommitRecord]:
        partial = self._current
        self._current = None
        self._pending_blank_lines = 0
        self.state = ParserState.AWAITING_COMMIT

        if partial is None:
            return None
        if not partial.is_complete():
            self.commits_dropped += 1
            logger.debug("Dropping incomplete commit %s", partial.sha)
            return None

        record = partial.build()
        self.commits_emitted += 1

        if self.max_commits is not None and self.commits_emitted >= self.max_commits:
            self.done = True
            logger.info("Reached maximum commits limit: %d", self.max_commits)

        if self.commits_emitted % self.progress_interval == 0:
            self._report_progress()
        return record

    def _report_progress(self, complete: bool = False):
        if self.on_progress is None:
            return
        processed = self.commits_emitted
        if complete:
            event = ProgressEvent(processed, processed, 100, complete=True)
        elif self.max_commits is None:
            event = ProgressEvent(processed, None, None)
        else:
            event = ProgressEvent(
                processed,
                self.max_commits,
                round(processed / self.max_commits * 100),
            )
        self.on_progress(event)


# ============================================================================
# BASE AGGREGATOR
# ============================================================================


class DatasetAggregator:
    """
    Base class for the analysis folds. Each aggregator receives every commit
    in stream order and shares no state with the others.
    """

    name = "dataset"

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self.processing_time = 0.0

    def process_commit(self, commit: CommitRecord):
        """Process a single commit - override in subclasses"""

    def finalize(self) -> Any:
        """Finalize aggregation - override in subclasses"""
        return None


def contributor_key(commit: CommitRecord, identity: ContributorIdentity) -> str:
    if identity is ContributorIdentity.NAME_EMAIL:
        return f"{commit.author_name} <{commit.author_email.lower()}>"
    return commit.author_name


# ============================================================================
# TIME SERIES AGGREGATORS
# ============================================================================


class _BucketStats:
    __slots__ = (
        "commit_count",
        "lines_added",
        "lines_deleted",
        "bytes_added",
        "bytes_deleted",
        "commit_shas",
    )

    def __init__(self):
        self.commit_count = 0
        self.lines_added = CategoryBreakdown()
        self.lines_deleted = CategoryBreakdown()
        self.bytes_added = CategoryBreakdown()
        self.bytes_deleted = CategoryBreakdown()
        self.commit_shas: List[str] = []

    def merge(self, other: "_BucketStats"):
        self.commit_count += other.commit_count
        self.lines_added.merge(other.lines_added)
        self.lines_deleted.merge(other.lines_deleted)
        self.bytes_added.merge(other.bytes_added)
        self.bytes_deleted.merge(other.bytes_deleted)
        self.commit_shas.extend(other.commit_shas)


def week_start(day: date) -> date:
    """Monday of the ISO week containing `day`."""
    return day - timedelta(days=day.weekday())


def _month_index(day: date) -> int:
    return day.year * 12 + day.month - 1


def _month_from_index(index: int) -> date:
    return date(index // 12, index % 12 + 1, 1)


def select_granularity(
    first_day: date, last_day: date, max_buckets: int = MAX_TIME_SERIES_BUCKETS
) -> Tuple[Granularity, int]:
    """
    Pick the bucket size for a history spanning first_day..last_day.

    Returns (granularity, stride); stride > 1 only for month buckets on
    histories longer than `max_buckets` months.
    """
    days = (last_day - first_day).days + 1
    if days <= max_buckets:
        return Granularity.DAY, 1

    weeks = (week_start(last_day) - week_start(first_day)).days // 7 + 1
    if weeks <= max_buckets:
        return Granularity.WEEK, 1

    months = _month_index(last_day) - _month_index(first_day) + 1
    return Granularity.MONTH, max(1, math.ceil(months / max_buckets))


def bucket_start(
    day: date, granularity: Granularity, origin: date, stride: int = 1
) -> date:
    if granularity is Granularity.DAY:
        return day
    if granularity is Granularity.WEEK:
        return week_start(day)
    base = _month_index(origin)
    offset = (_month_index(day) - base) // stride * stride
    return _month_from_index(base + offset)


def iter_bucket_starts(
    first_day: date, last_day: date, granularity: Granularity, stride: int = 1
) -> Iterator[date]:
    if granularity is Granularity.DAY:
        current = first_day
        while current <= last_day:
            yield current
            current += timedelta(days=1)
    elif granularity is Granularity.WEEK:
        current = week_start(first_day)
        while current <= last_day:
            yield current
            current += timedelta(days=7)
    else:
        for index in range(_month_index(first_day), _month_index(last_day) + 1, stride):
            yield _month_from_index(index)


class TimeSeriesAggregator(DatasetAggregator):
    """
    Date-bucketed growth series.

    Commits are folded into per-calendar-day stats while streaming (memory
    grows with the history's span, not its commit count). Granularity is
    chosen at finalize once the span is known, and day stats are rolled up
    into contiguous buckets with running cumulative totals.
    """

    name = "time_series"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.categorizer = self.config.build_categorizer()
        self.daily_stats: Dict[date, _BucketStats] = {}
        self.granularity: Optional[Granularity] = None
        self.stride = 1

    def process_commit(self, commit: CommitRecord):
        # UTC calendar day, whatever the author offset
        day = commit.timestamp.astimezone(timezone.utc).date()
        stats = self.daily_stats.get(day)
        if stats is None:
            stats = self.daily_stats[day] = _BucketStats()

        stats.commit_count += 1
        stats.commit_shas.append(commit.sha)
        for change in commit.file_changes:
            if change.is_binary:
                continue
            category = self.categorizer.categorize(change.path)
            stats.lines_added.add(category, change.lines_added)
            stats.lines_deleted.add(category, change.lines_deleted)
            stats.bytes_added.add(category, self.config.estimate_bytes(change.lines_added))
            stats.bytes_deleted.add(
                category, self.config.estimate_bytes(change.lines_deleted)
            )

    def finalize(self) -> List[TimeSeriesPoint]:
        if not self.daily_stats:
            return []

        first_day, last_day = min(self.daily_stats), max(self.daily_stats)
        self.granularity, self.stride = select_granularity(first_day, last_day)

        buckets = {
            start: _BucketStats()
            for start in iter_bucket_starts(
                first_day, last_day, self.granularity, self.stride
            )
        }
        for day in sorted(self.daily_stats):
            start = bucket_start(day, self.granularity, first_day, self.stride)
            buckets[start].merge(self.daily_stats[day])

        cumulative_lines = CategoryBreakdown()
        cumulative_bytes = CategoryBreakdown()
        points = []
        for start, stats in buckets.items():
            cumulative_lines.merge(stats.lines_added)
            cumulative_lines.merge(stats.lines_deleted, sign=-1)
            cumulative_bytes.merge(stats.bytes_added)
            cumulative_bytes.merge(stats.bytes_deleted, sign=-1)
            points.append(
                TimeSeriesPoint(
                    bucket_start=start,
                    commit_count=stats.commit_count,
                    lines_added=stats.lines_added,
                    lines_deleted=stats.lines_deleted,
                    cumulative_lines=cumulative_lines.copy(),
                    bytes_added=stats.bytes_added,
                    bytes_deleted=stats.bytes_deleted,
                    cumulative_bytes=cumulative_bytes.copy(),
                    commit_shas=stats.commit_shas,
                )
            )

        logger.debug(
            "Time series: %d %s buckets (stride %d)",
            len(points),
            self.granularity.value,
            self.stride,
        )
        return points


class LinearSeriesAggregator(DatasetAggregator):
    """One point per commit with running totals right after that commit."""

    name = "linear_series"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.points: List[LinearSeriesPoint] = []
        self.cumulative_lines = 0
        self.cumulative_bytes = 0

    def process_commit(self, commit: CommitRecord):
        lines_added = commit.lines_added
        lines_deleted = commit.lines_deleted
        self.cumulative_lines += lines_added - lines_deleted
        self.cumulative_bytes += self.config.estimate_bytes(
            lines_added
        ) - self.config.estimate_bytes(lines_deleted)

        self.points.append(
            LinearSeriesPoint(
                commit_index=len(self.points),
                sha=commit.sha,
                timestamp=commit.timestamp,
                lines_added=lines_added,
                lines_deleted=lines_deleted,
                net_lines=lines_added - lines_deleted,
                cumulative_lines=self.cumulative_lines,
                cumulative_bytes=self.cumulative_bytes,
            )
        )

    def finalize(self) -> List[LinearSeriesPoint]:
        return self.points


# ============================================================================
# CONTRIBUTOR & FILE AGGREGATORS
# ============================================================================


class ContributorAggregator(DatasetAggregator):
    """Group commits by author identity (name, or name + email)."""

    name = "contributors"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.contributors: Dict[str, ContributorStats] = {}

    def process_commit(self, commit: CommitRecord):
        key = contributor_key(commit, self.config.contributor_identity)
        stats = self.contributors.get(key)
        if stats is None:
            stats = self.contributors[key] = ContributorStats(
                canonical_name=commit.author_name
            )

        stats.emails.add(commit.author_email)
        stats.commits += 1
        stats.lines_added += commit.lines_added
        stats.lines_deleted += commit.lines_deleted
        stats.files_modified.update(change.path for change in commit.file_changes)
        if stats.first_commit is None or commit.timestamp < stats.first_commit:
            stats.first_commit = commit.timestamp
        if stats.last_commit is None or commit.timestamp > stats.last_commit:
            stats.last_commit = commit.timestamp

    def finalize(self) -> Dict[str, ContributorStats]:
        return self.contributors


class FileMetricsAggregator(DatasetAggregator):
    """
    Per-path history metrics for every file ever touched.

    Deleted files stay in the map. Sizes are tracked unclamped in
    `raw_lines`; `current_lines` floors them at zero.
    """

    name = "file_metrics"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.categorizer = self.config.build_categorizer()
        self.file_metrics: Dict[str, FileMetrics] = {}

    def process_commit(self, commit: CommitRecord):
        author = contributor_key(commit, self.config.contributor_identity)
        timestamp = commit.timestamp

        for change in commit.file_changes:
            metrics = self.file_metrics.get(change.path)
            if metrics is None:
                metrics = self.file_metrics[change.path] = FileMetrics(
                    path=change.path,
                    language=get_language(change.path),
                    category=self.categorizer.categorize(change.path),
                    first_appeared=timestamp,
                    last_modified=timestamp,
                )

            metrics.total_commits += 1
            metrics.raw_lines += change.net_lines
            metrics.total_churn += change.lines_added + change.lines_deleted
            metrics.contributors.add(author)
            metrics.first_appeared = min(metrics.first_appeared, timestamp)
            metrics.last_modified = max(metrics.last_modified, timestamp)

    def attach_complexity(self, scores: Mapping[str, float]) -> int:
        """Attach externally computed complexity scores; returns matches."""
        attached = 0
        for path, score in scores.items():
            metrics = self.file_metrics.get(path)
            if metrics is not None and score is not None:
                metrics.complexity = float(score)
                attached += 1
        return attached

    def finalize(self) -> Dict[str, FileMetrics]:
        if not self.file_metrics:
            return self.file_metrics

        reference = max(m.last_modified for m in self.file_metrics.values())
        for metrics in self.file_metrics.values():
            days_since = (reference - metrics.last_modified).total_seconds() / 86400
            recency = math.exp(-days_since / self.config.heat_recency_decay_days)
            metrics.heat_score = (
                metrics.total_commits * self.config.heat_frequency_weight
                + recency * self.config.heat_recency_weight
            )
        return self.file_metrics


# ============================================================================
# WORD FREQUENCY
# ============================================================================

_NON_WORD_RE = re.compile(r"[^a-z0-9\s]")


def tokenize_message(
    message: str,
    stop_words: FrozenSet[str] = DEFAULT_STOP_WORDS,
    min_word_length: int = 3,
) -> Iterator[str]:
    for word in _NON_WORD_RE.sub(" ", message.lower()).split():
        if len(word) < min_word_length or word.isdigit() or word in stop_words:
            continue
        yield word


class WordFrequencyAggregator(DatasetAggregator):
    name = "word_frequency"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.stop_words = frozenset(w.lower() for w in self.config.stop_words)
        self.counts: Counter = Counter()

    def process_commit(self, commit: CommitRecord):
        self.counts.update(
            tokenize_message(commit.message, self.stop_words, self.config.min_word_length)
        )

    def finalize(self) -> Dict[str, int]:
        return dict(self.counts)


def word_cloud(
    frequencies: Mapping[str, int],
    max_words: int = 100,
    min_size: float = 10,
    max_size: float = 80,
) -> List[Dict[str, Any]]:
    """Top words scaled linearly into [min_size, max_size] for rendering."""
    top = Counter(frequencies).most_common(max_words)
    if not top:
        return []

    highest, lowest = top[0][1], top[-1][1]
    spread = (highest - lowest) or 1
    return [
        {
            "text": word,
            "size": min_size + (max_size - min_size) * (count - lowest) / spread,
        }
        for word, count in top
    ]


# ============================================================================
# RANKINGS & AWARDS
# ============================================================================


class TopN:
    """
    Bounded top-N tracker by descending value. Earlier offers win ties, so
    results match a stable sort over the whole stream.
    """

    def __init__(self, size: int):
        self.size = size
        self._keys: List[Tuple[float, int]] = []
        self._items: List[Any] = []
        self._seq = 0

    def offer(self, value: float, item: Any):
        key = (-value, self._seq)
        self._seq += 1
        if len(self._keys) >= self.size and key >= self._keys[-1]:
            return
        index = bisect.bisect(self._keys, key)
        self._keys.insert(index, key)
        self._items.insert(index, item)
        if len(self._keys) > self.size:
            self._keys.pop()
            self._items.pop()

    def items(self) -> List[Any]:
        return list(self._items)


class CommitAwardsAggregator(DatasetAggregator):
    """
    Tracks commit-level superlatives while streaming so that no commit has
    to be retained beyond the top-N slots.
    """

    name = "commit_awards"

    METRICS = (
        "most_files_modified",
        "most_bytes_added",
        "most_bytes_removed",
        "most_lines_added",
        "most_lines_removed",
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.trackers = {metric: TopN(self.config.top_n) for metric in self.METRICS}
        self.skipped_merges = 0

    def process_commit(self, commit: CommitRecord):
        if self.config.exclude_merge_commits and commit.is_merge_like():
            self.skipped_merges += 1
            return

        lines_added = commit.lines_added
        lines_deleted = commit.lines_deleted
        values = {
            "most_files_modified": len(commit.file_changes),
            "most_bytes_added": self.config.estimate_bytes(lines_added),
            "most_bytes_removed": self.config.estimate_bytes(lines_deleted),
            "most_lines_added": lines_added,
            "most_lines_removed": lines_deleted,
        }
        for metric, value in values.items():
            self.trackers[metric].offer(
                value,
                CommitAward(
                    sha=commit.sha,
                    author_name=commit.author_name,
                    timestamp=commit.timestamp,
                    message=commit.message,
                    value=value,
                ),
            )

    def finalize(self) -> Dict[str, List[CommitAward]]:
        return {metric: tracker.items() for metric, tracker in self.trackers.items()}


class RankingAndAwardsComputer:
    """Top-N file rankings and contributor awards from finalized aggregates."""

    def __init__(self, top_n: int = 5, award_min_commits: int = 1):
        self.top_n = top_n
        self.award_min_commits = award_min_commits

    def _top_files(self, values: List[Tuple[str, float]]) -> List[RankedFile]:
        # sorted() is stable, so ties keep first-seen order
        top = sorted(values, key=lambda item: item[1], reverse=True)[: self.top_n]
        total = sum(value for _, value in top)
        return [
            RankedFile(
                path=path,
                value=value,
                percentage=round(value / total * 100, 2) if total > 0 else 0.0,
            )
            for path, value in top
        ]

    def rank_files(self, file_metrics: Mapping[str, FileMetrics]) -> Rankings:
        metrics = list(file_metrics.values())
        return Rankings(
            largest=self._top_files(
                [(m.path, m.current_lines) for m in metrics if m.current_lines > 0]
            ),
            most_churn=self._top_files([(m.path, m.total_churn) for m in metrics]),
            most_complex=self._top_files(
                [(m.path, m.complexity) for m in metrics if m.complexity is not None]
            ),
        )

    def contributor_awards(
        self, contributors: Mapping[str, ContributorStats]
    ) -> Tuple[List[ContributorAward], List[ContributorAward]]:
        eligible = [
            ContributorAward(
                name=stats.canonical_name,
                commits=stats.commits,
                average_lines_changed=stats.average_lines_changed,
            )
            for stats in contributors.values()
            if stats.commits >= self.award_min_commits
        ]
        lowest = sorted(eligible, key=lambda a: a.average_lines_changed)[: self.top_n]
        highest = sorted(eligible, key=lambda a: a.average_lines_changed, reverse=True)[
            : self.top_n
        ]
        return lowest, highest

    def compute(
        self,
        file_metrics: Mapping[str, FileMetrics],
        contributors: Mapping[str, ContributorStats],
        commit_awards: Mapping[str, List[CommitAward]],
    ) -> Tuple[Rankings, Awards]:
        lowest, highest = self.contributor_awards(contributors)
        awards = Awards(
            lowest_average_lines_changed=lowest,
            highest_average_lines_changed=highest,
            **{metric: list(entries) for metric, entries in commit_awards.items()},
        )
        return self.rank_files(file_metrics), awards


# ============================================================================
# GIT LOG PRODUCER
# ============================================================================


class GitLogProducer:
    """
    Runs `git log` and yields raw stdout chunks. The OS pipe bounds how far
    git can run ahead of the parser. Leaving the context terminates git if
    it is still running (cutoff, caller abort, or error).
    """

    LOG_ARGS = [
        "log",
        "--reverse",
        "--numstat",
        "--summary",
        "--pretty=medium",
        "--date=iso-strict",
        "--no-color",
        "--decorate=no",
    ]

    def __init__(
        self,
        repo_path: str,
        chunk_size: int = 64 * 1024,
        extra_args: Optional[List[str]] = None,
    ):
        self.repo_path = os.path.abspath(repo_path)
        self.chunk_size = chunk_size
        self.extra_args = list(extra_args or [])
        self.process: Optional[subprocess.Popen] = None
        self._stderr = None
        self._terminated = False

    @property
    def command(self) -> List[str]:
        return (
            ["git", "-C", self.repo_path, "-c", "core.quotepath=off"]
            + self.LOG_ARGS
            + self.extra_args
        )

    def count_commits(self) -> int:
        """Total commits reachable from HEAD, for sizing progress bars."""
        try:
            result = subprocess.run(
                ["git", "-C", self.repo_path, "rev-list", "--count", "HEAD"],
                capture_output=True,
                text=True,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError) as e:
            raise GitCommandError(f"Git command failed: {e}") from e
        return int(result.stdout.strip() or 0)

    def __enter__(self):
        self._stderr = tempfile.TemporaryFile()
        try:
            self.process = subprocess.Popen(
                self.command, stdout=subprocess.PIPE, stderr=self._stderr
            )
        except OSError as e:
            self._stderr.close()
            raise GitCommandError(f"Git command failed: {e}") from e
        logger.info("Started git log in %s (pid %s)", self.repo_path, self.process.pid)
        return self

    def chunks(self) -> Iterator[bytes]:
        stdout = self.process.stdout
        while True:
            chunk = stdout.read1(self.chunk_size)
            if not chunk:
                break
            yield chunk
        self._check_exit()

    def terminate(self):
        if self.process is None or self.process.poll() is not None:
            return
        self._terminated = True
        logger.info("Terminating git log (pid %s)", self.process.pid)
        self.process.terminate()
        try:
            self.process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self.process.kill()
            self.process.wait()

    def _check_exit(self):
        returncode = self.process.wait()
        if returncode != 0 and not self._terminated:
            self._stderr.seek(0)
            stderr = self._stderr.read().decode("utf-8", errors="replace").strip()
            raise GitCommandError(f"Git command failed (exit {returncode}): {stderr}")

    def __exit__(self, *args):
        self.terminate()
        if self.process is not None and self.process.stdout:
            self.process.stdout.close()
        if self._stderr is not None:
            self._stderr.close()


# ============================================================================
# ORCHESTRATOR
# ============================================================================


class RepositoryAnalyzer:
    """
    Drives one streaming pass: chunks -> LineBuffer -> CommitStreamParser ->
    every aggregator, then rankings and awards. Each call builds fresh
    aggregators; the caller gets a complete bundle or a single exception.
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        reporter: Optional[ProgressReporter] = None,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
        memory_limit_mb: Optional[float] = None,
        complexity_scores: Optional[Mapping[str, float]] = None,
    ):
        self.config = config or AnalysisConfig()
        self.reporter = reporter or ProgressReporter(quiet=True)
        self.on_progress = on_progress
        self.complexity_scores = complexity_scores
        self.metrics = PerformanceMetrics()
        self.memory_monitor = MemoryMonitor(limit_mb=memory_limit_mb)

    def build_aggregators(self) -> List[DatasetAggregator]:
        return [
            TimeSeriesAggregator(self.config),
            LinearSeriesAggregator(self.config),
            ContributorAggregator(self.config),
            FileMetricsAggregator(self.config),
            WordFrequencyAggregator(self.config),
            CommitAwardsAggregator(self.config),
        ]

    def _metered(self, chunks: Iterable[Union[bytes, str]]) -> Iterator[Union[bytes, str]]:
        for chunk in chunks:
            self.metrics.chunks_processed += 1
            self.metrics.bytes_read += len(chunk)
            yield chunk

    def analyze_stream(self, chunks: Iterable[Union[bytes, str]]) -> AnalysisBundle:
        """
        Run the full pipeline over raw log chunks.

        Args:
            chunks: bytes/str pieces of `git log --numstat` output, split anywhere

        Returns:
            AnalysisBundle with every derived view

        Raises:
            ConfigurationError: invalid settings (nothing is read)
            GitCommandError: the producer failed
            AnalysisError: any other failure during the pass
        """
        self.config.validate()
        start_time = time.time()
        self.metrics = PerformanceMetrics()

        aggregators = self.build_aggregators()
        times = {agg.name: 0.0 for agg in aggregators}
        parser = CommitStreamParser(
            max_commits=self.config.max_commits,
            progress_interval=self.config.progress_interval,
            on_progress=self.on_progress,
        )

        self.reporter.stage_start("Commit Stream", "Parsing commit history...")
        commit_iter = parser.iter_commits(self._metered(chunks))
        try:
            for commit in commit_iter:
                for aggregator in aggregators:
                    started = time.perf_counter()
                    aggregator.process_commit(commit)
                    times[aggregator.name] += time.perf_counter() - started

                if parser.commits_emitted % MEMORY_CHECK_INTERVAL == 0:
                    memory_mb = self.memory_monitor.check_memory()
                    logger.debug("Memory usage: %.1f MB", memory_mb)
        except StatterError:
            raise
        except Exception as e:
            logger.error("Analysis failed after %d commits: %s", parser.commits_emitted, e)
            raise AnalysisError(f"Analysis failed: {e}") from e
        finally:
            commit_iter.close()
            close = getattr(chunks, "close", None)
            if callable(close):
                close()

        self.reporter.stage_complete(
            "Commit Stream",
            {
                "Commits parsed": f"{parser.commits_emitted:,}",
                "Commits dropped": f"{parser.commits_dropped:,}",
            },
        )

        self.reporter.stage_start("Aggregation", "Finalizing datasets...")
        bundle = self._build_bundle(parser, aggregators, times)
        self.reporter.stage_complete("Aggregation")

        self.metrics.commits_processed = parser.commits_emitted
        self.metrics.commits_dropped = parser.commits_dropped
        self.metrics.lines_dropped = parser.lines_dropped
        self.metrics.aggregator_times = times
        self.metrics.memory_peak_mb = self.memory_monitor.get_peak()
        self.metrics.total_time = time.time() - start_time
        return bundle

    def _build_bundle(
        self,
        parser: CommitStreamParser,
        aggregators: List[DatasetAggregator],
        times: Dict[str, float],
    ) -> AnalysisBundle:
        results = {}
        for aggregator in aggregators:
            started = time.perf_counter()
            results[aggregator.name] = aggregator.finalize()
            times[aggregator.name] += time.perf_counter() - started

        time_series_agg = next(a for a in aggregators if isinstance(a, TimeSeriesAggregator))
        file_agg = next(a for a in aggregators if isinstance(a, FileMetricsAggregator))
        if self.complexity_scores:
            attached = file_agg.attach_complexity(self.complexity_scores)
            logger.info("Attached complexity scores to %d files", attached)

        rankings, awards = RankingAndAwardsComputer(
            top_n=self.config.top_n, award_min_commits=self.config.award_min_commits
        ).compute(
            results["file_metrics"], results["contributors"], results["commit_awards"]
        )

        return AnalysisBundle(
            commits_processed=parser.commits_emitted,
            granularity=time_series_agg.granularity,
            time_series=results["time_series"],
            linear_series=results["linear_series"],
            contributors=results["contributors"],
            file_metrics=results["file_metrics"],
            word_frequencies=[
                WordFrequencyEntry(word, weight)
                for word, weight in results["word_frequency"].items()
            ],
            rankings=rankings,
            awards=awards,
        )

    def analyze_repository(self, repo_path: str) -> AnalysisBundle:
        """Spawn `git log` for `repo_path` and analyze its output."""
        self.config.validate()
        with GitLogProducer(repo_path, chunk_size=self.config.chunk_size) as producer:
            return self.analyze_stream(producer.chunks())


# ============================================================================
# EXPORT & MANIFEST
# ============================================================================


def export_bundle(bundle: AnalysisBundle, output_path: str) -> int:
    """Write the bundle as JSON; returns the number of bytes written."""
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    payload = json.dumps(bundle.to_dict(), indent=2, ensure_ascii=False)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(payload)
    return len(payload.encode("utf-8"))


def generate_manifest(
    output_dir: str,
    repo_path: str,
    metrics: PerformanceMetrics,
    datasets: Dict[str, str],
) -> Dict[str, Any]:
    """Generate manifest.json with dataset metadata"""
    manifest = {
        "generator_version": VERSION,
        "schema_version": SCHEMA_VERSION,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "repository": repo_path,
        "performance_metrics": metrics.to_dict(),
        "datasets": {},
    }

    for dataset_name, file_path in datasets.items():
        full_path = os.path.join(output_dir, file_path)
        if os.path.exists(full_path):
            with open(full_path, "rb") as f:
                data = f.read()
            manifest["datasets"][dataset_name] = {
                "file": file_path,
                "schema_version": SCHEMA_VERSION,
                "file_size_bytes": len(data),
                "sha256": hashlib.sha256(data).hexdigest(),
            }

    manifest_path = os.path.join(output_dir, "manifest.json")
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)

    return manifest


# ============================================================================
# CLI INTERFACE
# ============================================================================

DEPENDENCIES = ("click", "tqdm", "colorama", "PyYAML", "psutil")


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument(
    "repo_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    required=False,
)
@click.option(
    "-o",
    "--output",
    type=click.Path(file_okay=False),
    help="Output directory (default: repo_stats_TIMESTAMP)",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path (.yaml or .json)",
)
@click.option(
    "--preset",
    type=click.Choice(sorted(PRESETS)),
    help="Use a predefined configuration",
)
@click.option("--max-commits", type=int, help="Stop after this many commits")
@click.option("--progress-interval", type=int, help="Commits between progress updates")
@click.option("--top-n", type=int, help="Entries per ranking and award")
@click.option(
    "--identity",
    "contributor_identity",
    type=click.Choice([i.value for i in ContributorIdentity]),
    help="Group contributors by name or by name + email",
)
@click.option("--bytes-per-line", type=int, help="Bytes assumed per changed line")
@click.option(
    "--complexity-file",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML/JSON mapping of path -> complexity score",
)
@click.option("--memory-limit", type=float, help="Memory limit in MB")
@click.option("--profile", is_flag=True, default=None, help="Enable performance profiling")
@click.option("--profile-output", default="profile_stats.prof", help="Profile output file")
@click.option("-q", "--quiet", is_flag=True, default=None, help="Suppress progress output")
@click.option(
    "-v", "--verbose", is_flag=True, default=None, help="Show detailed progress information"
)
@click.option("--no-color", is_flag=True, default=None, help="Disable colored output")
@click.option(
    "--dry-run", is_flag=True, help="Show the resolved configuration without running"
)
@click.option(
    "--check-dependencies", is_flag=True, help="Show installed dependency versions and exit"
)
@click.version_option(version=VERSION)
def main(repo_path, output, config, preset, complexity_file, **kwargs):
    """Analyze a git repository's history and export the statistics bundle."""

    if kwargs.pop("check_dependencies"):
        click.echo("Checking dependencies...")
        for package in DEPENDENCIES:
            try:
                click.echo(f"  {package}: ✓ {metadata.version(package)}")
            except metadata.PackageNotFoundError:
                click.echo(f"  {package}: ✗ Not installed")
        return

    if not repo_path:
        ctx = click.get_current_context()
        click.echo(ctx.get_help())
        ctx.exit(2)

    quiet = bool(kwargs.get("quiet"))
    verbose = bool(kwargs.get("verbose"))
    reporter = ProgressReporter(
        quiet=quiet, verbose=verbose, use_colors=not kwargs.get("no_color")
    )
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        resolver = ConfigResolver(kwargs, config, preset, repo_path)
        analysis_config = resolver.build_config()
    except (ConfigurationError, OSError, ValueError, yaml.YAMLError) as e:
        reporter.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if resolver.source:
        reporter.info(f"Using configuration: {resolver.source}")

    memory_limit = resolver.get("memory_limit")
    profile = resolver.get("profile", False)
    profile_output_file = resolver.get("profile_output", "profile_stats.prof")

    if kwargs.get("dry_run"):
        reporter.info("DRY RUN MODE - No analysis will be performed")
        reporter.info(f"Repository: {repo_path}")
        reporter.info(f"Max commits: {analysis_config.max_commits or 'unbounded'}")
        reporter.info(f"Progress interval: {analysis_config.progress_interval}")
        reporter.info(f"Top N: {analysis_config.top_n}")
        reporter.info(f"Contributor identity: {analysis_config.contributor_identity.value}")
        reporter.info(f"Bytes per line: {analysis_config.bytes_per_line}")
        reporter.info("Datasets to generate:")
        reporter.info("  ✓ analysis.json")
        reporter.info("  ✓ manifest.json")
        return

    if not os.path.isdir(os.path.join(repo_path, ".git")):
        reporter.error(f"Not a git repository: {repo_path}")
        sys.exit(1)

    output_dir = output or f"repo_stats_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    os.makedirs(output_dir, exist_ok=True)
    reporter.info(f"Output directory: {output_dir}")

    profile_path = os.path.join(output_dir, profile_output_file) if profile else None

    try:
        complexity_scores = load_config_file(complexity_file) if complexity_file else None

        with ProfilingContext(enabled=profile, output_path=profile_path):
            progress_total = analysis_config.max_commits
            if progress_total is None and not quiet:
                progress_total = GitLogProducer(repo_path).count_commits()

            analyzer = RepositoryAnalyzer(
                analysis_config,
                reporter=reporter,
                on_progress=reporter.commit_progress_handler(progress_total),
                memory_limit_mb=memory_limit,
                complexity_scores=complexity_scores,
            )
            bundle = analyzer.analyze_repository(repo_path)

            reporter.stage_start("Export", "Writing analysis bundle...")
            size = export_bundle(bundle, os.path.join(output_dir, "analysis.json"))
            datasets = {"analysis": "analysis.json"}
            generate_manifest(output_dir, repo_path, analyzer.metrics, datasets)
            reporter.stage_complete("Export", {"Size": f"{size:,} bytes"})

    except (StatterError, OSError, ValueError) as e:
        reporter.error(f"Analysis failed: {e}")
        if verbose:
            logger.exception("Analysis failed")
        sys.exit(1)

    reporter.summary(
        {
            "Repository": repo_path,
            "Output directory": output_dir,
            "Commits analyzed": f"{bundle.commits_processed:,}",
            "Contributors": f"{len(bundle.contributors):,}",
            "Files tracked": f"{len(bundle.file_metrics):,}",
            "Time series granularity": (
                bundle.granularity.value if bundle.granularity else "n/a"
            ),
        }
    )
    reporter.success(f"Analysis complete! Results saved to: {output_dir}")


if __name__ == "__main__":
    main()
