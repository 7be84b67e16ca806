"""
Configuration management for skill discovery.

Every pipeline stage takes its section as an explicit argument, so tests can
inject alternative weightings and thresholds without touching global state.
"""

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any


CONFIG_ENV_VAR = "SKILL_DISCOVERY_CONFIG"
HOME_ENV_VAR = "SKILL_DISCOVERY_HOME"

DEFAULT_CLAUDE_BASE_DIR = "~/.claude"
DEFAULT_STATE_PATH = "~/.claude/skill-discovery/scan-state.json"


def _filter_dataclass_fields(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter dict to only include fields that exist in the dataclass."""
    valid_fields = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_fields}


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """A config section as a dict; anything that is not an object counts as absent."""
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def default_config_path() -> Path:
    """
    Resolve the config file location.

    Priority order:
    1. SKILL_DISCOVERY_CONFIG environment variable (if set)
    2. ~/.claude/skill-discovery-config.json
    """
    env_value = os.getenv(CONFIG_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()
    return Path.home() / ".claude" / "skill-discovery-config.json"


@dataclass
class ScoringWeights:
    """
    Weights for the four scoring factors.

    The defaults sum to 1.0 and are the primary knob for tuning result
    quality.
    """

    frequency: float = 0.35
    recency: float = 0.20
    breadth: float = 0.25
    specificity: float = 0.20

    def __post_init__(self) -> None:
        for name, value in asdict(self).items():
            if value < 0:
                raise ValueError(f"Scoring weight '{name}' must be non-negative, got {value}")

    @property
    def total(self) -> float:
        return self.frequency + self.recency + self.breadth + self.specificity


@dataclass
class ScoringConfig:
    """Configuration for multi-factor pattern scoring."""

    weights: ScoringWeights = field(default_factory=ScoringWeights)
    # Occurrence count at which the frequency factor saturates
    frequency_saturation: int = 20
    recency_half_life_days: float = 14.0


@dataclass
class NoiseFilterConfig:
    """Configuration for cross-project noise filtering."""

    # Patterns seen in at least this fraction of tracked projects are noise
    threshold: float = 0.8
    # Below this many tracked projects the filter is a no-op
    min_projects: int = 3


@dataclass
class ExtractionConfig:
    """Configuration for pattern extraction."""

    ngram_sizes: tuple[int, ...] = (2, 3)
    shell_tools: tuple[str, ...] = ("Bash",)
    max_files_per_session: int = 50


@dataclass
class ClusteringConfig:
    """
    Configuration for density-based clustering.

    epsilon=None auto-tunes the neighborhood radius from the k-distance
    curve; tuned values are clamped into [min_epsilon, max_epsilon].
    """

    min_points: int = 3
    min_epsilon: float = 0.05
    max_epsilon: float = 0.35
    max_points: int = 500
    epsilon: float | None = None


@dataclass
class RankingConfig:
    """Configuration for candidate ranking and deduplication."""

    max_candidates: int = 20
    # Embedding similarity at or above which a candidate duplicates an artifact
    dedup_similarity: float = 0.85
    # Text similarity used when embeddings are unavailable
    text_dedup_similarity: float = 0.8


@dataclass
class DiscoveryConfig:
    """Complete discovery configuration."""

    claude_base_dir: str = DEFAULT_CLAUDE_BASE_DIR
    state_path: str = DEFAULT_STATE_PATH
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    noise: NoiseFilterConfig = field(default_factory=NoiseFilterConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)

    @property
    def projects_dir(self) -> Path:
        """Directory holding one transcript folder per project."""
        return Path(self.claude_base_dir).expanduser() / "projects"

    @property
    def resolved_state_path(self) -> Path:
        return Path(self.state_path).expanduser()

    @classmethod
    def load(cls, path: Path | None = None) -> "DiscoveryConfig":
        """
        Load config from file with defaults.

        Args:
            path: Optional config file path. Defaults to default_config_path()

        Returns:
            DiscoveryConfig with user settings merged over defaults
        """
        if path is None:
            path = default_config_path()

        data: dict[str, Any] = {}
        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError, OSError):
                # Use defaults on error
                data = {}
        if not isinstance(data, dict):
            data = {}

        scoring_data = dict(_section(data, "scoring"))
        raw_weights = scoring_data.pop("weights", None)
        weights = ScoringWeights(
            **_filter_dataclass_fields(raw_weights if isinstance(raw_weights, dict) else {}, ScoringWeights)
        )
        extraction_data = _filter_dataclass_fields(_section(data, "extraction"), ExtractionConfig)
        for key in ("ngram_sizes", "shell_tools"):
            if key in extraction_data:
                extraction_data[key] = tuple(extraction_data[key])

        config = cls(
            **_filter_dataclass_fields(
                {k: v for k, v in data.items() if k in ("claude_base_dir", "state_path")},
                cls,
            ),
            scoring=ScoringConfig(
                weights=weights,
                **_filter_dataclass_fields(scoring_data, ScoringConfig),
            ),
            noise=NoiseFilterConfig(**_filter_dataclass_fields(_section(data, "noise"), NoiseFilterConfig)),
            extraction=ExtractionConfig(**extraction_data),
            clustering=ClusteringConfig(**_filter_dataclass_fields(_section(data, "clustering"), ClusteringConfig)),
            ranking=RankingConfig(**_filter_dataclass_fields(_section(data, "ranking"), RankingConfig)),
        )

        home_override = os.getenv(HOME_ENV_VAR)
        if home_override:
            config.claude_base_dir = home_override

        return config

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = default_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)


__all__ = [
    "ClusteringConfig",
    "DiscoveryConfig",
    "ExtractionConfig",
    "NoiseFilterConfig",
    "RankingConfig",
    "ScoringConfig",
    "ScoringWeights",
    "default_config_path",
]
