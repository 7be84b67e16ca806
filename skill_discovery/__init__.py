"""Skill discovery: mine session transcripts for reusable workflows.

Incrementally scans Claude Code session transcripts, extracts recurring
tool-sequence and shell-command patterns, filters cross-project noise,
scores and clusters what remains, and drafts skills from the best
candidates.
"""

__version__ = "0.1.0"

# Scanning
from .corpus_scanner import CorpusScanner, ScanResult, SessionProcessingError, SessionProcessor
from .scan_state import ScanState, ScanStateStore, ScanStateWriteError, ScanStats, SessionWatermark
from .session_enumerator import enumerate_sessions
from .session_parser import is_real_user_prompt, parse_session_file, parse_transcript_line
from .types import AssistantMessage, ParsedEntry, SessionDescriptor, ToolInvocation, UserMessage

# Patterns
from .extractors import extract_bash_patterns, extract_tool_sequences
from .pattern_aggregator import PatternAggregator, PatternOccurrence, create_pattern_session_processor
from .scorer import ScoredCandidate, score_pattern

# Clustering & ranking
from .clustering import Cluster, ClusteringResult, cluster_patterns, cluster_vectors
from .embeddings import CachedEmbedder, EmbeddingProvider, HeuristicEmbedder, OpenAIEmbedder
from .ranker import CandidateRanker, ExistingArtifact, RankedCandidate, format_candidate_table, rank_candidates
from .draft_generator import Draft, generate_skill_draft

# Pipeline & config
from .config import DiscoveryConfig, ScoringWeights
from .pipeline import DiscoveryPipeline, DiscoveryReport

__all__ = [
    # Scanning
    "CorpusScanner",
    "ScanResult",
    "SessionProcessingError",
    "SessionProcessor",
    "ScanState",
    "ScanStateStore",
    "ScanStateWriteError",
    "ScanStats",
    "SessionWatermark",
    "enumerate_sessions",
    "is_real_user_prompt",
    "parse_session_file",
    "parse_transcript_line",
    "AssistantMessage",
    "ParsedEntry",
    "SessionDescriptor",
    "ToolInvocation",
    "UserMessage",
    # Patterns
    "extract_bash_patterns",
    "extract_tool_sequences",
    "PatternAggregator",
    "PatternOccurrence",
    "create_pattern_session_processor",
    "ScoredCandidate",
    "score_pattern",
    # Clustering & ranking
    "Cluster",
    "ClusteringResult",
    "cluster_patterns",
    "cluster_vectors",
    "CachedEmbedder",
    "EmbeddingProvider",
    "HeuristicEmbedder",
    "OpenAIEmbedder",
    "CandidateRanker",
    "ExistingArtifact",
    "RankedCandidate",
    "format_candidate_table",
    "rank_candidates",
    "Draft",
    "generate_skill_draft",
    # Pipeline & config
    "DiscoveryConfig",
    "ScoringWeights",
    "DiscoveryPipeline",
    "DiscoveryReport",
]
