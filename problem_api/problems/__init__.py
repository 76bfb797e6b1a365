from .ai_segment import AiSegmenter, detect_problems_enhanced
from .classify import suggest_metadata
from .match import CandidateRetriever, ProblemMatcher, jaccard_similarity
from .models import CandidateProblem, MetadataSuggestion, ProblemMatch, ProblemSegment
from .segment import segment

__all__ = [
    "AiSegmenter",
    "CandidateProblem",
    "CandidateRetriever",
    "MetadataSuggestion",
    "ProblemMatch",
    "ProblemMatcher",
    "ProblemSegment",
    "detect_problems_enhanced",
    "jaccard_similarity",
    "segment",
    "suggest_metadata",
]
