from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple, Union

import openai
import regex as re
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from problem_api.config import MatchThresholds
from problem_api.llm import AiResponseError, TextCompleter, parse_json_array
from problem_api.ocr.repair import clean_text
from problem_api.problems.classify import suggest_metadata
from problem_api.problems.models import (
    MATCH_EXACT,
    MATCH_PARTIAL,
    MATCH_SIMILAR,
    CandidateProblem,
    MetadataSuggestion,
    ProblemMatch,
)

logger = logging.getLogger("problemcapture.match")

RANKING_SYSTEM_PROMPT = (
    "You are an expert at matching mathematical problems. Analyze the input problem "
    "and rank the candidate matches based on similarity."
)
CONTENT_EXCERPT_CHARS = 200


class CandidateRetriever(Protocol):
    async def search(self, text: str, tenant_id: str, limit: int = 10) -> List[CandidateProblem]: ...


# -----------------
# Token-set similarity
# -----------------

_RX_NON_ALNUM = re.compile(r"[^\p{L}\p{N}\s]+")


def tokenize(text: str) -> Set[str]:
    s = _RX_NON_ALNUM.sub(" ", (text or "").lower())
    return {tok for tok in s.split() if len(tok) > 2}


def jaccard_similarity(a: str, b: str) -> float:
    ta, tb = tokenize(a), tokenize(b)
    union = ta | tb
    if not union:
        return 0.0
    return len(ta & tb) / len(union)


def bucket_match_type(score: float, thresholds: MatchThresholds = MatchThresholds()) -> str:
    if score > thresholds.exact:
        return MATCH_EXACT
    if score > thresholds.similar:
        return MATCH_SIMILAR
    return MATCH_PARTIAL


def _by_score(matches: List[ProblemMatch]) -> List[ProblemMatch]:
    return sorted(matches, key=lambda m: m.similarity_score, reverse=True)


def score_by_tokens(
    text: str,
    candidates: Sequence[CandidateProblem],
    thresholds: MatchThresholds = MatchThresholds(),
) -> List[ProblemMatch]:
    out: List[ProblemMatch] = []
    for cand in candidates:
        score = jaccard_similarity(text, cand.content)
        if score <= thresholds.min_score:
            continue
        out.append(
            ProblemMatch(
                problem_id=cand.id,
                similarity_score=score,
                match_type=bucket_match_type(score, thresholds),
                problem=cand,
            )
        )
    return _by_score(out)


# -----------------
# AI ranking
# -----------------


class AiRankItem(BaseModel):
    problem_id: Union[str, int]
    similarity_score: float = Field(ge=0.0, le=1.0)
    match_type: str
    reasoning: str = ""


_RANK_ITEMS = TypeAdapter(List[AiRankItem])


def build_ranking_prompt(text: str, candidates: Sequence[CandidateProblem], min_score: float = 0.3) -> str:
    lines = [f'Input Problem Text:\n"{text}"\n', "Candidate Problems:"]
    for i, cand in enumerate(candidates, start=1):
        excerpt = clean_text(cand.content)[:CONTENT_EXCERPT_CHARS]
        lines.append(f"{i}. ID: {cand.id}")
        lines.append(f"   Title: {cand.title}")
        lines.append(f"   Content: {excerpt}...")
        lines.append(f"   Subject: {cand.subject}, Category: {cand.category}\n")
    lines.append(
        "Return ONLY a JSON array with one object per matching candidate:\n"
        "[\n"
        "  {\n"
        '    "problem_id": "id from the list above",\n'
        '    "similarity_score": 0.95,\n'
        '    "match_type": "exact|similar|partial",\n'
        '    "reasoning": "brief explanation"\n'
        "  }\n"
        "]\n"
        f"similarity_score is on a 0-1 scale. Only include matches with similarity_score > {min_score}. "
        "Order by similarity_score (highest first)."
    )
    return "\n".join(lines)


def parse_ranking_response(
    content: str,
    candidates: Sequence[CandidateProblem],
    min_score: float = 0.3,
) -> List[ProblemMatch]:
    raw = parse_json_array(content)
    try:
        items = _RANK_ITEMS.validate_python(raw)
    except ValidationError as e:
        raise AiResponseError(f"ranking schema mismatch: {e.error_count()} error(s)") from e

    for item in items:
        if item.match_type.strip().lower() not in (MATCH_EXACT, MATCH_SIMILAR, MATCH_PARTIAL):
            raise AiResponseError(f"unknown match_type {item.match_type!r}")

    by_id: Dict[str, CandidateProblem] = {str(c.id): c for c in candidates}
    out: List[ProblemMatch] = []
    seen: Set[str] = set()
    for item in items:
        pid = str(item.problem_id)
        cand = by_id.get(pid)
        # Unknown ids are hallucinations; a repeated id keeps its first entry.
        if cand is None or pid in seen:
            continue
        seen.add(pid)
        if item.similarity_score <= min_score:
            continue
        out.append(
            ProblemMatch(
                problem_id=cand.id,
                similarity_score=float(item.similarity_score),
                match_type=item.match_type.strip().lower(),
                problem=cand,
            )
        )
    return _by_score(out)


# -----------------
# Matcher
# -----------------

# (text, candidates) -> matches, or None when the scorer declines (failed).
Scorer = Callable[[str, Sequence[CandidateProblem]], Awaitable[Optional[List[ProblemMatch]]]]


class ProblemMatcher:
    """
    Retrieve candidates for a text, then score them with the first scorer in
    the chain that does not decline: AI ranking (when configured), then token
    similarity.
    """

    def __init__(
        self,
        retriever: CandidateRetriever,
        completer: Optional[TextCompleter] = None,
        *,
        thresholds: MatchThresholds = MatchThresholds(),
        candidate_limit: int = 10,
        ai_max_tokens: int = 1000,
    ) -> None:
        self._retriever = retriever
        self._completer = completer
        self._thresholds = thresholds
        self._candidate_limit = int(candidate_limit)
        self._ai_max_tokens = int(ai_max_tokens)

    def scorers(self) -> List[Tuple[str, Scorer]]:
        chain: List[Tuple[str, Scorer]] = []
        if self._completer is not None:
            chain.append(("ai", self._rank_with_ai))
        chain.append(("tokens", self._rank_by_tokens))
        return chain

    async def _rank_with_ai(self, text: str, candidates: Sequence[CandidateProblem]) -> Optional[List[ProblemMatch]]:
        if self._completer is None:
            return None
        min_score = self._thresholds.min_score
        try:
            content = await self._completer.complete(
                build_ranking_prompt(text, candidates, min_score),
                system=RANKING_SYSTEM_PROMPT,
                max_tokens=self._ai_max_tokens,
            )
            return parse_ranking_response(content, candidates, min_score)
        except AiResponseError as e:
            logger.warning("AI ranking response rejected, falling back: %s", e)
        except asyncio.TimeoutError:
            logger.warning("AI ranking timed out, falling back")
        except openai.OpenAIError as e:
            logger.warning("AI ranking request failed, falling back: %s", e)
        except Exception:
            logger.exception("AI ranking failed unexpectedly, falling back")
        return None

    async def _rank_by_tokens(self, text: str, candidates: Sequence[CandidateProblem]) -> Optional[List[ProblemMatch]]:
        return score_by_tokens(text, candidates, self._thresholds)

    async def find_matches(self, text: str, tenant_id: str) -> List[ProblemMatch]:
        """
        Matches ordered by similarity_score, highest first. Retrieval errors
        propagate; scorer failures fall through to the next scorer.
        """
        candidates = await self._retriever.search(text, tenant_id, self._candidate_limit)
        if not candidates:
            return []

        for name, scorer in self.scorers():
            matches = await scorer(text, candidates)
            if matches is not None:
                logger.debug("scorer=%s candidates=%d matches=%d", name, len(candidates), len(matches))
                return matches
        return []

    async def identify_problem(self, text: str, tenant_id: str) -> Tuple[List[ProblemMatch], MetadataSuggestion]:
        matches = await self.find_matches(text, tenant_id)
        return matches, suggest_metadata(text)
