"""
Confidence Scoring for Element Re-identification

Turns a recorded ElementFingerprint into a ranked list of live candidates,
each with a 0-100 confidence score. Scoring is additive over independently
weighted signals, and a signal only counts towards the maximum when the
fingerprint actually recorded it, so the percentage is normalized over what
was captured.

A wrong guess is worse than no action: anything below the acceptance
threshold is reported as "no match", and every signal records a reason
string (including mismatches) so a broken recording can be diagnosed from
the logs.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..core.models import (
    CandidateElement,
    ElementFingerprint,
    MatchResult,
    ResolutionOutcome,
    ScoredCandidate,
)


logger = logging.getLogger(__name__)


INTERACTIVE_SELECTOR = 'button, a, input, select, [role="button"], [role="link"], [tabindex]'

ROLE_SELECTORS: Dict[str, str] = {
    'button': 'button, [role="button"], input[type="button"], input[type="submit"]',
    'input': 'input:not([type="button"]):not([type="submit"]), textarea',
    'select': 'select',
    'a': 'a, [role="link"]',
    'link': 'a, [role="link"]',
    'span': 'span[role], span[tabindex], span[onclick]',
}

# Tag names and ARIA roles that identify the same kind of element
ROLE_ALIASES: Dict[str, str] = {
    'a': 'link',
    'link': 'link',
}


class ConfidenceScorer:
    """
    Scores live candidate elements against a recorded fingerprint.

    All arithmetic happens here on structured candidate data; the page only
    reports what it sees, which keeps the algorithm testable without a browser.
    """

    TEXT_WEIGHT = 30
    ROLE_WEIGHT = 20
    ARIA_LABEL_WEIGHT = 20
    PLACEHOLDER_WEIGHT = 15
    HREF_WEIGHT = 25
    HREF_PARTIAL_POINTS = 15
    PARENT_ROLE_WEIGHT = 5
    PARENT_CLASS_WEIGHT = 5
    VISIBILITY_WEIGHT = 15

    CONTAINMENT_SIMILARITY = 0.8
    FUZZY_SIMILARITY = 0.7
    SHORT_TEXT_LENGTH = 15
    SHORT_TEXT_MAX_DISTANCE = 3
    LONG_TEXT_MAX_DISTANCE = 5

    TOP_CANDIDATES = 5
    DEFAULT_THRESHOLD = 60

    def __init__(self, threshold: int = DEFAULT_THRESHOLD):
        """
        Initialize the confidence scorer.

        Args:
            threshold: Minimum confidence (0-100) a candidate needs to be accepted
        """
        self.threshold = threshold
        self._levenshtein_cache: Dict[Tuple[str, str], int] = {}

    def candidate_selector(self, fingerprint: ElementFingerprint) -> str:
        """CSS selector for the elements worth scoring for this fingerprint."""
        if not fingerprint.role:
            return INTERACTIVE_SELECTOR
        return ROLE_SELECTORS.get(fingerprint.role.lower(), fingerprint.role)

    def score(self,
              fingerprint: ElementFingerprint,
              candidates: List[CandidateElement]) -> Optional[ScoredCandidate]:
        """Return the accepted best candidate, or None when nothing is confident enough."""
        return self.find_best_match(fingerprint, candidates).best_if_matched()

    def find_best_match(self,
                        fingerprint: ElementFingerprint,
                        candidates: List[CandidateElement]) -> MatchResult:
        """
        Rank candidates and decide whether the best one is acceptable.

        Args:
            fingerprint: Recorded description of the target element
            candidates: Live elements collected from the page

        Returns:
            MatchResult describing the outcome and the top candidates
        """
        if not fingerprint.has_semantic_signals():
            logger.info("Fingerprint has no semantic signals to score")
            return MatchResult(outcome=ResolutionOutcome.NO_SIGNALS, threshold=self.threshold)

        if not candidates:
            logger.warning("No candidate elements found on the page")
            return MatchResult(outcome=ResolutionOutcome.NO_CANDIDATES, threshold=self.threshold)

        ranked = self.rank(fingerprint, candidates)
        top = ranked[:self.TOP_CANDIDATES]
        self._log_top_candidates(len(candidates), top)

        best = ranked[0]
        if best.confidence < self.threshold:
            logger.error(
                f"No high-confidence match found (best: {best.confidence}%, "
                f"threshold: {self.threshold}%). Best candidate was {best.describe()} "
                f"- matches: {', '.join(best.matches)}"
            )
            return MatchResult(
                outcome=ResolutionOutcome.BELOW_THRESHOLD,
                threshold=self.threshold,
                best=best,
                top_candidates=top,
                candidates_considered=len(candidates),
            )

        logger.info(f"Found element with {best.confidence}% confidence: {best.describe()}")
        return MatchResult(
            outcome=ResolutionOutcome.MATCHED,
            threshold=self.threshold,
            best=best,
            top_candidates=top,
            candidates_considered=len(candidates),
        )

    def rank(self,
             fingerprint: ElementFingerprint,
             candidates: List[CandidateElement]) -> List[ScoredCandidate]:
        """Score every candidate and sort by confidence, highest first."""
        scored = [self.score_candidate(fingerprint, candidate) for candidate in candidates]
        scored.sort(key=lambda c: c.confidence, reverse=True)
        return scored

    def score_candidate(self,
                        fingerprint: ElementFingerprint,
                        candidate: CandidateElement) -> ScoredCandidate:
        """
        Calculate the confidence breakdown for one candidate.

        Score = sum of the points earned on every recorded signal,
        confidence = round(100 * score / max_score).
        """
        score = 0
        max_score = 0
        matches: List[str] = []

        if fingerprint.text:
            max_score += self.TEXT_WEIGHT
            similarity = self.text_similarity(candidate.text, fingerprint.text)
            if similarity > 0:
                score += round(similarity * self.TEXT_WEIGHT)
                matches.append(f'text({round(similarity * 100)}%): "{candidate.text.strip()[:30]}"')
            else:
                matches.append('text(0%): MISMATCH')

        if fingerprint.role:
            max_score += self.ROLE_WEIGHT
            if self._roles_match(fingerprint.role, candidate.role):
                score += self.ROLE_WEIGHT
                matches.append(f'role(100%): {candidate.role}')
            else:
                matches.append(f'role(0%): {candidate.role} != {fingerprint.role}')

        if fingerprint.aria_label:
            max_score += self.ARIA_LABEL_WEIGHT
            if candidate.aria_label == fingerprint.aria_label:
                score += self.ARIA_LABEL_WEIGHT
                matches.append('ariaLabel(100%)')
            else:
                matches.append('ariaLabel(0%): MISMATCH')

        if fingerprint.placeholder:
            max_score += self.PLACEHOLDER_WEIGHT
            if candidate.placeholder == fingerprint.placeholder:
                score += self.PLACEHOLDER_WEIGHT
                matches.append('placeholder(100%)')
            else:
                matches.append('placeholder(0%): MISMATCH')

        if fingerprint.href:
            max_score += self.HREF_WEIGHT
            points, reason = self._score_href(fingerprint.href, candidate.href)
            score += points
            matches.append(reason)

        if fingerprint.parent_role or fingerprint.parent_class:
            max_score += self.PARENT_ROLE_WEIGHT + self.PARENT_CLASS_WEIGHT
            if fingerprint.parent_role:
                if candidate.parent_role == fingerprint.parent_role:
                    score += self.PARENT_ROLE_WEIGHT
                    matches.append('parentRole(100%)')
                else:
                    matches.append(f'parentRole(0%): {candidate.parent_role} != {fingerprint.parent_role}')
            if fingerprint.parent_class:
                if candidate.parent_first_class == fingerprint.parent_class:
                    score += self.PARENT_CLASS_WEIGHT
                    matches.append('parentClass(100%)')
                else:
                    matches.append(f'parentClass(0%): {candidate.parent_first_class} != {fingerprint.parent_class}')

        # Visibility is mandatory whatever else was recorded
        max_score += self.VISIBILITY_WEIGHT
        if not candidate.is_visible:
            matches.append('visible(0%): HIDDEN')
            return ScoredCandidate(candidate, score, max_score, 0, matches)
        score += self.VISIBILITY_WEIGHT
        matches.append('visible(100%)')

        confidence = round(100 * score / max_score)
        return ScoredCandidate(candidate, score, max_score, confidence, matches)

    # =================== Signal helpers ===================

    def text_similarity(self, element_text: str, target_text: str) -> float:
        """
        Similarity tier between the element's text and the recorded text.

        1.0 exact, 0.8 containment either way, 0.7 within the Levenshtein
        tolerance, otherwise 0.
        """
        a = (element_text or '').strip().lower()
        b = (target_text or '').strip().lower()
        if not a or not b:
            return 0.0
        if a == b:
            return 1.0
        if a in b or b in a:
            return self.CONTAINMENT_SIMILARITY

        longest = max(len(a), len(b))
        max_distance = (self.SHORT_TEXT_MAX_DISTANCE if longest < self.SHORT_TEXT_LENGTH
                        else self.LONG_TEXT_MAX_DISTANCE)
        # The distance is at least the length difference; skip the matrix when it cannot fit
        if abs(len(a) - len(b)) > max_distance:
            return 0.0
        if self._cached_distance(a, b) <= max_distance:
            return self.FUZZY_SIMILARITY
        return 0.0

    def _roles_match(self, target_role: str, element_role: str) -> bool:
        target = target_role.lower()
        actual = (element_role or '').lower()
        if target == actual:
            return True
        return ROLE_ALIASES.get(target, target) == ROLE_ALIASES.get(actual, actual)

    def _score_href(self, target_href: str, element_href: str) -> Tuple[int, str]:
        if element_href == target_href:
            return self.HREF_WEIGHT, f'href(100%): {element_href}'
        if element_href and (target_href in element_href or element_href in target_href):
            percent = round(100 * self.HREF_PARTIAL_POINTS / self.HREF_WEIGHT)
            return self.HREF_PARTIAL_POINTS, f'href({percent}%): {element_href}'
        return 0, f'href(0%): {element_href} != {target_href}'

    def _cached_distance(self, a: str, b: str) -> int:
        cache_key = (a, b)
        if cache_key not in self._levenshtein_cache:
            self._levenshtein_cache[cache_key] = levenshtein_distance(a, b)
        return self._levenshtein_cache[cache_key]

    def _log_top_candidates(self, total: int, top: List[ScoredCandidate]) -> None:
        logger.debug(f"Scored {total} candidates; top {len(top)}:")
        for position, candidate in enumerate(top, start=1):
            logger.debug(
                f"  {position}. Confidence: {candidate.confidence}% - {candidate.describe()} "
                f"| {', '.join(candidate.matches)}"
            )


def levenshtein_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein (edit) distance between two strings."""
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    previous_row = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]
