"""
Unit tests for the confidence scorer.
"""

import pytest

from src.replay.core.models import (
    CandidateElement,
    Coordinates,
    ElementFingerprint,
    ResolutionOutcome,
)
from src.replay.services.confidence_scorer import (
    INTERACTIVE_SELECTOR,
    ConfidenceScorer,
    levenshtein_distance,
)
from tests.replay.fakes import candidate


def make_candidates(*descriptors):
    return [CandidateElement.from_dict(dict(d, index=i)) for i, d in enumerate(descriptors)]


class TestConfidenceScorer:
    """Test cases for ConfidenceScorer."""

    def setup_method(self):
        self.scorer = ConfidenceScorer(threshold=60)

    def test_empty_fingerprint_yields_no_candidate(self):
        candidates = make_candidates(candidate("BUTTON", "Sign In"), candidate("A", "Help"))

        result = self.scorer.find_best_match(ElementFingerprint(), candidates)

        assert result.outcome is ResolutionOutcome.NO_SIGNALS
        assert result.best is None
        assert self.scorer.score(ElementFingerprint(), candidates) is None

    def test_coordinates_only_fingerprint_has_no_signals(self):
        fingerprint = ElementFingerprint(coordinates=Coordinates(x=100, y=200))

        result = self.scorer.find_best_match(fingerprint, make_candidates(candidate("BUTTON", "Go")))

        assert result.outcome is ResolutionOutcome.NO_SIGNALS
        assert result.not_found

    def test_no_candidates(self):
        result = self.scorer.find_best_match(ElementFingerprint(text="Sign In"), [])

        assert result.outcome is ResolutionOutcome.NO_CANDIDATES
        assert result.not_found

    def test_hidden_element_scores_zero(self):
        fingerprint = ElementFingerprint(text="Sign In", role="button")
        hidden = CandidateElement.from_dict(dict(candidate("BUTTON", "Sign In", display="none"), index=0))

        scored = self.scorer.score_candidate(fingerprint, hidden)

        assert scored.confidence == 0
        assert "visible(0%): HIDDEN" in scored.matches

    def test_zero_size_element_scores_zero(self):
        fingerprint = ElementFingerprint(text="Sign In")
        collapsed = CandidateElement.from_dict(dict(candidate("BUTTON", "Sign In", width=0), index=0))

        assert self.scorer.score_candidate(fingerprint, collapsed).confidence == 0

    def test_picks_visible_of_two_matching_buttons(self):
        fingerprint = ElementFingerprint(text="Sign In", role="button")
        candidates = make_candidates(
            candidate("BUTTON", "Sign In", display="none"),
            candidate("BUTTON", "Sign In"),
        )

        best = self.scorer.score(fingerprint, candidates)

        assert best is not None
        assert best.candidate.index == 1
        assert best.confidence == 100

    def test_text_similarity_tiers(self):
        assert self.scorer.text_similarity("Sign In", "sign in") == 1.0
        assert self.scorer.text_similarity("Sign In Now", "Sign In") == 0.8
        assert self.scorer.text_similarity("Sign On", "Sign In") == 0.7
        assert self.scorer.text_similarity("Register", "Sign In") == 0.0
        assert self.scorer.text_similarity("", "Sign In") == 0.0

    def test_exact_beats_containment_beats_fuzzy(self):
        fingerprint = ElementFingerprint(text="Statements")
        candidates = make_candidates(
            candidate("A", "Statemants"),
            candidate("A", "View Statements"),
            candidate("A", "Statements"),
        )

        ranked = self.scorer.rank(fingerprint, candidates)

        assert [c.candidate.index for c in ranked] == [2, 1, 0]
        assert ranked[0].confidence > ranked[1].confidence > ranked[2].confidence

    def test_long_text_allows_larger_edit_distance(self):
        # 4 edits: too many for short text, within tolerance once the text is 15+ chars
        assert self.scorer.text_similarity("Download Activity", "Downlaod Activty!") == 0.7
        assert self.scorer.text_similarity("Log out", "Lag aut!!") == 0.0
        assert self.scorer.text_similarity("Log out", "Lag aut!") == 0.7

    def test_confidence_is_normalized_over_recorded_signals(self):
        fingerprint = ElementFingerprint(text="Continue")
        scored = self.scorer.score_candidate(
            fingerprint, CandidateElement.from_dict(dict(candidate("BUTTON", "Continue"), index=0))
        )

        # text 30 + visibility 15
        assert scored.max_score == 45
        assert scored.score == 45
        assert scored.confidence == 100

    def test_below_threshold_is_not_accepted(self):
        fingerprint = ElementFingerprint(text="Sign In", role="button", aria_label="Sign in to your account")
        candidates = make_candidates(candidate("A", "Register"))

        result = self.scorer.find_best_match(fingerprint, candidates)

        assert result.outcome is ResolutionOutcome.BELOW_THRESHOLD
        assert result.best.confidence < 60
        assert result.best_if_matched() is None

    def test_threshold_is_configurable(self):
        fingerprint = ElementFingerprint(text="Sign In", role="button")
        candidates = make_candidates(candidate("SPAN", "Sign In"))

        # text 30 + visibility 15 out of 65 -> 69%
        assert ConfidenceScorer(threshold=60).score(fingerprint, candidates) is not None
        assert ConfidenceScorer(threshold=70).score(fingerprint, candidates) is None

    def test_link_role_matches_anchor_tag(self):
        fingerprint = ElementFingerprint(text="Accounts", role="link")
        scored = self.scorer.score_candidate(
            fingerprint, CandidateElement.from_dict(dict(candidate("A", "Accounts"), index=0))
        )

        assert "role(100%): a" in scored.matches

    def test_href_partial_match(self):
        fingerprint = ElementFingerprint(href="/accounts/statements")
        scored = self.scorer.score_candidate(
            fingerprint,
            CandidateElement.from_dict(dict(candidate("A", "", href="/accounts/statements?page=2"), index=0)),
        )

        assert scored.score == 15 + 15
        assert scored.matches[0].startswith("href(60%)")

    def test_parent_class_uses_first_short_class(self):
        fingerprint = ElementFingerprint(text="Export", parent_class="toolbar")
        element = CandidateElement.from_dict(
            dict(candidate("BUTTON", "Export", parent_class_name="toolbar dense"), index=0)
        )

        scored = self.scorer.score_candidate(fingerprint, element)

        assert "parentClass(100%)" in scored.matches

    def test_mismatches_are_reported(self):
        fingerprint = ElementFingerprint(text="Sign In", placeholder="Email")
        scored = self.scorer.score_candidate(
            fingerprint, CandidateElement.from_dict(dict(candidate("INPUT", "", placeholder="Password"), index=0))
        )

        assert "text(0%): MISMATCH" in scored.matches
        assert "placeholder(0%): MISMATCH" in scored.matches

    def test_top_candidates_limited_to_five(self):
        fingerprint = ElementFingerprint(text="Row")
        candidates = make_candidates(*[candidate("BUTTON", f"Row {i}") for i in range(8)])

        result = self.scorer.find_best_match(fingerprint, candidates)

        assert len(result.top_candidates) == 5
        assert result.candidates_considered == 8

    @pytest.mark.parametrize("role,expected", [
        (None, INTERACTIVE_SELECTOR),
        ("button", 'button, [role="button"], input[type="button"], input[type="submit"]'),
        ("link", 'a, [role="link"]'),
        ("menuitem", "menuitem"),
    ])
    def test_candidate_selector(self, role, expected):
        assert self.scorer.candidate_selector(ElementFingerprint(role=role)) == expected


class TestLevenshteinDistance:
    """Test cases for the edit distance helper."""

    def test_identical(self):
        assert levenshtein_distance("statement", "statement") == 0

    def test_empty(self):
        assert levenshtein_distance("", "abc") == 3

    def test_substitution_insertion_deletion(self):
        assert levenshtein_distance("kitten", "sitting") == 3
