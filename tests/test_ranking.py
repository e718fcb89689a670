"""Tests for personalized ranking."""
import pytest

from spotlight.models.preference import PreferenceType, UserPreference
from spotlight.pipeline.ranking import (
    PreferenceWeight,
    RecommenderRanker,
    RuleBasedRanker,
    build_preference_lookup,
    score_highlight,
)
from spotlight.services import highlight_service
from spotlight.services.highlight_service import build_ranker
from spotlight.utils.http import CollaboratorUnavailableError


def _highlight(highlight_id, confidence=90.0, sport=None, play_type=None, teams=None, players=None, complete=True):
    return {
        "highlight_id": highlight_id,
        "confidence": confidence,
        "sport": sport,
        "play_type": play_type,
        "teams": teams or [],
        "players": players or [],
        "enrichment_complete": complete,
    }


class _FakeRecommender:
    def __init__(self, ids=None, error=None):
        self.ids = ids or []
        self.error = error
        self.users = []

    async def get_recommendations(self, user_id):
        self.users.append(user_id)
        if self.error:
            raise self.error
        return list(self.ids)


class TestPreferenceLookup:
    """Tests for preference normalization."""

    def test_case_insensitive_keys(self):
        lookup = build_preference_lookup([{"type": "team", "value": " Arsenal ", "weight": 2}])
        assert lookup == {("TEAM", "arsenal"): 2.0}

    def test_accepts_model_rows(self):
        pref = UserPreference(user_id="u1", type=PreferenceType.SPORT, value="Soccer", weight=4.0)
        assert PreferenceWeight.coerce(pref) == PreferenceWeight(type="SPORT", value="Soccer", weight=4.0)

    def test_negative_weight_floors_at_zero(self):
        lookup = build_preference_lookup([{"type": "SPORT", "value": "soccer", "weight": -5}])
        assert lookup[("SPORT", "soccer")] == 0.0


class TestScoreHighlight:
    """Tests for the weighted score."""

    def test_reference_scenario(self):
        lookup = build_preference_lookup([
            {"type": "SPORT", "value": "soccer", "weight": 10},
            {"type": "PLAY_TYPE", "value": "goal", "weight": 10},
        ])
        score, matches = score_highlight(_highlight("a", sport="soccer", play_type="goal"), lookup)
        assert score == 170
        assert matches == ["PLAY_TYPE:goal", "SPORT:soccer"]

        score, matches = score_highlight(_highlight("b", sport="basketball", play_type="dunk"), lookup)
        assert score == 90
        assert matches == []

    def test_team_and_player_sums(self):
        lookup = build_preference_lookup([
            {"type": "TEAM", "value": "Lakers", "weight": 1},
            {"type": "TEAM", "value": "Celtics", "weight": 2},
            {"type": "PLAYER", "value": "LeBron James", "weight": 2},
        ])
        highlight = _highlight("a", confidence=50, teams=["lakers", "CELTICS"], players=["LeBron James"])
        score, _ = score_highlight(highlight, lookup)
        assert score == 50 + 10 * 3 + 15 * 2

    def test_missing_confidence_counts_as_zero(self):
        score, _ = score_highlight({"highlight_id": "x"}, {})
        assert score == 0


class TestRuleBasedRanker:
    """Tests for rule-based ranking."""

    @pytest.mark.asyncio
    async def test_reference_scenario_order(self):
        pool = [
            _highlight("dunk", sport="basketball", play_type="dunk"),
            _highlight("goal", sport="soccer", play_type="goal"),
        ]
        prefs = [
            {"type": "SPORT", "value": "soccer", "weight": 10},
            {"type": "PLAY_TYPE", "value": "goal", "weight": 10},
        ]
        ranked = await RuleBasedRanker().rank("u1", pool, prefs)
        assert [r.highlight_id for r in ranked] == ["goal", "dunk"]
        assert [r.personalized_score for r in ranked] == [170, 90]

    def test_ties_keep_input_order(self):
        pool = [_highlight(str(i), confidence=80) for i in range(6)]
        ranked = RuleBasedRanker().rank_sync(pool, [])
        assert [r.highlight_id for r in ranked] == ["0", "1", "2", "3", "4", "5"]

    def test_ranking_is_repeatable(self):
        pool = [
            _highlight("a", confidence=80, sport="soccer"),
            _highlight("b", confidence=95),
            _highlight("c", confidence=80, sport="soccer"),
            _highlight("d", confidence=86),
        ]
        prefs = [{"type": "SPORT", "value": "soccer", "weight": 2}]
        ranker = RuleBasedRanker()
        first = [r.highlight_id for r in ranker.rank_sync(pool, prefs)]
        second = [r.highlight_id for r in ranker.rank_sync(pool, prefs)]
        assert first == second == ["b", "a", "c", "d"]

    def test_incomplete_highlights_excluded(self):
        pool = [_highlight("a"), _highlight("b", complete=False)]
        ranked = RuleBasedRanker().rank_sync(pool, [])
        assert [r.highlight_id for r in ranked] == ["a"]

    def test_empty_pool(self):
        assert RuleBasedRanker().rank_sync([], [{"type": "SPORT", "value": "soccer"}]) == []

    def test_to_dict_includes_score(self):
        [ranked] = RuleBasedRanker().rank_sync([_highlight("a", confidence=70)], [])
        data = ranked.to_dict()
        assert data["highlight_id"] == "a"
        assert data["personalized_score"] == 70


class TestRecommenderRanker:
    """Tests for the recommender delegate."""

    @pytest.mark.asyncio
    async def test_reorders_and_drops_unknown_ids(self):
        pool = [_highlight("a"), _highlight("b"), _highlight("c")]
        client = _FakeRecommender(ids=["c", "zzz", "a", "c"])
        ranked = await RecommenderRanker(client).rank("u1", pool, [])

        assert client.users == ["u1"]
        assert [r.highlight_id for r in ranked] == ["c", "a"]
        assert ranked[0].personalized_score > ranked[1].personalized_score

    @pytest.mark.asyncio
    async def test_falls_back_on_failure(self):
        pool = [
            _highlight("dunk", sport="basketball"),
            _highlight("goal", sport="soccer"),
        ]
        client = _FakeRecommender(error=CollaboratorUnavailableError("Unable to reach recommender"))
        prefs = [{"type": "SPORT", "value": "soccer", "weight": 1}]
        ranked = await RecommenderRanker(client).rank("u1", pool, prefs)
        assert [r.highlight_id for r in ranked] == ["goal", "dunk"]

    @pytest.mark.asyncio
    async def test_ignores_incomplete_highlights(self):
        pool = [_highlight("a", complete=False), _highlight("b")]
        ranked = await RecommenderRanker(_FakeRecommender(ids=["a", "b"])).rank("u1", pool, [])
        assert [r.highlight_id for r in ranked] == ["b"]


class TestBuildRanker:
    """Tests for ranking strategy selection."""

    def test_auto_without_recommender_is_rule_based(self, monkeypatch):
        monkeypatch.setattr(highlight_service.settings, "ranking_strategy", "auto")
        monkeypatch.setattr(highlight_service.settings, "recommender_url", None)
        assert isinstance(build_ranker(), RuleBasedRanker)

    def test_auto_with_recommender(self, monkeypatch):
        monkeypatch.setattr(highlight_service.settings, "ranking_strategy", "auto")
        monkeypatch.setattr(highlight_service.settings, "recommender_url", "http://recommender")
        ranker = build_ranker()
        assert isinstance(ranker, RecommenderRanker)
        assert isinstance(ranker.fallback, RuleBasedRanker)

    def test_rule_based_ignores_recommender_url(self, monkeypatch):
        monkeypatch.setattr(highlight_service.settings, "ranking_strategy", "rule_based")
        monkeypatch.setattr(highlight_service.settings, "recommender_url", "http://recommender")
        assert isinstance(build_ranker(), RuleBasedRanker)

    def test_recommender_requires_url(self, monkeypatch):
        monkeypatch.setattr(highlight_service.settings, "ranking_strategy", "recommender")
        monkeypatch.setattr(highlight_service.settings, "recommender_url", None)
        with pytest.raises(ValueError):
            build_ranker()
