"""Tests for leadloop.pipeline.scoring: keyword tiers, weights, tags."""
import pytest
from unittest.mock import patch

from leadloop.pipeline.scoring import (
    ScoringWeights, _default_config, load_scoring_config, score_lead, tier_points,
)


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_config_cache():
    """Reset module-level cache between tests so each test starts clean."""
    import leadloop.pipeline.scoring as mod
    mod._scoring_config = None
    yield
    mod._scoring_config = None


SCENARIO = ('Need a video editor ASAP, budget $500, hiring this week', '')


class TestScenario:

    def test_hiring_asap_budget(self):
        b = score_lead(*SCENARIO)
        assert b.intent_depth == 40
        assert b.urgency_velocity == 25
        assert b.budget_signals == 15
        # "video editor" is a moderate-fit phrase
        assert b.fit_precision == 3
        assert b.score == 83
        assert b.rush_12_hour_eligible is True

    def test_deterministic(self):
        assert score_lead(*SCENARIO) == score_lead(*SCENARIO)

    def test_pain_tag_from_asap(self):
        assert 'PAIN_DEADLINE' in score_lead(*SCENARIO).pain_tags


class TestTiers:

    def test_first_matching_tier_wins(self):
        tiers = [{'points': 50, 'phrases': ['a']}, {'points': 10, 'phrases': ['b']}]
        assert tier_points('b then a', tiers) == 50
        assert tier_points('only b', tiers) == 10
        assert tier_points('nothing', tiers) == 0

    def test_negative_budget_checked_first(self):
        b = score_lead('Student project, budget $0, free edit', 'need someone to edit')
        assert b.budget_signals == -10

    def test_competitive_intent(self):
        assert score_lead('Premiere vs CapCut for shorts?', '').intent_depth == 50

    def test_no_signals_scores_zero(self):
        b = score_lead('Lovely weather', 'Went for a walk.')
        assert b.score == 0
        assert b.rush_12_hour_eligible is False
        assert b.buyer_type is None


class TestWeightsAndBounds:

    def test_weights_multiply_sub_scores(self):
        weights = ScoringWeights(intent_weight=2.0, urgency_weight=0.5, budget_weight=1.0, fit_weight=1.0)
        # 40*2 + 25*0.5 + 15 + 3 = 110.5 → clamped
        assert score_lead(*SCENARIO, weights=weights).score == 100

    def test_half_rounds_up(self):
        weights = ScoringWeights(urgency_weight=0.5)
        # 40 + 12.5 + 15 + 3 = 70.5
        assert score_lead(*SCENARIO, weights=weights).score == 71

    def test_seller_penalty(self):
        b = score_lead('Video editor for hire', 'My services: shorts. Budget friendly.')
        # hire 40 + budget 15 + video editor 3 - 30
        assert b.score == 28

    def test_clamped_at_zero(self):
        assert score_lead('Available for work', 'free').score == 0

    @pytest.mark.parametrize('title,snippet', [
        ('hiring asap $ podcast repurpose vs', 'budget today this week'),
        ('for hire available for work', 'free volunteer'),
        ('', ''),
    ])
    def test_always_within_bounds(self, title, snippet):
        for w in (0.5, 1.0, 2.0):
            weights = ScoringWeights(w, w, w, w)
            assert 0 <= score_lead(title, snippet, weights).score <= 100


class TestTags:

    def test_agency_buyer_type(self):
        assert score_lead('White label editing for our clients', '').buyer_type == 'AGENCY'

    def test_podcaster_buyer_type(self):
        assert score_lead('Weekly podcast episode clips', '').buyer_type == 'PODCASTER'

    def test_service_tags(self):
        b = score_lead('Podcast repurpose into TikTok shorts with subtitles', '')
        assert b.service_tags == ['PODCAST_REPURPOSE', 'SHORT_FORM', 'CAPTIONS']

    def test_rush_phrase(self):
        assert score_lead('Need it same day', '').rush_12_hour_eligible is True

    def test_moderate_urgency_not_rush(self):
        assert score_lead('Need an editor soon', '').rush_12_hour_eligible is False

    def test_feature_vector(self):
        assert score_lead(*SCENARIO).feature_vector() == {
            'intent_depth': 40, 'urgency_velocity': 25, 'budget_signals': 15, 'fit_precision': 3,
        }


class TestConfigLoading:

    def test_yaml_matches_defaults(self):
        cfg = load_scoring_config()
        default = _default_config()
        for dim in ('intent', 'urgency', 'budget', 'fit'):
            assert cfg[dim] == default[dim]
        assert cfg['seller'] == default['seller']

    def test_cached(self):
        assert load_scoring_config() is load_scoring_config()

    def test_missing_yaml_falls_back(self):
        with patch('builtins.open', side_effect=FileNotFoundError('gone')):
            cfg = load_scoring_config()
        assert cfg['version'] == 'default'
