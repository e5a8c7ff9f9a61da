"""Tests for leadloop.pipeline.entity_resolution: email / domain / handle precedence."""
import pytest

from leadloop.pipeline.entity_resolution import (
    EntityCandidate, LeadIdentity,
    handle_similarity, handles_from_socials, identity_from_url, normalize_handle, resolve_entity,
)


@pytest.fixture
def candidates():
    return [
        EntityCandidate(id='e1', emails=['ops@acme.io'], domains=['acme.io'], handles={'x': 'acmeclips'}),
        EntityCandidate(id='e2', emails=['hello@studio.co'], domains=['studio.co'], handles={'x': 'studio_co'}),
    ]


class TestResolveEntity:

    def test_email_match_is_case_insensitive(self, candidates):
        match = resolve_entity(LeadIdentity(email='OPS@Acme.io'), candidates)
        assert (match.entity_id, match.confidence, match.reason) == ('e1', 1.0, 'EMAIL')

    def test_email_beats_domain(self, candidates):
        match = resolve_entity(LeadIdentity(email='hello@studio.co', domain='acme.io'), candidates)
        assert match.entity_id == 'e2'
        assert match.reason == 'EMAIL'

    def test_domain_match(self, candidates):
        match = resolve_entity(LeadIdentity(domain='ACME.io'), candidates)
        assert (match.entity_id, match.confidence, match.reason) == ('e1', 0.9, 'DOMAIN')

    def test_fuzzy_handle_match(self, candidates):
        match = resolve_entity(LeadIdentity(handle='@acmeclip'), candidates)
        assert (match.entity_id, match.confidence, match.reason) == ('e1', 0.8, 'HANDLE')

    def test_handle_below_threshold_is_none(self, candidates):
        match = resolve_entity(LeadIdentity(handle='totallydifferent'), candidates)
        assert (match.entity_id, match.confidence, match.reason) == (None, 0.0, 'NONE')

    def test_no_signals_is_none(self, candidates):
        assert resolve_entity(LeadIdentity(), candidates).reason == 'NONE'

    def test_empty_candidates(self):
        assert resolve_entity(LeadIdentity(email='a@b.c', domain='b.c', handle='x'), []).entity_id is None

    def test_first_candidate_wins_handle_tie(self):
        cands = [
            EntityCandidate(id='first', handles={'x': 'editorpro'}),
            EntityCandidate(id='second', handles={'x': 'editorpro'}),
        ]
        assert resolve_entity(LeadIdentity(handle='editorpro'), cands).entity_id == 'first'


class TestHandles:

    def test_normalize_strips_at_and_lowercases(self):
        assert normalize_handle('  @MayaEdits ') == 'mayaedits'
        assert normalize_handle(None) == ''

    def test_similarity_bounds(self):
        assert handle_similarity('abc', 'abc') == 1.0
        assert handle_similarity('abc', 'xyz') == 0.0
        assert handle_similarity('abcd', 'abce') == pytest.approx(0.75)

    def test_handles_from_socials(self):
        socials = [
            {'platform': 'X', 'url': 'https://x.com/MayaEdits'},
            {'platform': 'LINKEDIN', 'url': 'https://www.linkedin.com/in/maya-edits/'},
            {'platform': 'YOUTUBE', 'url': 'https://youtube.com/@mayaclips'},
            {'platform': 'X', 'url': 'https://x.com/second'},
        ]
        assert handles_from_socials(socials) == {
            'x': 'mayaedits',
            'linkedin': 'maya-edits',
            'youtube': 'mayaclips',
        }

    def test_handles_from_socials_skips_bare_hosts(self):
        assert handles_from_socials([{'platform': 'TIKTOK', 'url': 'https://tiktok.com/'}]) == {}


class TestIdentityFromUrl:

    def test_strips_www(self):
        identity = identity_from_url('https://www.acme.io/blog/post', emails=['ops@acme.io', 'x@y.z'])
        assert identity.domain == 'acme.io'
        assert identity.email == 'ops@acme.io'
        assert identity.handle is None

    def test_x_handle(self):
        identity = identity_from_url('https://x.com/creatormaya/status/123')
        assert identity.domain is None
        assert identity.handle == 'creatormaya'

    def test_twitter_subdomain_handle(self):
        identity = identity_from_url('https://mobile.twitter.com/creatormaya/status/123')
        assert identity.domain is None
        assert identity.handle == 'creatormaya'

    @pytest.mark.parametrize('url', [
        'https://www.reddit.com/r/podcasting/comments/abc123/need_editor/',
        'https://old.reddit.com/r/NewTubers/comments/xyz789/',
        'https://www.youtube.com/watch?v=abc',
        'https://m.facebook.com/groups/123/posts/456',
    ])
    def test_platform_hosts_carry_no_domain(self, url):
        identity = identity_from_url(url)
        assert identity.domain is None
        assert identity.handle is None

    def test_lookalike_host_keeps_domain(self):
        assert identity_from_url('https://notreddit.com/post').domain == 'notreddit.com'

    def test_unparsable(self):
        identity = identity_from_url('not a url')
        assert identity.domain is None
        assert identity.email is None
