"""Tests for PKCE, state tokens and OAuth 1.0a signing."""

import re
from unittest.mock import patch

import pytest

from services.signatures import (
    PKCE_ALPHABET,
    OAuth1Credentials,
    OAuth1Signer,
    derive_code_challenge,
    generate_csrf_state,
    generate_pkce_pair,
    percent_encode,
    verify_state,
)


# Request and credentials from Twitter's "Creating a signature" guide
GUIDE_CREDENTIALS = OAuth1Credentials(
    consumer_key='xvz1evFS4wEEPTGEFPHBog',
    consumer_secret='kAcSOqF21Fu85e7zjz7ZN2U4ZRhfV3WpwPAoE3Z7kBw',
    token='370773112-GmHxMAgYyLbNEtIKZeRNFsMKPR9EyMZeS9weJAEb',
    token_secret='LswwdoUaIvS8ltyTt5jkRh4J50vUPVVHtR2YPi5kE',
)
GUIDE_URL = 'https://api.twitter.com/1.1/statuses/update.json?include_entities=true'
GUIDE_PARAMS = {'status': 'Hello Ladies + Gentlemen, a signed OAuth request!'}
GUIDE_NONCE = 'kYjzVBB8Y0ZFabxSWbWovY3uYSQ2pTgmZeNu2VS4cg'
GUIDE_TIMESTAMP = '1318622958'


def parse_header(header):
    assert header.startswith('OAuth ')
    return dict(re.findall(r'(\w+)="([^"]*)"', header))


class TestPkce:
    """PKCE verifier/challenge generation."""

    def test_rfc7636_example_challenge(self):
        verifier = 'dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk'
        assert derive_code_challenge(verifier) == 'E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM'

    def test_challenge_is_deterministic(self):
        pair = generate_pkce_pair()
        assert derive_code_challenge(pair.verifier) == pair.challenge
        assert derive_code_challenge(pair.verifier) == derive_code_challenge(pair.verifier)

    def test_verifier_length_and_alphabet(self):
        pair = generate_pkce_pair()
        assert len(pair.verifier) >= 43
        assert all(c in PKCE_ALPHABET for c in pair.verifier)

    def test_challenge_has_no_padding(self):
        pair = generate_pkce_pair()
        assert '=' not in pair.challenge
        assert len(pair.challenge) == 43

    def test_pairs_are_unique(self):
        assert generate_pkce_pair().verifier != generate_pkce_pair().verifier

    @pytest.mark.parametrize('length', [42, 129])
    def test_rejects_out_of_range_length(self, length):
        with pytest.raises(ValueError):
            generate_pkce_pair(length)


class TestStateTokens:
    """CSRF state generation and comparison."""

    def test_state_does_not_embed_user_id(self):
        state = generate_csrf_state(424242)
        assert '424242' not in state
        assert len(state) >= 32

    def test_states_are_unique(self):
        assert generate_csrf_state(1) != generate_csrf_state(1)

    def test_state_requires_user(self):
        with pytest.raises(ValueError):
            generate_csrf_state(None)

    def test_verify_state(self):
        state = generate_csrf_state(1)
        assert verify_state(state, state) is True
        assert verify_state(state, state + 'x') is False
        assert verify_state(state, '') is False
        assert verify_state(None, state) is False


class TestPercentEncode:

    def test_unreserved_characters_are_kept(self):
        assert percent_encode('AZaz09-._~') == 'AZaz09-._~'

    def test_reserved_characters_are_escaped(self):
        assert percent_encode('Hello Ladies + Gentlemen!') == 'Hello%20Ladies%20%2B%20Gentlemen%21'
        assert percent_encode('a/b=c&d') == 'a%2Fb%3Dc%26d'

    def test_non_ascii_is_utf8_encoded(self):
        assert percent_encode('☃') == '%E2%98%83'


class TestOAuth1Signer:
    """HMAC-SHA1 request signing."""

    def test_signature_matches_published_example(self):
        signer = OAuth1Signer(GUIDE_CREDENTIALS)
        signature = signer.signature('POST', GUIDE_URL, GUIDE_PARAMS, GUIDE_NONCE, GUIDE_TIMESTAMP)
        assert signature == 'hCtSmYh+iHYCEqBWrE7C7hYmtUk='

    def test_base_string_folds_query_and_sorts_params(self):
        signer = OAuth1Signer(GUIDE_CREDENTIALS)
        base = signer.signature_base_string('post', GUIDE_URL, {'b': '2', 'a': '1'})
        assert base.startswith('POST&https%3A%2F%2Fapi.twitter.com%2F1.1%2Fstatuses%2Fupdate.json&')
        assert base.endswith('a%3D1%26b%3D2%26include_entities%3Dtrue')

    def test_query_string_is_signed_like_params(self):
        signer = OAuth1Signer(GUIDE_CREDENTIALS)
        bare_url = GUIDE_URL.split('?')[0]
        folded = dict(GUIDE_PARAMS, include_entities='true')
        assert signer.signature('POST', bare_url, folded, GUIDE_NONCE, GUIDE_TIMESTAMP) == (
            'hCtSmYh+iHYCEqBWrE7C7hYmtUk='
        )
        assert signer.signature('POST', bare_url, GUIDE_PARAMS, GUIDE_NONCE, GUIDE_TIMESTAMP) != (
            'hCtSmYh+iHYCEqBWrE7C7hYmtUk='
        )

    def test_header_parameters_are_sorted(self):
        signer = OAuth1Signer(GUIDE_CREDENTIALS)
        header = signer.sign('POST', GUIDE_URL, nonce=GUIDE_NONCE, timestamp=GUIDE_TIMESTAMP)
        names = re.findall(r'(\w+)="', header)
        assert names == sorted(names)
        assert names[0] == 'oauth_consumer_key'

    def test_header_contains_oauth_params(self):
        signer = OAuth1Signer(GUIDE_CREDENTIALS)
        header = signer.sign('POST', GUIDE_URL, GUIDE_PARAMS, nonce=GUIDE_NONCE, timestamp=GUIDE_TIMESTAMP)
        params = parse_header(header)
        assert params['oauth_consumer_key'] == GUIDE_CREDENTIALS.consumer_key
        assert params['oauth_token'] == GUIDE_CREDENTIALS.token
        assert params['oauth_signature_method'] == 'HMAC-SHA1'
        assert params['oauth_version'] == '1.0'
        assert params['oauth_signature'] == 'hCtSmYh%2BiHYCEqBWrE7C7hYmtUk%3D'
        # request params are signed but never sent in the header
        assert 'status' not in params

    def test_supplied_nonce_and_timestamp_replay_exactly(self):
        signer = OAuth1Signer(GUIDE_CREDENTIALS)
        first = signer.sign('POST', GUIDE_URL, GUIDE_PARAMS, nonce='abc', timestamp=1700000000)
        second = signer.sign('POST', GUIDE_URL, GUIDE_PARAMS, nonce='abc', timestamp=1700000000)
        assert first == second

    def test_fresh_nonce_each_call(self):
        signer = OAuth1Signer(GUIDE_CREDENTIALS)
        first = parse_header(signer.sign('POST', GUIDE_URL))
        second = parse_header(signer.sign('POST', GUIDE_URL))
        assert first['oauth_nonce'] != second['oauth_nonce']
        assert first['oauth_signature'] != second['oauth_signature']

    def test_fresh_timestamp_each_call(self):
        signer = OAuth1Signer(GUIDE_CREDENTIALS)
        with patch('services.signatures.time.time', side_effect=[1700000000, 1700000005]):
            first = parse_header(signer.sign('POST', GUIDE_URL, nonce='same'))
            second = parse_header(signer.sign('POST', GUIDE_URL, nonce='same'))
        assert first['oauth_timestamp'] == '1700000000'
        assert second['oauth_timestamp'] == '1700000005'
        assert first['oauth_signature'] != second['oauth_signature']

    def test_credentials_from_config(self):
        config = {
            'TWITTER_API_KEY': 'k',
            'TWITTER_API_SECRET': 's',
            'TWITTER_ACCESS_TOKEN': 't',
            'TWITTER_ACCESS_TOKEN_SECRET': 'ts',
        }
        credentials = OAuth1Credentials.from_config(config)
        assert credentials == OAuth1Credentials('k', 's', 't', 'ts')

    def test_credentials_missing_value(self):
        assert OAuth1Credentials.from_config({'TWITTER_API_KEY': 'k'}) is None
