"""Unit tests for identity hashes and deterministic nonces."""

import hashlib
from decimal import Decimal

from paycrypt.domain.hashing import deterministic_nonce, identity_hash, owner_commitment
from paycrypt.domain.intents import IntentVariant, TransactionIntent


class TestIdentityHash:

    def test_format(self):
        value = identity_hash("alice@example.com")
        assert value.startswith("0x")
        assert len(value) == 66
        assert value == "0x" + hashlib.sha256(b"alice@example.com").hexdigest()

    def test_case_and_whitespace_insensitive(self):
        assert identity_hash(" Alice@Example.COM ") == identity_hash("alice@example.com")

    def test_distinct_identities(self):
        assert identity_hash("alice@example.com") != identity_hash("bob@example.com")

    def test_owner_commitment_differs_from_identity_hash(self):
        assert owner_commitment("alice@example.com") != identity_hash("alice@example.com")
        assert owner_commitment("ALICE@example.com") == owner_commitment("alice@example.com")


class TestDeterministicNonce:
    """Same (sender, token) always maps to the same 64-bit nonce"""

    def test_matches_sha256_prefix(self):
        expected = int.from_bytes(hashlib.sha256(b"alice@example.com:alpha-one").digest()[:8], "big")
        assert deterministic_nonce("alice@example.com", "alpha-one") == expected

    def test_stable_and_sender_case_insensitive(self):
        assert deterministic_nonce("Alice@Example.com", "alpha-one") == deterministic_nonce(
            "alice@example.com", "alpha-one"
        )

    def test_fits_in_64_bits(self):
        assert 0 <= deterministic_nonce("alice@example.com", "x") < 2 ** 64

    def test_token_and_sender_matter(self):
        base = deterministic_nonce("alice@example.com", "alpha-one")
        assert deterministic_nonce("alice@example.com", "alpha-two") != base
        assert deterministic_nonce("bob@example.com", "alpha-one") != base


class TestNonceSeed:

    def _intent(self, **kwargs):
        fields = dict(
            amount=Decimal("1"),
            currency="DOT",
            sender="alice@example.com",
            variant=IntentVariant.TRANSFER,
            email_id="e1",
        )
        fields.update(kwargs)
        return TransactionIntent(**fields)

    def test_call_sign_preferred(self):
        assert self._intent(call_sign="cs", message_id="<m@x>").nonce_seed == "cs"

    def test_message_id_fallback(self):
        assert self._intent(message_id="<m@x>").nonce_seed == "<m@x>"

    def test_email_id_last_resort(self):
        assert self._intent().nonce_seed == "e1"
