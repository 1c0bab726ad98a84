"""
Unit tests for signed asset URLs.

The clock is injected so expiry can be tested without sleeping.
"""

import pytest

from src.core.media.signing import SignedURLCodec


NOW = 1_700_000_000


@pytest.fixture
def codec():
    return SignedURLCodec("test-secret", clock=lambda: NOW)


class TestSignedURLCodec:

    def test_fresh_signature_verifies(self, codec):
        expires = NOW + 60
        signature = codec.sign_key("landscape/a.mp4", expires)

        assert codec.verify("landscape/a.mp4", str(expires), signature)

    def test_signature_is_hex_sha256(self, codec):
        signature = codec.sign_key("a", NOW)

        assert len(signature) == 64
        int(signature, 16)

    def test_signature_at_exact_deadline_still_verifies(self, codec):
        signature = codec.sign_key("a", NOW)
        assert codec.verify("a", str(NOW), signature)

    def test_expired_signature_fails(self, codec):
        expires = NOW - 1
        signature = codec.sign_key("a", expires)

        assert not codec.verify("a", str(expires), signature)

    def test_tampered_signature_fails(self, codec):
        expires = NOW + 60
        signature = codec.sign_key("a", expires)
        flipped = ("0" if signature[0] != "0" else "1") + signature[1:]

        assert not codec.verify("a", str(expires), flipped)

    def test_signature_bound_to_key(self, codec):
        expires = NOW + 60
        signature = codec.sign_key("a.mp4", expires)

        assert not codec.verify("b.mp4", str(expires), signature)

    def test_signature_bound_to_expiry(self, codec):
        """Extending the deadline invalidates the signature."""
        signature = codec.sign_key("a", NOW + 60)

        assert not codec.verify("a", str(NOW + 3600), signature)

    @pytest.mark.parametrize("expires", ["soon", "", "12.5", None])
    def test_unparseable_expiry_fails(self, codec, expires):
        signature = codec.sign_key("a", NOW + 60)
        assert not codec.verify("a", expires, signature)

    def test_missing_signature_fails(self, codec):
        assert not codec.verify("a", str(NOW + 60), None)

    def test_different_secret_fails(self, codec):
        other = SignedURLCodec("other-secret", clock=lambda: NOW)
        signature = other.sign_key("a", NOW + 60)

        assert not codec.verify("a", str(NOW + 60), signature)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            SignedURLCodec("")
