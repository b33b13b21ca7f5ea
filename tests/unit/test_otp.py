"""
Unit tests for OTP generation and hashing.
"""

from src.domain.otp import HmacOtpHasher, NumericOtpGenerator


class TestNumericOtpGenerator:
    def test_default_length_is_six_digits(self) -> None:
        code = NumericOtpGenerator().generate()
        assert len(code) == 6
        assert code.isdigit()

    def test_configurable_length(self) -> None:
        assert len(NumericOtpGenerator(length=8).generate()) == 8

    def test_codes_are_strings_preserving_leading_zeros(self) -> None:
        """Codes are never converted to int, so '012345' stays six characters."""
        codes = {NumericOtpGenerator(length=2).generate() for _ in range(500)}
        assert all(isinstance(c, str) and len(c) == 2 for c in codes)
        assert any(c.startswith("0") for c in codes)

    def test_codes_vary(self) -> None:
        codes = {NumericOtpGenerator().generate() for _ in range(50)}
        assert len(codes) > 1


class TestHmacOtpHasher:
    def test_digest_is_not_the_code(self) -> None:
        digest = HmacOtpHasher(key="k").hash("123456")
        assert "123456" not in digest
        assert len(digest) == 64

    def test_deterministic_for_same_key(self) -> None:
        assert HmacOtpHasher(key="k").hash("123456") == HmacOtpHasher(key="k").hash("123456")

    def test_key_changes_digest(self) -> None:
        assert HmacOtpHasher(key="a").hash("123456") != HmacOtpHasher(key="b").hash("123456")

    def test_matches_correct_code(self) -> None:
        hasher = HmacOtpHasher(key="k")
        assert hasher.matches("123456", hasher.hash("123456")) is True

    def test_rejects_wrong_code(self) -> None:
        hasher = HmacOtpHasher(key="k")
        assert hasher.matches("654321", hasher.hash("123456")) is False

    def test_rejects_digest_from_other_key(self) -> None:
        digest = HmacOtpHasher(key="other").hash("123456")
        assert HmacOtpHasher(key="k").matches("123456", digest) is False
