from __future__ import annotations

from access_plane.services.otc_codes import (
    OTC_CODE_ALPHABET,
    OTC_CODE_LENGTH,
    generate_otc_code,
    hash_otc_code,
    normalize_otc_code,
)


def test_generate_otc_code_uses_unambiguous_alphabet() -> None:
    codes = {generate_otc_code() for _ in range(200)}

    assert len(codes) > 190
    for code in codes:
        assert len(code) == OTC_CODE_LENGTH
        assert set(code) <= set(OTC_CODE_ALPHABET)
        assert not set(code) & {"0", "O", "1", "I"}


def test_normalize_otc_code_strips_separators_and_case() -> None:
    assert normalize_otc_code("  abcd-2345 ") == "ABCD2345"
    assert normalize_otc_code("ab cd\t23 45") == "ABCD2345"
    assert normalize_otc_code(" - ") == ""


def test_hash_otc_code_depends_on_pepper_and_hides_code() -> None:
    first = hash_otc_code(normalized_code="ABCD2345", pepper="pepper-a")
    second = hash_otc_code(normalized_code="ABCD2345", pepper="pepper-b")

    assert len(first) == 64
    assert first != second
    assert "ABCD2345" not in first
    assert first == hash_otc_code(normalized_code="ABCD2345", pepper="pepper-a")
