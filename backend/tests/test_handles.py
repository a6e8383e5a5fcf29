"""
Recipe Share Backend — Handle Allocator Tests
===============================================

What we test:
    ✅ Sanitization (case, whitespace, punctuation, length, empty fallback)
    ✅ Free base is returned unchanged
    ✅ Taken base gets a "." + 6-char suffix from the allowed alphabet
    ✅ Exhaustion after the base plus 10 suffixed candidates
"""

import pytest

from recipeshare.exceptions import AllocationExhausted
from recipeshare.services.handles import (
    MAX_SUFFIX_ATTEMPTS,
    SUFFIX_ALPHABET,
    SUFFIX_LENGTH,
    allocate_handle,
    generate_suffix,
    sanitize_handle,
)


def taken(*handles):
    """Async `exists` predicate over a fixed set, recording every probe."""
    probes = []

    async def exists(candidate: str) -> bool:
        probes.append(candidate)
        return candidate in handles

    exists.probes = probes
    return exists


class TestSanitizeHandle:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Ada Lovelace", "adalovelace"),
            ("  Grace\tHopper  ", "gracehopper"),
            ("José Ñúñez", "josez"),
            ("chef_42!", "chef42"),
            ("A" * 30, "a" * 20),
        ],
    )
    def test_normalizes_names(self, raw, expected):
        assert sanitize_handle(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "!!!", "ñ"])
    def test_nothing_left_falls_back_to_user(self, raw):
        assert sanitize_handle(raw) == "user"


class TestGenerateSuffix:

    def test_suffix_uses_alphabet(self):
        for _ in range(50):
            suffix = generate_suffix()
            assert len(suffix) == SUFFIX_LENGTH
            assert set(suffix) <= set(SUFFIX_ALPHABET)

    def test_alphabet_has_no_vowels_or_confusables(self):
        assert not set("aeiou01") & set(SUFFIX_ALPHABET)


class TestAllocateHandle:

    @pytest.mark.asyncio
    async def test_free_base_is_used_as_is(self):
        exists = taken()
        assert await allocate_handle("Ada Lovelace", exists) == "adalovelace"
        assert exists.probes == ["adalovelace"]

    @pytest.mark.asyncio
    async def test_taken_base_gets_suffix(self):
        handle = await allocate_handle("Ada", taken("ada"))

        base, suffix = handle.split(".")
        assert base == "ada"
        assert len(suffix) == SUFFIX_LENGTH
        assert set(suffix) <= set(SUFFIX_ALPHABET)

    @pytest.mark.asyncio
    async def test_retries_until_a_suffix_is_free(self):
        suffixes = iter(["bbbbbb", "cccccc", "dddddd"])
        exists = taken("ada", "ada.bbbbbb", "ada.cccccc")

        handle = await allocate_handle("ada", exists, suffix=lambda: next(suffixes))

        assert handle == "ada.dddddd"
        assert exists.probes == ["ada", "ada.bbbbbb", "ada.cccccc", "ada.dddddd"]

    @pytest.mark.asyncio
    async def test_exhaustion_after_eleven_probes(self):
        async def always_taken(candidate: str) -> bool:
            always_taken.calls += 1
            return True

        always_taken.calls = 0

        with pytest.raises(AllocationExhausted) as exc_info:
            await allocate_handle("ada", always_taken)

        assert always_taken.calls == MAX_SUFFIX_ATTEMPTS + 1
        assert exc_info.value.message == "Failed to generate unique username"
        assert exc_info.value.context["attempts"] == 11

    @pytest.mark.asyncio
    async def test_empty_name_allocates_from_fallback(self):
        assert await allocate_handle("***", taken()) == "user"
