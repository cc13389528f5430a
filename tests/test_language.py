"""Tests for language code normalisation and converter mappings."""

import logging

import pytest
from subtitle_forge import languages


class TestNormalize:
    def test_lower_and_trim(self) -> None:
        assert languages.normalize(" ENG ") == "eng"

    def test_empty_is_undetermined(self) -> None:
        assert languages.normalize("") == "und"
        assert languages.normalize(None) == "und"


class TestToTwoLetter:
    @pytest.mark.parametrize("code, expected", [
        ("eng", "en"),
        ("fre", "fr"),
        ("fra", "fr"),
        ("ger", "de"),
        ("deu", "de"),
        ("chi", "zh"),
        ("en", "en"),
        ("ENG", "en"),
    ])
    def test_mapped(self, code: str, expected: str) -> None:
        assert languages.to_two_letter(code) == expected

    def test_unmapped_passes_through_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            assert languages.to_two_letter("tlh") == "tlh"
        assert "tlh" in caplog.text


class TestToTesseract:
    @pytest.mark.parametrize("code, expected", [
        ("eng", "eng"),
        ("en", "eng"),
        ("fre", "fra"),
        ("ger", "deu"),
        ("dut", "nld"),
        ("chi", "chi_sim"),
        ("zh", "chi_sim"),
    ])
    def test_mapped(self, code: str, expected: str) -> None:
        assert languages.to_tesseract(code) == expected

    def test_unmapped_passes_through_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            assert languages.to_tesseract("und") == "und"
        assert "Tesseract" in caplog.text


class TestTables:
    def test_tables_are_read_only(self) -> None:
        with pytest.raises(TypeError):
            languages.TWO_LETTER["xxx"] = "xx"  # type: ignore[index]

    def test_display_name(self) -> None:
        assert languages.display_name("fre") == "French"
        assert languages.display_name("de") == "German"
        assert languages.display_name("tlh") == "tlh"
