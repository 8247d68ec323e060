"""Title/composer heuristics for OCR and text-layer input."""

import pytest

from sheet_annotator.core.metadata import (
    NOISE_CHARS,
    extract_metadata,
    extract_metadata_from_text_layer,
    is_clean_line,
    split_lines,
)
from sheet_annotator.core.types import ExtractedMetadata


def test_empty_input_gives_empty_fields():
    assert extract_metadata("") == ExtractedMetadata("", "", "")
    assert extract_metadata("").to_json_dict() == {"title": "", "composer": "", "rawText": ""}


def test_whitespace_only_input_gives_empty_raw_text():
    assert extract_metadata("  \n\t\n   ") == ExtractedMetadata("", "", "")


def test_split_lines_trims_and_drops_blanks():
    assert split_lines("  Title \r\n\n  Composer\n   ") == ["Title", "Composer"]


@pytest.mark.parametrize("line", ["-----", "• • • • •", "____", "—— ·· ——", "♪♫♪♫", "...", "Ab", "'a'b'c'"])
def test_noise_lines_are_not_clean(line):
    assert not is_clean_line(line)


@pytest.mark.parametrize("line", ["Symphony No. 5", "Τα παιδιά του Πειραιά", "Για-σένα", "abc"])
def test_letter_lines_are_clean(line):
    assert is_clean_line(line)


def test_noise_set_covers_ornaments():
    for ch in ("\u0301", "…", "—", "●", "♫", "."):
        assert ch in NOISE_CHARS
    assert "_" not in NOISE_CHARS


def test_positional_composer_when_no_greek_label():
    text = "Symphony No. 5\nLudwig van Beethoven\nMusic: L. Beethoven"
    result = extract_metadata(text)
    assert result.title == "Symphony No. 5"
    assert result.composer == "Ludwig van Beethoven"
    assert result.raw_text == text


def test_greek_music_label_sets_composer():
    text = "Τα παιδιά του Πειραιά\nΜουσική: Μάνος Χατζιδάκις Στίχοι: Μάνος Χατζιδάκις"
    result = extract_metadata(text)
    assert result.title == "Τα παιδιά του Πειραιά"
    assert result.composer == "Μάνος Χατζιδάκις"


def test_music_label_is_case_insensitive():
    result = extract_metadata("Άρνηση\nμουσική: Μίκης Θεοδωράκης")
    assert result.composer == "Μίκης Θεοδωράκης"


def test_music_label_stops_at_lyrics_keyword():
    result = extract_metadata("Song Title\nΜουσική Stavros Kouyioumtzis Lyrics Someone")
    assert result.composer == "Stavros Kouyioumtzis"


def test_lyricist_label_is_composer_fallback():
    result = extract_metadata("Ένα το χελιδόνι\nΣτίχοι: Οδυσσέας Ελύτης")
    assert result.title == "Ένα το χελιδόνι"
    assert result.composer == "Οδυσσέας Ελύτης"


def test_later_music_label_overrides_earlier_lyricist():
    text = "Song Title\nΣτίχοι: Νίκος Γκάτσος\nΜουσική: Μίκης Θεοδωράκης"
    assert extract_metadata(text).composer == "Μίκης Θεοδωράκης"


def test_first_lyricist_label_wins_over_later_lyricist():
    text = "Song Title\nΣτίχοι: Νίκος Γκάτσος\nΣτίχοι: Οδυσσέας Ελύτης"
    assert extract_metadata(text).composer == "Νίκος Γκάτσος"


def test_label_with_punctuated_name_falls_back_to_position():
    # Initials with dots are outside the name character class
    result = extract_metadata("Ζορμπάς\nΜουσική: Μ. Θεοδωράκης")
    assert result.title == "Ζορμπάς"
    assert result.composer == "Μουσική: Μ. Θεοδωράκης"


def test_label_lines_are_never_title():
    result = extract_metadata("Music: Someone\nLyrics: Other\nActual Song")
    assert result.title == "Actual Song"
    # Positional fallback skips only the first clean line
    assert result.composer == "Lyrics: Other"


def test_noise_lines_are_skipped_for_title_and_composer():
    text = "-----\n• • • •\n____\nMoonlight Sonata\n—————\nL. van Beethoven"
    result = extract_metadata(text)
    assert result.title == "Moonlight Sonata"
    assert result.composer == "L. van Beethoven"


def test_all_noise_gives_empty_fields():
    result = extract_metadata("-----\n• • •\n♪ ♪ ♪\n____")
    assert result.title == ""
    assert result.composer == ""
    assert result.raw_text == "-----\n• • •\n♪ ♪ ♪\n____"


def test_single_line_input():
    assert extract_metadata("Ave Maria") == ExtractedMetadata("Ave Maria", "", "Ave Maria")


def test_short_single_line_is_not_a_title():
    result = extract_metadata("Abc")
    assert result.title == ""
    assert result.composer == ""


def test_composer_must_differ_from_title():
    result = extract_metadata("Same Line\nSame Line\nComposer Name")
    assert result.title == "Same Line"
    assert result.composer == "Composer Name"


def test_composer_skips_first_clean_line_even_when_it_was_too_short_for_title():
    # "Abc" is clean but too short to be a title; it still counts as the first clean line
    result = extract_metadata("Abc\nLong Title Line\nThe Composer")
    assert result.title == "Long Title Line"
    assert result.composer == "The Composer"


@pytest.mark.parametrize(
    "text",
    [
        "\x00\x01\x02",
        "\n" * 50,
        "Μουσική:",
        "Μουσική:    ",
        "Στίχοι: 123",
        "☀☁☂☃" * 100,
        "a" * 10000,
        "\u0301\u0301\u0301abc",
        "Title\r\nComposer\r\n",
    ],
)
def test_extract_never_raises(text):
    result = extract_metadata(text)
    assert isinstance(result.title, str)
    assert isinstance(result.composer, str)
    assert isinstance(result.raw_text, str)
    assert set(result.to_json_dict()) == {"title", "composer", "rawText"}


def test_text_layer_takes_first_two_lines():
    result = extract_metadata_from_text_layer("\n  Nocturne Op. 9 No. 2 \n----\nChopin\n")
    assert result.title == "Nocturne Op. 9 No. 2"
    assert result.composer == "----"


def test_text_layer_handles_short_input():
    assert extract_metadata_from_text_layer("") == ExtractedMetadata("", "", "")
    assert extract_metadata_from_text_layer("Only") == ExtractedMetadata("Only", "", "Only")
