"""Unit tests for text normalisation utilities."""

from cinecatalog.utils.text import fold_diacritics, title_key


class TestFoldDiacritics:
    def test_strips_accents(self) -> None:
        assert fold_diacritics("Amélie") == "Amelie"

    def test_leaves_plain_text_alone(self) -> None:
        assert fold_diacritics("Nosferatu") == "Nosferatu"

    def test_handles_multiple_marks(self) -> None:
        assert fold_diacritics("Les Misérables à Noël") == "Les Miserables a Noel"


class TestTitleKey:
    def test_lowercases(self) -> None:
        assert title_key("Nosferatu") == "nosferatu"

    def test_drops_leading_article(self) -> None:
        assert title_key("The Shining") == "shining"

    def test_keeps_inner_article(self) -> None:
        assert title_key("Night of the Living Dead") == "night of the living dead"

    def test_removes_punctuation(self) -> None:
        assert title_key("Spider-Man: No Way Home!") == "spiderman no way home"

    def test_folds_accents(self) -> None:
        assert title_key("Amélie") == title_key("Amelie")

    def test_collapses_whitespace(self) -> None:
        assert title_key("  Paris,   Texas ") == "paris texas"

    def test_empty_when_only_punctuation(self) -> None:
        assert title_key("!!!") == ""
