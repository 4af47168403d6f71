"""Text utilities shared by title normalization and film matching."""

import re
import unicodedata


def fold_diacritics(text: str) -> str:
    """
    Decompose accented characters and drop the combining marks.

    Examples:
        "Amélie" → "Amelie"
        "Les Misérables" → "Les Miserables"
    """
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def title_key(title: str) -> str:
    """
    Build the matching key for a film title.

    Two titles that differ only in accents, case, a leading "The",
    punctuation or spacing produce the same key:
        "The Shining" → "shining"
        "Amélie!" → "amelie"
        "Spider-Man" → "spiderman"

    Args:
        title: Cleaned (canonical) film title

    Returns:
        Lowercase ASCII-folded key, empty if nothing is left
    """
    key = fold_diacritics(title).lower().strip()

    # Drop a leading article
    key = re.sub(r"^the\s+", "", key)

    # Remove punctuation
    key = re.sub(r"[^\w\s]", "", key)

    # Collapse whitespace
    key = re.sub(r"\s+", " ", key)

    return key.strip()
