import re

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")


def tokenize(text: str | None) -> list[str]:
    """
    Tokenizes the input text into a list of terms.

    Lowercases the text and splits it on every run of characters that are not
    ASCII letters or digits. The same function is used at indexing and at query
    time so that term matching is symmetric.
    """
    if not text:
        return []
    return _TOKEN_PATTERN.findall(text.lower())
