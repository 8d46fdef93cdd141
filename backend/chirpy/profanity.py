from typing import Iterable

MASK = "****"


def clean_body(body: str, bad_words: Iterable[str]) -> str:
    """Mask every whitespace-separated word whose lowercase form is a bad word."""
    banned = {w.lower() for w in bad_words}
    return " ".join(MASK if word.lower() in banned else word for word in body.split())
