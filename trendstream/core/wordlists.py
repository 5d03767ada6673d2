"""Stopword and bad-word list loading."""
from pathlib import Path
from typing import FrozenSet, Iterable, Optional, Union

from .errors import ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_STOPWORDS = DATA_DIR / "stopwords.txt"
DEFAULT_BAD_WORDS = DATA_DIR / "badwords.txt"


def load_word_set(*paths: Union[str, Path]) -> FrozenSet[str]:
    """
    Load a deduplicated word set from one or more files.

    Lines are trimmed and lower-cased; blank lines are skipped.

    Args:
        paths: Word list files, one word per line

    Returns:
        Union of all words

    Raises:
        ConfigurationError: if a file is missing or unreadable
    """
    words = set()
    for path in paths:
        path = Path(path)
        try:
            with path.open(encoding="utf-8") as handle:
                for line in handle:
                    word = line.strip().lower()
                    if word:
                        words.add(word)
        except OSError as exc:
            raise ConfigurationError(f"Cannot read word list {path}: {exc}") from exc
        logger.debug(f"Loaded word list {path}")

    return frozenset(words)


def load_stopwords(path: Optional[str] = None) -> FrozenSet[str]:
    """Stopwords from ``path`` or the packaged list."""
    return load_word_set(path or DEFAULT_STOPWORDS)


def load_bad_words(paths: Iterable[str] = ()) -> FrozenSet[str]:
    """Bad words from ``paths`` or the packaged list."""
    paths = list(paths)
    return load_word_set(*(paths or [DEFAULT_BAD_WORDS]))
