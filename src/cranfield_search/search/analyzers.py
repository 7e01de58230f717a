"""Analyzer utilities for the retrieval engine.

Analyzers follow a composable tokenizer/filter design: a tokenizer turns raw
field text into a stream of ``Token`` objects and filters rewrite, drop or add
tokens. Every analyzer is a stateless callable, so one instance can be shared
by the index builder, the query parser and any number of worker threads.

The registry at the bottom of the module maps configuration names
(``standard``, ``english``, ``whitespace``, ``ngram``, ``synonym``) to analyzer
factories. ``FieldAnalyzers`` binds one analyzer to each document field so that
indexing and querying always analyze a field the same way.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
import logging
import re
from types import MappingProxyType
from typing import Any, Protocol

from cranfield_search.search.synonyms import SynonymMap, get_synonym_map


logger = logging.getLogger(__name__)


@dataclass
class Token:
    """Represents a token emitted by analyzers."""

    text: str
    position: int
    start_char: int
    end_char: int
    attributes: MutableMapping[str, Any] = field(default_factory=dict)

    def copy_with(self, **updates: Any) -> Token:
        data = {
            "text": self.text,
            "position": self.position,
            "start_char": self.start_char,
            "end_char": self.end_char,
            "attributes": dict(self.attributes),
        }
        data.update(updates)
        return Token(**data)


class Analyzer(Protocol):
    """Protocol implemented by analyzers."""

    def __call__(self, text: str) -> list[Token]:  # pragma: no cover - interface definition
        ...


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class RegexTokenizer:
    """Regex-based tokenizer that yields word tokens.

    The default pattern keeps in-word apostrophes (``don't``, ``wing's``) so the
    possessive filter can strip them afterwards.
    """

    def __init__(self, pattern: str = r"\w+(?:['’]\w+)*", flags: int = re.UNICODE | re.MULTILINE) -> None:
        self.pattern = re.compile(pattern, flags)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class WhitespaceTokenizer(RegexTokenizer):
    """Splits on whitespace only and leaves punctuation attached."""

    def __init__(self) -> None:
        super().__init__(pattern=r"\S+")


class NGramTokenizer:
    """Emit every contiguous character n-gram of the input.

    Grams are emitted by start offset, shortest first, and include whitespace
    characters just like the characters around them. Each gram gets its own
    position.
    """

    def __init__(self, min_gram: int = 3, max_gram: int = 5) -> None:
        if min_gram < 1 or max_gram < min_gram:
            msg = f"Invalid n-gram range: {min_gram}..{max_gram}"
            raise ValueError(msg)
        self.min_gram = min_gram
        self.max_gram = max_gram

    def __call__(self, text: str) -> Iterator[Token]:
        position = 0
        length = len(text)
        for start in range(length):
            for size in range(self.min_gram, self.max_gram + 1):
                end = start + size
                if end > length:
                    break
                yield Token(text=text[start:end], position=position, start_char=start, end_char=end)
                position += 1


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text.islower() or not token.text:
                yield token
            else:
                yield token.copy_with(text=token.text.lower())


_POSSESSIVE_SUFFIXES: tuple[str, ...] = ("'s", "'S", "’s", "’S")


class PossessiveFilter:
    """Strips trailing possessive ``'s`` from tokens."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            text = token.text
            if text.endswith(_POSSESSIVE_SUFFIXES):
                yield token.copy_with(text=text[:-2], end_char=token.end_char - 2)
            else:
                yield token


class MinLengthFilter:
    """Drops tokens shorter than ``min_length`` characters."""

    def __init__(self, min_length: int = 1) -> None:
        self.min_length = max(min_length, 1)

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if len(token.text) >= self.min_length:
                yield token


DEFAULT_STOPWORDS = [
    "a",
    "an",
    "and",
    "are",
    "as",
    "at",
    "be",
    "but",
    "by",
    "for",
    "if",
    "in",
    "into",
    "is",
    "it",
    "no",
    "not",
    "of",
    "on",
    "or",
    "such",
    "that",
    "the",
    "their",
    "then",
    "there",
    "these",
    "they",
    "this",
    "to",
    "was",
    "will",
    "with",
]

_SUFFIX_RULES: tuple[tuple[str, str], ...] = (
    ("ization", "ize"),
    ("ational", "ate"),
    ("fulness", "ful"),
    ("ousness", "ous"),
    ("iveness", "ive"),
    ("tional", "tion"),
    ("biliti", "ble"),
    ("lessli", "less"),
    ("entli", "ent"),
    ("enci", "ence"),
    ("anci", "ance"),
    ("izer", "ize"),
    ("abli", "able"),
    ("alli", "al"),
    ("ator", "ate"),
    ("alism", "al"),
    ("aliti", "al"),
    ("ousli", "ous"),
    ("ation", "ate"),
    ("ness", ""),
    ("ment", ""),
)

_SIMPLE_SUFFIXES: tuple[str, ...] = ("ingly", "edly", "ing", "ies", "ed", "ly", "es", "s")
_SIBILANT_ENDINGS: tuple[str, ...] = ("s", "x", "z", "ch", "sh")


class StopFilter:
    """Removes stopwords from the stream."""

    def __init__(self, stopwords: Sequence[str] | None = None) -> None:
        vocab = stopwords if stopwords is not None else DEFAULT_STOPWORDS
        self.stopwords = frozenset(word.lower() for word in vocab)

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text.lower() not in self.stopwords:
                yield token


class PorterStemFilter:
    """Applies a minimal Porter-style stemming routine."""

    def __init__(self) -> None:
        self._stem = _build_porter_stemmer()

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            stemmed = self._stem(token.text)
            yield token if stemmed == token.text else token.copy_with(text=stemmed)


def _build_porter_stemmer() -> Callable[[str], str]:
    """Return a very small Porter-like stemmer for English technical prose."""

    def stem(word: str) -> str:
        lower = word.lower()
        candidate = _strip_complex_suffix(lower)
        if candidate:
            return candidate
        fallback = _strip_simple_suffix(lower)
        if fallback:
            return fallback
        return lower

    return stem


def _strip_complex_suffix(lower: str) -> str | None:
    for suffix, replacement in _SUFFIX_RULES:
        if lower.endswith(suffix) and len(lower) - len(suffix) >= 2:
            candidate = lower[: -len(suffix)] + replacement
            if len(candidate) >= 2:
                return candidate
    return None


def _strip_simple_suffix(lower: str) -> str | None:
    # "ss" endings (pressure loss, mass) are not plurals.
    if lower.endswith("ss"):
        return None
    for suffix in _SIMPLE_SUFFIXES:
        if not lower.endswith(suffix) or len(lower) - len(suffix) < 3:
            continue
        candidate = lower[: -len(suffix)]
        if suffix == "ies":
            return candidate + "y"
        if suffix == "es" and not candidate.endswith(_SIBILANT_ENDINGS):
            # "engines" -> "engine", "fluxes" -> "flux"
            return lower[:-1]
        return candidate
    return None


class SynonymFilter:
    """Injects synonyms at the position of the term they were derived from.

    The original token is always kept; mapped terms follow it in the stream and
    share its position and offsets, so phrase-style consumers see them as
    alternatives rather than extra words.
    """

    def __init__(self, synonyms: SynonymMap | None = None) -> None:
        self._synonyms = synonyms if synonyms is not None else get_synonym_map()

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            yield token
            for synonym in self._synonyms.get(token.text, ()):
                yield token.copy_with(text=synonym, attributes={"type": "SYNONYM"})


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[Token]:
        if not text:
            return []
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        tokens = [token for token in stream if token.text]
        # Close gaps left by dropped tokens; tokens sharing a position keep sharing it.
        dense: dict[int, int] = {}
        for token in tokens:
            token.position = dense.setdefault(token.position, len(dense))
        return tokens


class StandardAnalyzer:
    """Word tokenizer with possessive stripping and case folding.

    Optional stopword removal, stemming and a minimum term length make this
    class double as the English analyzer.
    """

    def __init__(
        self,
        *,
        min_length: int = 1,
        stopwords: Sequence[str] | None = None,
        remove_stopwords: bool = False,
        apply_stemming: bool = False,
    ) -> None:
        filters: list[TokenFilter] = [PossessiveFilter(), LowercaseFilter()]
        if remove_stopwords:
            filters.append(StopFilter(stopwords))
        if apply_stemming:
            filters.append(PorterStemFilter())
        if min_length > 1:
            filters.append(MinLengthFilter(min_length))
        self.pipeline = AnalyzerPipeline(RegexTokenizer(), filters)

    def __call__(self, text: str) -> list[Token]:
        return self.pipeline(text)


class WhitespaceAnalyzer:
    """Whitespace split with no normalization at all."""

    def __init__(self) -> None:
        self.pipeline = AnalyzerPipeline(WhitespaceTokenizer())

    def __call__(self, text: str) -> list[Token]:
        return self.pipeline(text)


class NGramAnalyzer:
    """Character n-grams (3 to 5 by default) of the lower-cased text."""

    def __init__(self, min_gram: int = 3, max_gram: int = 5) -> None:
        self.pipeline = AnalyzerPipeline(NGramTokenizer(min_gram, max_gram))

    def __call__(self, text: str) -> list[Token]:
        return self.pipeline(text.lower())


class SynonymAnalyzer:
    """Standard analysis followed by domain synonym injection."""

    def __init__(self, synonyms: SynonymMap | None = None) -> None:
        self.pipeline = AnalyzerPipeline(
            RegexTokenizer(),
            [PossessiveFilter(), LowercaseFilter(), SynonymFilter(synonyms)],
        )

    def __call__(self, text: str) -> list[Token]:
        return self.pipeline(text)


DEFAULT_ANALYZER = "standard"

_ANALYZER_FACTORIES: dict[str, Callable[[], Analyzer]] = {
    "standard": lambda: StandardAnalyzer(),
    "english": lambda: StandardAnalyzer(remove_stopwords=True, apply_stemming=True),
    "whitespace": lambda: WhitespaceAnalyzer(),
    "ngram": lambda: NGramAnalyzer(),
    "synonym": lambda: SynonymAnalyzer(),
}


def available_analyzers() -> list[str]:
    return sorted(_ANALYZER_FACTORIES)


def get_analyzer(name: str | None) -> Analyzer:
    """Return analyzer by name, defaulting to the standard analyzer."""

    if name is None:
        return _ANALYZER_FACTORIES[DEFAULT_ANALYZER]()
    normalized = name.lower()
    if normalized not in _ANALYZER_FACTORIES:
        msg = f"Unknown analyzer '{name}'. Available: {available_analyzers()}"
        raise ValueError(msg)
    return _ANALYZER_FACTORIES[normalized]()


def resolve_analyzer_name(name: str | None) -> str:
    """Map an analyzer name to a registered one, falling back to ``standard``.

    This is the field-default fallback used for the query analyzer of the
    baseline experiment, where an unrecognized name means "use the default".
    """

    if name is None:
        return DEFAULT_ANALYZER
    normalized = name.lower()
    if normalized in _ANALYZER_FACTORIES:
        return normalized
    logger.warning("Unknown analyzer '%s', falling back to '%s'", name, DEFAULT_ANALYZER)
    return DEFAULT_ANALYZER


@dataclass(frozen=True)
class FieldAnalyzers:
    """Binds an analyzer to each field, with a default for unlisted fields."""

    names: Mapping[str, str]
    default: str = DEFAULT_ANALYZER
    _analyzers: Mapping[str, Analyzer] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        names = {field_name: name.lower() for field_name, name in self.names.items()}
        analyzers = {field_name: get_analyzer(name) for field_name, name in names.items()}
        analyzers.setdefault("", get_analyzer(self.default))
        object.__setattr__(self, "names", MappingProxyType(names))
        object.__setattr__(self, "default", self.default.lower())
        object.__setattr__(self, "_analyzers", MappingProxyType(analyzers))

    @classmethod
    def uniform(cls, name: str, fields: Iterable[str]) -> FieldAnalyzers:
        return cls({field_name: name for field_name in fields}, default=name)

    def name_for(self, field_name: str) -> str:
        return self.names.get(field_name, self.default)

    def analyzer(self, field_name: str) -> Analyzer:
        return self._analyzers.get(field_name) or self._analyzers[""]

    def tokenize(self, field_name: str, text: str) -> list[str]:
        """Return the normalized terms of ``text`` as the field's analyzer sees them."""

        return [token.text for token in self.analyzer(field_name)(text)]
