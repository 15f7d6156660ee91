"""Swear-word analyzer: turns transcript tokens into censor intervals."""

import logging
import re
import string

from bleepforge.models import Interval, Token
from bleepforge.wordlists import COMMON_WORDS, ELONGATION_PATTERNS, KNOWN_PHRASES, PROFANITY

logger = logging.getLogger(__name__)

MIN_WORD_LENGTH = 3
OVERLAP_TOLERANCE = 0.1

_LEET = str.maketrans({
    "0": "o",
    "1": "i",
    "3": "e",
    "4": "a",
    "5": "s",
    "7": "t",
    "@": "a",
    "$": "s",
    "!": "i",
    "*": None,
})
_PUNCT_RE = re.compile(r"[^\w\s]")
# Sentence punctuation at the edges is dropped before leet symbols are read.
_EDGE_PUNCT = ".,!?;:\"'()[]{}-"


def normalize_word(word: str) -> str:
    """Lowercase, undo leetspeak, drop ``*`` and strip remaining punctuation."""
    stripped = word.lower().strip().strip(_EDGE_PUNCT)
    return _PUNCT_RE.sub("", stripped.translate(_LEET)).strip()


_NORMALIZED_PROFANITY = frozenset(n for n in (normalize_word(w) for w in PROFANITY) if n)

# Longest entries first so the alternation prefers "motherfucker" over "fucker".
_BOUNDED_RE = re.compile(
    r"\b(?:"
    + "|".join(
        re.escape(w)
        for w in sorted(_NORMALIZED_PROFANITY, key=len, reverse=True)
        if len(w) >= MIN_WORD_LENGTH
    )
    + r")\b"
)
_ELONGATION_RES = tuple(re.compile(p) for p in ELONGATION_PATTERNS)

PHRASE_WINDOWS = tuple(sorted({len(p.split()) for p in KNOWN_PHRASES}, reverse=True))


def is_profane(word: str) -> bool:
    clean = normalize_word(word)
    if len(clean) < MIN_WORD_LENGTH or clean in COMMON_WORDS:
        return False
    if clean in _NORMALIZED_PROFANITY:
        return True
    if _BOUNDED_RE.search(clean):
        return True
    return any(p.fullmatch(clean) for p in _ELONGATION_RES)


def _phrase_key(token: Token) -> str:
    return token.text.strip().strip(string.punctuation).lower()


def _match_phrase(tokens: list[Token], i: int, consumed: set[int]) -> int:
    """Return the length of the known phrase starting at *i*, or 0."""
    for size in PHRASE_WINDOWS:
        window = range(i, i + size)
        if window.stop > len(tokens):
            continue
        if any(j in consumed or not tokens[j].text.strip() for j in window):
            continue
        if " ".join(_phrase_key(tokens[j]) for j in window) in KNOWN_PHRASES:
            return size
    return 0


def _merge_overlapping(intervals: list[Interval]) -> list[Interval]:
    """Merge only intervals that overlap by more than OVERLAP_TOLERANCE.

    Merely adjacent words stay separate so each one gets its own bleep.
    """
    merged: list[Interval] = []
    seen: set[tuple[float, float, str]] = set()
    for current in sorted(intervals, key=lambda iv: (iv.start, iv.end)):
        key = (current.start, current.end, current.label)
        if key in seen:
            continue
        seen.add(key)

        last = merged[-1] if merged else None
        if last is not None and current.start < last.end - OVERLAP_TOLERANCE:
            logger.debug(
                "Merging %r [%.2f-%.2f] into %r [%.2f-%.2f]",
                current.label, current.start, current.end,
                last.label, last.start, last.end,
            )
            last.end = max(last.end, current.end)
            if current.label not in last.label.split():
                last.label = f"{last.label} {current.label}"
        else:
            merged.append(Interval(current.start, current.end, current.label))
    return merged


def detect_profanity(tokens: list[Token]) -> list[Interval]:
    """Detect profane tokens and known phrases.

    Each token is used at most once: a matched phrase consumes all its member
    tokens. Labels keep the transcript's original casing.
    """
    found: list[Interval] = []
    consumed: set[int] = set()

    for i, token in enumerate(tokens):
        if i in consumed or not token.text.strip():
            continue

        size = _match_phrase(tokens, i, consumed)
        if size:
            members = tokens[i:i + size]
            interval = Interval(
                start=members[0].start,
                end=members[-1].end,
                label=" ".join(t.text.strip() for t in members),
            )
            consumed.update(range(i, i + size))
        elif is_profane(token.text):
            interval = Interval(start=token.start, end=token.end, label=token.text.strip())
            consumed.add(i)
        else:
            continue

        if interval.end <= interval.start:
            logger.debug("Dropping zero-length match %r at %.2fs", interval.label, interval.start)
            continue
        found.append(interval)

    merged = _merge_overlapping(found)
    logger.info("Detected %d profane spans (%d before merging)", len(merged), len(found))
    for iv in merged:
        logger.debug("  %r [%.2fs - %.2fs]", iv.label, iv.start, iv.end)
    return merged
