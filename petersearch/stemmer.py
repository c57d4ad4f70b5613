"""English (Porter2) stemming of lower-case words."""

from __future__ import annotations

_VOWELS = frozenset("aeiouy")

_EXCEPTIONS = {
    "skis": "ski",
    "skies": "sky",
    "dying": "die",
    "lying": "lie",
    "tying": "tie",
    "idly": "idl",
    "gently": "gentl",
    "ugly": "ugli",
    "early": "earli",
    "only": "onli",
    "singly": "singl",
    "sky": "sky",
    "news": "news",
    "howe": "howe",
    "atlas": "atlas",
    "cosmos": "cosmos",
    "bias": "bias",
    "andes": "andes",
}

_INVARIANT_AFTER_STEP1A = frozenset(
    {"inning", "outing", "canning", "herring", "earring", "proceed", "exceed", "succeed"}
)

_R1_PREFIXES = ("gener", "commun", "arsen")

_DOUBLES = ("bb", "dd", "ff", "gg", "mm", "nn", "pp", "rr", "tt")

_LI_ENDINGS = frozenset("cdeghkmnrt")

_STEP2 = (
    ("ization", "ize"),
    ("ational", "ate"),
    ("fulness", "ful"),
    ("ousness", "ous"),
    ("iveness", "ive"),
    ("tional", "tion"),
    ("biliti", "ble"),
    ("lessli", "less"),
    ("entli", "ent"),
    ("ation", "ate"),
    ("alism", "al"),
    ("aliti", "al"),
    ("ousli", "ous"),
    ("iviti", "ive"),
    ("fulli", "ful"),
    ("enci", "ence"),
    ("anci", "ance"),
    ("abli", "able"),
    ("izer", "ize"),
    ("ator", "ate"),
    ("alli", "al"),
    ("bli", "ble"),
    ("ogi", "og"),
    ("li", ""),
)

_STEP3 = (
    ("ational", "ate"),
    ("tional", "tion"),
    ("alize", "al"),
    ("icate", "ic"),
    ("iciti", "ic"),
    ("ative", ""),
    ("ical", "ic"),
    ("ness", ""),
    ("ful", ""),
)

_STEP4 = (
    "ement",
    "ance",
    "ence",
    "able",
    "ible",
    "ment",
    "ant",
    "ent",
    "ism",
    "ate",
    "iti",
    "ous",
    "ive",
    "ize",
    "ion",
    "al",
    "er",
    "ic",
)


def _has_vowel(s: str) -> bool:
    return any(c in _VOWELS for c in s)


def _region_after(word: str, start: int) -> int:
    """Index just past the first non-vowel that follows a vowel, from ``start``."""
    for i in range(start + 1, len(word)):
        if word[i] not in _VOWELS and word[i - 1] in _VOWELS:
            return i + 1
    return len(word)


def _regions(word: str) -> tuple[int, int]:
    r1 = next(
        (len(prefix) for prefix in _R1_PREFIXES if word.startswith(prefix)),
        None,
    )
    if r1 is None:
        r1 = _region_after(word, 0)
    return r1, _region_after(word, r1)


def _ends_short_syllable(w: str) -> bool:
    if len(w) == 2:
        return w[0] in _VOWELS and w[1] not in _VOWELS
    if len(w) >= 3:
        return (
            w[-3] not in _VOWELS
            and w[-2] in _VOWELS
            and w[-1] not in _VOWELS
            and w[-1] not in "wxY"
        )
    return False


def _is_short_word(w: str, r1: int) -> bool:
    return r1 >= len(w) and _ends_short_syllable(w)


def _mark_ys(word: str) -> str:
    chars = list(word)
    for i, c in enumerate(chars):
        if c == "y" and (i == 0 or chars[i - 1] in _VOWELS):
            chars[i] = "Y"
    return "".join(chars)


def _step0(w: str) -> str:
    for suffix in ("'s'", "'s", "'"):
        if w.endswith(suffix):
            return w[: -len(suffix)]
    return w


def _step1a(w: str) -> str:
    if w.endswith("sses"):
        return w[:-2]
    if w.endswith(("ied", "ies")):
        return w[:-2] if len(w) > 4 else w[:-1]
    if w.endswith(("us", "ss")):
        return w
    if w.endswith("s") and _has_vowel(w[:-2]):
        return w[:-1]
    return w


def _step1b(w: str, r1: int) -> str:
    for suffix in ("eedly", "eed"):
        if w.endswith(suffix):
            if len(w) - len(suffix) >= r1:
                return w[: -len(suffix)] + "ee"
            return w
    for suffix in ("ingly", "edly", "ing", "ed"):
        if w.endswith(suffix):
            base = w[: -len(suffix)]
            if not _has_vowel(base):
                return w
            if base.endswith(("at", "bl", "iz")):
                return base + "e"
            if base.endswith(_DOUBLES):
                return base[:-1]
            if _is_short_word(base, r1):
                return base + "e"
            return base
    return w


def _step1c(w: str) -> str:
    if len(w) > 2 and w[-1] in "yY" and w[-2] not in _VOWELS:
        return w[:-1] + "i"
    return w


def _step2(w: str, r1: int) -> str:
    for suffix, replacement in _STEP2:
        if not w.endswith(suffix):
            continue
        base = w[: -len(suffix)]
        if len(base) < r1:
            return w
        if suffix == "ogi" and not base.endswith("l"):
            return w
        if suffix == "li" and (not base or base[-1] not in _LI_ENDINGS):
            return w
        return base + replacement
    return w


def _step3(w: str, r1: int, r2: int) -> str:
    for suffix, replacement in _STEP3:
        if not w.endswith(suffix):
            continue
        base = w[: -len(suffix)]
        if len(base) < r1:
            return w
        if suffix == "ative" and len(base) < r2:
            return w
        return base + replacement
    return w


def _step4(w: str, r2: int) -> str:
    for suffix in _STEP4:
        if not w.endswith(suffix):
            continue
        base = w[: -len(suffix)]
        if len(base) < r2:
            return w
        if suffix == "ion" and not base.endswith(("s", "t")):
            return w
        return base
    return w


def _step5(w: str, r1: int, r2: int) -> str:
    if w.endswith("e"):
        base = w[:-1]
        if len(base) >= r2 or (len(base) >= r1 and not _ends_short_syllable(base)):
            return base
    elif w.endswith("l"):
        base = w[:-1]
        if len(base) >= r2 and base.endswith("l"):
            return base
    return w


def stem(word: str) -> str:
    """Return the Porter2 stem of a lower-case English word."""
    if len(word) <= 2:
        return word
    if word in _EXCEPTIONS:
        return _EXCEPTIONS[word]

    w = word[1:] if word.startswith("'") else word
    w = _mark_ys(w)
    r1, r2 = _regions(w)

    w = _step0(w)
    w = _step1a(w)
    if w in _INVARIANT_AFTER_STEP1A:
        return w.replace("Y", "y")

    w = _step1b(w, r1)
    w = _step1c(w)
    w = _step2(w, r1)
    w = _step3(w, r1, r2)
    w = _step4(w, r2)
    w = _step5(w, r1, r2)
    return w.replace("Y", "y")