"""
Ingredient Detector
===================

Recovers known ingredients from a dish name that tokenization cannot split
cleanly (e.g. "豚ひき肉のそぼろ丼").

Keys are tried longest first. A multi-character match is masked out of the
search text so shorter keys cannot match inside it; single-character keys
(鶏, 豚, 牛, 卵 ...) additionally need a non-word character or the string edge
on both sides. Compound-word exceptions (牛乳 milk, 鶏ガラ chicken-bone broth,
豚骨 pork bone) then remove the proteins they falsely imply.
"""

import re
from typing import Optional, Set

from lexicon import Lexicon, resolve_lexicon

_MASK = " "


def _single_char_matches(src: str, key: str, lex: Lexicon) -> bool:
    boundary = lex.boundary_pattern
    for m in re.finditer(re.escape(key), src):
        start, end = m.start(), m.end()
        before_ok = start == 0 or boundary.match(src[start - 1]) is not None
        after_ok = end == len(src) or boundary.match(src[end]) is not None
        if before_ok and after_ok:
            return True
    return False


def detect_ingredients(name: Optional[str], lexicon: Optional[Lexicon] = None) -> Set[str]:
    """
    Find canonical ingredients mentioned in a dish name.

    Args:
        name: Dish name
        lexicon: Lexicon to search (default lexicon if None)

    Returns:
        Set of canonical ingredient names (empty for empty input)
    """
    lex = resolve_lexicon(lexicon)
    src = str(name or "")
    found: Set[str] = set()
    if not src:
        return found

    remaining = src
    for key in lex.detector_keys:
        if len(key) == 1:
            if _single_char_matches(remaining, key, lex):
                found.add(lex.canonical(key))
        elif key in remaining:
            found.add(lex.canonical(key))
            remaining = remaining.replace(key, _MASK * len(key))

    for marker, drop in lex.detector_exclusions:
        if marker in src:
            found.discard(drop)

    return found
