"""
Dish Sanitizer
==============

Rule-based repair of model-generated dish names that are inconsistent with
their meal slot. The model occasionally returns a single noun ("サラダ"), a
lunch with no staple, a dinner with no main protein, or a soup whose filling
is cake; these are fixed deterministically instead of re-prompting.

Rules, applied in this order (each a guarded rewrite, not exclusive):

1. soup + incompatible dish marker    -> canonical safe soup
2. egg-finish + sweet/breakfast marker -> canonical vegetable egg-finish
3. lunch without a staple             -> append staple suffix
4. dinner without a protein           -> append protein dish suffix
5. breakfast with a single token      -> append egg-finish suffix
6. literal rewrites of contradictory pairings

Suffixes accumulate and are not deduplicated. All patterns come from the
lexicon's sanitizer table.
"""

import re
from typing import Optional

from lexicon import Lexicon, resolve_lexicon
from tokenizer import tokenize
from tools.logging_utils import get_logger

logger = get_logger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def sanitize_meal(name: Optional[str], meal_type: Optional[str] = "",
                  lexicon: Optional[Lexicon] = None) -> str:
    """
    Repair one dish name for its meal slot.

    Args:
        name: Dish name from the model
        meal_type: Slot id ("breakfast"/"lunch"/"dinner") or its locale label
            ("朝食"/"昼食"/"夕食"); anything else skips the slot rules
        lexicon: Lexicon with the sanitizer pattern table

    Returns:
        Repaired dish name ("" for empty input)
    """
    lex = resolve_lexicon(lexicon)
    rules = lex.sanitizer
    n = _WHITESPACE_RE.sub(" ", str(name or "")).strip()
    if not n:
        return ""

    original = n
    slot = lex.meal_slot_id(str(meal_type or ""))

    if rules.soup.search(n) and rules.soup_incompatible.search(n):
        n = rules.safe_soup

    if rules.egg_finish.search(n) and rules.egg_finish_incompatible.search(n):
        n = rules.safe_egg_finish

    if slot == "lunch" and not rules.lunch_staple.search(n):
        n = f"{n}{rules.lunch_suffix}"

    if slot == "dinner" and not rules.dinner_protein.search(n):
        n = f"{n}{rules.dinner_suffix}"

    if slot == "breakfast":
        if len(tokenize(n, lexicon=lex)) == 1 and not rules.breakfast_exempt.search(n):
            n = f"{n}{rules.breakfast_suffix}"

    for pattern, replacement in rules.rewrites:
        n = pattern.sub(replacement, n)

    if n != original:
        logger.debug(f"🔧 Sanitized {slot or meal_type!s} dish: {original!r} -> {n!r}")
    return n
