"""
Duplicate Resolver
==================

Keeps the main ingredients of a multi-day menu from repeating within a day or
on two consecutive days. Only one day of history is kept so the week is not
over-constrained; staples (rice, bread, noodles) are exempt since eating them
every day is normal.

Per day, per meal (slot insertion order):
    sanitize -> tokenize -> canonicalize each token
    staple                           -> skip
    seen today or on the previous day -> replace with a same-pool alternative
    otherwise                         -> remember as used today

Random selection goes through an injectable `choice` callable so tests can
force deterministic substitutions.
"""

import random
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from dish_sanitizer import sanitize_meal
from lexicon import Lexicon, resolve_lexicon
from tokenizer import tokenize
from tools.logging_utils import get_logger

logger = get_logger(__name__)

ChoiceFn = Callable[[Sequence[str]], str]


def get_replacement(token: str, lexicon: Optional[Lexicon] = None,
                    choice: Optional[ChoiceFn] = None) -> str:
    """
    Pick an alternative for a duplicated ingredient.

    Uses the substitution pool of the token's canonical form, or the fallback
    list when it has no pool. Never raises; returns the token unchanged only
    when both are empty.
    """
    lex = resolve_lexicon(lexicon)
    choose = choice or random.choice

    candidates = lex.substitutes_for(lex.canonical(token))
    if not candidates:
        candidates = lex.fallback_substitutes
    if not candidates:
        return token
    return choose(list(candidates))


def _resolve_day(day: Dict[str, Any], previous_day: Set[str], lex: Lexicon,
                 choice: Optional[ChoiceFn]) -> Set[str]:
    """Rewrite one day's meals in place; return the canonical ingredients used."""
    used_today: Set[str] = set()
    meals_out: Dict[str, str] = {}

    meals = day.get("meals") or {}
    if not isinstance(meals, dict):
        meals = {}

    for meal, raw in meals.items():
        dish = sanitize_meal(str(raw if raw is not None else ""), meal, lexicon=lex)

        # Every non-staple token is tracked, including particle-split
        # fragments (卵とじ -> 卵, じ)
        for original in tokenize(dish, lexicon=lex):
            canonical = lex.canonical(original)

            if lex.is_staple(canonical):
                continue

            if canonical in used_today or canonical in previous_day:
                replacement = get_replacement(canonical, lexicon=lex, choice=choice)
                if replacement and replacement != canonical:
                    dish = dish.replace(original, replacement)
                    used_today.add(lex.canonical(replacement))
                    logger.debug(
                        f"🔁 Day {day.get('day', '?')} {meal}: '{original}' repeated, "
                        f"replaced with '{replacement}'"
                    )
            else:
                used_today.add(canonical)

        meals_out[meal] = dish

    day["meals"] = meals_out
    return used_today


def resolve_menu_duplicates(days: Any, lexicon: Optional[Lexicon] = None,
                            choice: Optional[ChoiceFn] = None) -> Any:
    """
    Substitute repeated non-staple ingredients across a menu.

    Args:
        days: Ordered list of menu days ({"day": n, "meals": {...}, ...})
        lexicon: Lexicon to use (default lexicon if None)
        choice: Random choice function over a sequence (random.choice if None)

    Returns:
        New list of days with rewritten meal strings. The input is not mutated.
        Anything that is not a non-empty list is returned unchanged.
    """
    if not isinstance(days, list) or not days:
        return days

    lex = resolve_lexicon(lexicon)
    previous_day: Set[str] = set()
    out: List[Any] = []

    for day in days:
        if not isinstance(day, dict):
            out.append(day)
            continue
        day_out = dict(day)
        used_today = _resolve_day(day_out, previous_day, lex, choice)
        previous_day = {t for t in used_today if not lex.is_staple(t)}
        out.append(day_out)

    return out
