"""
Shopping List Builder

Derives a category-bucketed shopping list from a finalized menu and removes
what the household already has. Tokens the lexicon cannot categorise are
dropped.
"""

import re
import unicodedata
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from ingredient_detector import detect_ingredients
from lexicon import Lexicon, resolve_lexicon
from tokenizer import tokenize
from tools.logging_utils import get_logger

logger = get_logger(__name__)

# Shorter available entries would match far too much
MIN_AVAILABLE_LENGTH = 2

_AVAILABLE_SPLIT_RE = re.compile(r"[、,]")
_WHITESPACE_RE = re.compile(r"\s+")
_PARENS_RE = re.compile(r"[（）()　]")


# ============================================================================
# NORMALIZATION
# ============================================================================

def normalize_name(name: Any) -> str:
    """Normalize an item or available entry for matching (trim, casefold, no spaces/parens)."""
    s = str(name if name is not None else "").strip().casefold()
    s = _WHITESPACE_RE.sub("", s)
    return _PARENS_RE.sub("", s)


def _dedupe_key(name: str) -> str:
    return _WHITESPACE_RE.sub("", name).casefold()


def locale_sort_key(name: str) -> tuple:
    """
    Sort key approximating Japanese collation.

    Width variants are folded (NFKC), case is folded and katakana is mapped to
    hiragana so "キャベツ" sorts next to "きゃべつ"; ties fall back to the raw string.
    """
    folded = unicodedata.normalize("NFKC", name).casefold()
    kana = "".join(
        chr(ord(ch) - 0x60) if "ァ" <= ch <= "ヶ" else ch
        for ch in folded
    )
    return (kana, name)


def parse_available(raw: Any) -> List[str]:
    """
    Parse the household's available ingredients.

    Accepts a "、"/","-separated string or a list of strings; returns trimmed,
    non-empty entries in original order.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        parts: Iterable[Any] = _AVAILABLE_SPLIT_RE.split(raw)
    elif isinstance(raw, (list, tuple)):
        parts = raw
    else:
        parts = [raw]
    out = []
    for part in parts:
        s = str(part if part is not None else "").strip()
        if s:
            out.append(s)
    return out


# ============================================================================
# AVAILABLE-LIST STRIPPING
# ============================================================================

def _normalized_available(available: Iterable[Any]) -> List[str]:
    seen: Dict[str, None] = {}
    for entry in available or []:
        n = normalize_name(entry)
        if len(n) >= MIN_AVAILABLE_LENGTH:
            seen.setdefault(n, None)
    return list(seen)


def strip_available_from_shopping_list(shopping_list: Optional[Mapping[str, Any]],
                                       available_list: Optional[Iterable[Any]]) -> Dict[str, List[str]]:
    """
    Remove items the household already has.

    An item is removed when its normalized form equals, contains, or is
    contained in any normalized available entry of at least 2 characters.

    Returns:
        New mapping; categories are preserved, non-list values become []
    """
    if not shopping_list:
        return {}

    avail = _normalized_available(available_list or [])
    if avail:
        logger.debug(f"🔍 Excluding available ingredients (normalized): {avail}")

    out: Dict[str, List[str]] = {}
    removed = 0
    for category, items in shopping_list.items():
        kept = []
        for item in items if isinstance(items, list) else []:
            n = normalize_name(item)
            match = next((a for a in avail if n == a or a in n or n in a), None)
            if match is not None:
                removed += 1
                logger.debug(f"  ❌ Excluded: {item} (matches '{match}')")
                continue
            kept.append(item)
        out[category] = kept

    if removed:
        logger.info(f"📊 Removed {removed} available item(s) from the shopping list")
    return out


# ============================================================================
# DERIVATION FROM MENU
# ============================================================================

def _classify(token: str, lex: Lexicon):
    """Return (name, category label) for a candidate token, or (token, None)."""
    name = lex.canonical(token)
    category = lex.category_for(name)
    if category:
        return name, category

    staple = lex.pick_staple(name)
    if staple:
        return staple, lex.category_label(lex.staple_category)

    protein = lex.normalize_protein(name)
    if protein:
        return protein, lex.category_for(protein)

    return name, None


def ensure_shopping_from_menu(menu: Optional[Iterable[Any]],
                              shopping: Optional[Mapping[str, Any]] = None,
                              lexicon: Optional[Lexicon] = None) -> Dict[str, List[str]]:
    """
    Add every categorisable ingredient of the menu to the shopping list.

    Args:
        menu: Menu days ({"meals": {slot label or slot id: dish}})
        shopping: Existing list (e.g. the model's own); not mutated
        lexicon: Lexicon to classify with

    Returns:
        Mapping with all fixed categories present
    """
    lex = resolve_lexicon(lexicon)
    out: Dict[str, List[str]] = {}
    for category, items in (shopping or {}).items():
        out[category] = [str(x) for x in items if x is not None] if isinstance(items, list) else []
    for category in lex.category_labels:
        out.setdefault(category, [])

    seen: Dict[str, Set[str]] = {
        category: {x.strip().casefold() for x in items}
        for category, items in out.items()
    }

    unknown: Set[str] = set()
    for day in menu or []:
        meals = day.get("meals") if isinstance(day, dict) else None
        if not isinstance(meals, dict):
            continue
        # Meals may be keyed by slot label (朝食) or slot id (breakfast)
        for slot_id, label in lex.meal_slots.items():
            name = str(meals.get(label) or meals.get(slot_id) or "")
            if not name:
                continue
            candidates: Dict[str, None] = dict.fromkeys(tokenize(name, lexicon=lex))
            for found in sorted(detect_ingredients(name, lexicon=lex)):
                candidates.setdefault(found, None)

            for token in candidates:
                item, category = _classify(token, lex)
                if not category:
                    unknown.add(token)
                    continue
                key = item.casefold()
                if key not in seen[category]:
                    out[category].append(item)
                    seen[category].add(key)

    if unknown:
        logger.debug(f"🔍 Uncategorised tokens skipped: {sorted(unknown)}")
    return out


# ============================================================================
# FINALIZATION
# ============================================================================

def finalize_shopping_list(shopping: Optional[Mapping[str, Any]],
                           lexicon: Optional[Lexicon] = None) -> Dict[str, List[str]]:
    """
    Trim, dedupe (case/whitespace-insensitive, first wins) and sort every category.

    All fixed categories are present in the result, in display order, followed
    by any extra categories the input carried.
    """
    lex = resolve_lexicon(lexicon)
    shopping = shopping or {}
    categories = list(lex.category_labels) + [c for c in shopping if c not in lex.category_labels]

    out: Dict[str, List[str]] = {}
    for category in categories:
        items = shopping.get(category)
        unique: Dict[str, str] = {}
        for item in items if isinstance(items, list) else []:
            s = str(item if item is not None else "").strip()
            if s:
                unique.setdefault(_dedupe_key(s), s)
        out[category] = sorted(unique.values(), key=locale_sort_key)
    return out


def build_shopping_list(menu: Optional[Iterable[Any]], available_list: Any = None,
                        existing_list: Optional[Mapping[str, Any]] = None,
                        lexicon: Optional[Lexicon] = None) -> Dict[str, List[str]]:
    """
    Full shopping-list reconciliation: strip -> derive -> strip -> finalize.

    Args:
        menu: Finalized menu days
        available_list: Household's available ingredients (string or list)
        existing_list: Shopping list already present (e.g. from the model)
        lexicon: Lexicon to classify with

    Returns:
        Mapping of category label -> sorted, distinct item names
    """
    lex = resolve_lexicon(lexicon)
    available = parse_available(available_list)

    shopping = strip_available_from_shopping_list(existing_list or {}, available)
    shopping = ensure_shopping_from_menu(menu, shopping, lexicon=lex)
    shopping = strip_available_from_shopping_list(shopping, available)
    shopping = finalize_shopping_list(shopping, lexicon=lex)

    counts = {category: len(items) for category, items in shopping.items()}
    logger.info(f"✅ Shopping list built: {counts}")
    return shopping
