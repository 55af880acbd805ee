"""
Ingredient Lexicon
==================

Static culinary knowledge used by the menu post-processing pipeline:

- shopping categories (ids, display labels, colours, display order)
- substitution pools (interchangeable ingredients for duplicate avoidance)
- staple foods (rice/bread/noodles; exempt from duplicate avoidance)
- alias table (surface form -> canonical ingredient)
- cooking-word detector, tokenizer delimiters
- sanitizer pattern table, protein normalizers, detector exception rules

A lexicon is loaded from a YAML file (one per locale, see lexicons/) into an
immutable Lexicon object. The service builds one at startup via
default_lexicon(); tests construct small ones with Lexicon.from_dict().

This module is intentionally lightweight (no LLM/HTTP imports).
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from types import MappingProxyType
from re import Pattern
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from tools.logging_utils import get_logger

logger = get_logger(__name__)


class LexiconError(ValueError):
    """Raised when a lexicon file is missing fields or contains bad patterns."""


@dataclass(frozen=True)
class Category:
    """One fixed shopping-list category."""
    id: str
    label: str
    color: str = "#BBBBBB"


@dataclass(frozen=True)
class SanitizerRules:
    """Compiled pattern table for dish-name repair."""
    soup: Pattern
    soup_incompatible: Pattern
    safe_soup: str
    egg_finish: Pattern
    egg_finish_incompatible: Pattern
    safe_egg_finish: str
    lunch_staple: Pattern
    lunch_suffix: str
    dinner_protein: Pattern
    dinner_suffix: str
    breakfast_exempt: Pattern
    breakfast_suffix: str
    rewrites: Tuple[Tuple[Pattern, str], ...] = ()


def _compile(value: Any, where: str) -> Pattern:
    if not isinstance(value, str) or not value:
        raise LexiconError(f"{where}: expected a non-empty regex string, got {value!r}")
    try:
        return re.compile(value)
    except re.error as e:
        raise LexiconError(f"{where}: invalid regex {value!r}: {e}") from e


def _require(data: Mapping[str, Any], key: str, where: str = "lexicon") -> Any:
    if key not in data or data[key] is None:
        raise LexiconError(f"{where}: missing required field '{key}'")
    return data[key]


def _freeze_str_list(values: Any, where: str) -> Tuple[str, ...]:
    if not isinstance(values, (list, tuple)):
        raise LexiconError(f"{where}: expected a list, got {type(values).__name__}")
    return tuple(str(v) for v in values if str(v))


@dataclass(frozen=True)
class Lexicon:
    """
    Immutable, versioned ingredient lexicon.

    Mapping fields are read-only views; list fields are tuples. Derived lookup
    tables (category map, merged pools, detector keys) are built lazily once.
    """
    version: str
    locale: str
    meal_slots: Mapping[str, str]
    categories: Tuple[Category, ...]
    substitution_pools: Mapping[str, Mapping[str, Tuple[str, ...]]]
    pool_categories: Mapping[str, str]
    fallback_substitutes: Tuple[str, ...]
    extra_category_members: Mapping[str, Tuple[str, ...]]
    staple_foods: Tuple[str, ...]
    staple_category: str
    aliases: Mapping[str, str]
    cook_words: Pattern
    tokenizer_brackets: Pattern
    tokenizer_separators: Pattern
    tokenizer_connectors: Pattern
    sanitizer: SanitizerRules
    protein_normalizers: Tuple[Tuple[Pattern, str], ...]
    detector_extra_keys: Tuple[str, ...]
    detector_word_chars: str
    detector_exclusions: Tuple[Tuple[str, str], ...]
    source: Optional[str] = field(default=None, compare=False)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: Optional[str] = None) -> "Lexicon":
        """
        Build a lexicon from parsed YAML/JSON data.

        Raises:
            LexiconError: on missing fields, bad regexes, unknown category ids,
                or an ingredient assigned to two categories
        """
        if not isinstance(data, Mapping):
            raise LexiconError(f"lexicon root must be a mapping, got {type(data).__name__}")

        meal_slots = dict(_require(data, "meal_slots"))
        for slot in ("breakfast", "lunch", "dinner"):
            if slot not in meal_slots:
                raise LexiconError(f"meal_slots: missing slot '{slot}'")

        categories = tuple(
            Category(id=str(_require(c, "id", "categories")),
                     label=str(_require(c, "label", "categories")),
                     color=str(c.get("color") or "#BBBBBB"))
            for c in _require(data, "categories")
        )
        category_ids = {c.id for c in categories}
        if len(category_ids) != len(categories):
            raise LexiconError("categories: duplicate category id")

        pools: Dict[str, Mapping[str, Tuple[str, ...]]] = {}
        pool_categories: Dict[str, str] = {}
        for pool_name, pool in (_require(data, "substitution_pools") or {}).items():
            where = f"substitution_pools.{pool_name}"
            category_id = str(_require(pool, "category", where))
            if category_id not in category_ids:
                raise LexiconError(f"{where}: unknown category '{category_id}'")
            members = {
                str(key): _freeze_str_list(alts or [], f"{where}.members.{key}")
                for key, alts in (_require(pool, "members", where) or {}).items()
            }
            pools[str(pool_name)] = MappingProxyType(members)
            pool_categories[str(pool_name)] = category_id

        extra_members = {}
        for category_id, names in (data.get("extra_category_members") or {}).items():
            if category_id not in category_ids:
                raise LexiconError(f"extra_category_members: unknown category '{category_id}'")
            extra_members[str(category_id)] = _freeze_str_list(names, f"extra_category_members.{category_id}")

        staple_category = str(_require(data, "staple_category"))
        if staple_category not in category_ids:
            raise LexiconError(f"staple_category: unknown category '{staple_category}'")

        tokenizer = _require(data, "tokenizer")
        sanitizer = _require(data, "sanitizer")
        detector = _require(data, "detector")

        rules = SanitizerRules(
            soup=_compile(_require(sanitizer, "soup", "sanitizer"), "sanitizer.soup"),
            soup_incompatible=_compile(_require(sanitizer, "soup_incompatible", "sanitizer"),
                                       "sanitizer.soup_incompatible"),
            safe_soup=str(_require(sanitizer, "safe_soup", "sanitizer")),
            egg_finish=_compile(_require(sanitizer, "egg_finish", "sanitizer"), "sanitizer.egg_finish"),
            egg_finish_incompatible=_compile(_require(sanitizer, "egg_finish_incompatible", "sanitizer"),
                                             "sanitizer.egg_finish_incompatible"),
            safe_egg_finish=str(_require(sanitizer, "safe_egg_finish", "sanitizer")),
            lunch_staple=_compile(_require(sanitizer, "lunch_staple", "sanitizer"), "sanitizer.lunch_staple"),
            lunch_suffix=str(_require(sanitizer, "lunch_suffix", "sanitizer")),
            dinner_protein=_compile(_require(sanitizer, "dinner_protein", "sanitizer"),
                                    "sanitizer.dinner_protein"),
            dinner_suffix=str(_require(sanitizer, "dinner_suffix", "sanitizer")),
            breakfast_exempt=_compile(_require(sanitizer, "breakfast_exempt", "sanitizer"),
                                      "sanitizer.breakfast_exempt"),
            breakfast_suffix=str(_require(sanitizer, "breakfast_suffix", "sanitizer")),
            rewrites=tuple(
                (_compile(_require(r, "pattern", "sanitizer.rewrites"), "sanitizer.rewrites"),
                 str(r.get("replace", "")))
                for r in (sanitizer.get("rewrites") or [])
            ),
        )

        lexicon = cls(
            version=str(data.get("version", "unversioned")),
            locale=str(data.get("locale", "")),
            meal_slots=MappingProxyType({str(k): str(v) for k, v in meal_slots.items()}),
            categories=categories,
            substitution_pools=MappingProxyType(pools),
            pool_categories=MappingProxyType(pool_categories),
            fallback_substitutes=_freeze_str_list(data.get("fallback_substitutes") or [],
                                                  "fallback_substitutes"),
            extra_category_members=MappingProxyType(extra_members),
            staple_foods=_freeze_str_list(_require(data, "staple_foods"), "staple_foods"),
            staple_category=staple_category,
            aliases=MappingProxyType({str(k): str(v) for k, v in (data.get("aliases") or {}).items()}),
            cook_words=_compile(_require(data, "cook_words"), "cook_words"),
            tokenizer_brackets=_compile(_require(tokenizer, "brackets", "tokenizer"), "tokenizer.brackets"),
            tokenizer_separators=_compile(_require(tokenizer, "separators", "tokenizer"),
                                          "tokenizer.separators"),
            tokenizer_connectors=_compile(_require(tokenizer, "connectors", "tokenizer"),
                                          "tokenizer.connectors"),
            sanitizer=rules,
            protein_normalizers=tuple(
                (_compile(_require(p, "pattern", "protein_normalizers"), "protein_normalizers"),
                 str(_require(p, "canonical", "protein_normalizers")))
                for p in (data.get("protein_normalizers") or [])
            ),
            detector_extra_keys=_freeze_str_list(detector.get("extra_keys") or [], "detector.extra_keys"),
            detector_word_chars=str(_require(detector, "word_chars", "detector")),
            detector_exclusions=tuple(
                (str(_require(x, "marker", "detector.exclusions")),
                 str(_require(x, "drop", "detector.exclusions")))
                for x in (detector.get("exclusions") or [])
            ),
            source=source,
        )
        # Fail at load time rather than mid-request
        lexicon.category_map
        lexicon.boundary_pattern
        return lexicon

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    @cached_property
    def category_labels(self) -> Tuple[str, ...]:
        """Category display labels in fixed display order."""
        return tuple(c.label for c in self.categories)

    def category_label(self, category_id: str) -> str:
        for c in self.categories:
            if c.id == category_id:
                return c.label
        raise KeyError(category_id)

    @cached_property
    def category_colors(self) -> Mapping[str, str]:
        return MappingProxyType({c.label: c.color for c in self.categories})

    @cached_property
    def category_map(self) -> Mapping[str, str]:
        """
        Canonical ingredient -> category label.

        Every pool member (keys and alternatives), every extra member and every
        staple belongs to exactly one category.
        """
        assignments: Dict[str, str] = {}

        def assign(name: str, category_id: str, where: str) -> None:
            label = self.category_label(category_id)
            current = assignments.get(name)
            if current is not None and current != label:
                raise LexiconError(
                    f"{where}: '{name}' is in both '{current}' and '{label}'"
                )
            assignments[name] = label

        for pool_name, pool in self.substitution_pools.items():
            category_id = self.pool_categories[pool_name]
            for key, alternatives in pool.items():
                assign(key, category_id, f"substitution_pools.{pool_name}")
                for alt in alternatives:
                    assign(alt, category_id, f"substitution_pools.{pool_name}")
        for category_id, names in self.extra_category_members.items():
            for name in names:
                assign(name, category_id, "extra_category_members")
        for staple in self.staple_foods:
            assign(staple, self.staple_category, "staple_foods")
        return MappingProxyType(assignments)

    def category_for(self, canonical: str) -> Optional[str]:
        """Category label of a canonical ingredient, or None if unknown."""
        return self.category_map.get(canonical)

    # ------------------------------------------------------------------
    # Canonicalization and classification
    # ------------------------------------------------------------------

    def canonical(self, token: str) -> str:
        """Resolve a surface form through the alias table (identity if unknown)."""
        token = token or ""
        return self.aliases.get(token, token)

    def is_staple(self, token: str) -> bool:
        """True if any staple food occurs in the token (substring containment)."""
        return any(staple in token for staple in self.staple_foods)

    def pick_staple(self, token: str) -> Optional[str]:
        """First staple food (lexicon order) occurring in the token."""
        for staple in self.staple_foods:
            if staple in token:
                return staple
        return None

    def normalize_protein(self, token: str) -> Optional[str]:
        """Map a protein-bearing token to its canonical protein, if any."""
        for pattern, canonical in self.protein_normalizers:
            if pattern.search(token):
                return canonical
        return None

    def is_generic_name(self, name: str) -> bool:
        """A single bare word with no cooking word, e.g. just an ingredient."""
        n = str(name or "").strip()
        return bool(n) and re.fullmatch(r"[^\s]+", n) is not None and not self.cook_words.search(n)

    # ------------------------------------------------------------------
    # Substitution
    # ------------------------------------------------------------------

    @cached_property
    def merged_pool(self) -> Mapping[str, Tuple[str, ...]]:
        """All substitution pools merged into one lookup (later pools win)."""
        merged: Dict[str, Tuple[str, ...]] = {}
        for pool in self.substitution_pools.values():
            merged.update(pool)
        return MappingProxyType(merged)

    def substitutes_for(self, canonical: str) -> Tuple[str, ...]:
        return self.merged_pool.get(canonical, ())

    # ------------------------------------------------------------------
    # Meal slots
    # ------------------------------------------------------------------

    def meal_slot_id(self, meal_type: str) -> Optional[str]:
        """Accept a slot id ('lunch') or its label ('昼食'); None if neither."""
        if meal_type in self.meal_slots:
            return meal_type
        for slot_id, label in self.meal_slots.items():
            if label == meal_type:
                return slot_id
        return None

    @cached_property
    def meal_slot_labels(self) -> Tuple[str, ...]:
        """Labels of breakfast, lunch, dinner in that order."""
        return tuple(self.meal_slots[s] for s in ("breakfast", "lunch", "dinner"))

    # ------------------------------------------------------------------
    # Detector support
    # ------------------------------------------------------------------

    @cached_property
    def detector_keys(self) -> Tuple[str, ...]:
        """
        Every searchable surface form, longest first.

        Ties keep first-seen order (category map, staples, aliases, extras).
        """
        keys: Dict[str, None] = {}
        for group in (self.category_map.keys(), self.staple_foods,
                      self.aliases.keys(), self.detector_extra_keys):
            for key in group:
                if key:
                    keys.setdefault(key, None)
        return tuple(sorted(keys, key=len, reverse=True))

    @cached_property
    def boundary_pattern(self) -> Pattern:
        """Character class matching any non-word character."""
        return _compile(f"[^{self.detector_word_chars}]", "detector.word_chars")

    def summary(self) -> str:
        return (
            f"Lexicon {self.version} ({self.locale}): "
            f"{len(self.category_map)} categorised ingredients, "
            f"{len(self.merged_pool)} substitution entries, "
            f"{len(self.staple_foods)} staples, {len(self.aliases)} aliases"
        )


# =============================================================================
# LOADING
# =============================================================================

def load_lexicon(path) -> Lexicon:
    """
    Load a lexicon YAML file.

    Raises:
        FileNotFoundError: if the file does not exist
        LexiconError: if the YAML is invalid or incomplete
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Lexicon file not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise LexiconError(f"Lexicon {path} has invalid YAML syntax: {e}") from e

    lexicon = Lexicon.from_dict(data or {}, source=str(path))
    logger.info(f"✅ {lexicon.summary()}")
    return lexicon


_default_lexicon: Optional[Lexicon] = None
_default_lock = threading.Lock()


def default_lexicon() -> Lexicon:
    """Process-wide lexicon from config.LEXICON_PATH, loaded once (thread-safe)."""
    global _default_lexicon
    if _default_lexicon is None:
        with _default_lock:
            if _default_lexicon is None:
                from config import LEXICON_PATH
                _default_lexicon = load_lexicon(LEXICON_PATH)
    return _default_lexicon


def resolve_lexicon(lexicon: Optional[Lexicon]) -> Lexicon:
    """Return the given lexicon, or the process-wide default."""
    return lexicon if lexicon is not None else default_lexicon()


def available_locales() -> List[str]:
    from config import LEXICON_DIR
    return sorted(p.stem for p in Path(LEXICON_DIR).glob("*.yaml"))
