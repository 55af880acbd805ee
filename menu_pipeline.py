"""
Menu Pipeline
=============

Turns raw model output into a menu that satisfies the household rules.

    raw text -> first JSON object -> menu days + nutrition defaults
             -> sanitize each meal -> resolve duplicates across days
             -> strip/derive/strip shopping list -> response

The text generator is injected (any callable taking a prompt and a
temperature), so the pipeline runs the same against the real chat client and
against canned strings in tests.

Core operations re-exported here for callers:
    sanitize_meal, resolve_menu_duplicates, build_shopping_list, detect_ingredients
"""

import json
import math
import re
from typing import Any, Callable, Dict, List, Optional

from config import get_config_value
from dish_sanitizer import sanitize_meal
from duplicate_resolver import ChoiceFn, resolve_menu_duplicates
from ingredient_detector import detect_ingredients
from lexicon import Lexicon, resolve_lexicon
from prompts import (
    STRICT_JSON_SUFFIX,
    STRICT_RECIPE_SUFFIX,
    build_menu_prompt,
    build_recipe_prompt,
    build_suggestion_prompt,
    estimate_servings,
    normalize_recipe_dish,
    validate_menu_request,
)
from shopping_list import (
    build_shopping_list,
    ensure_shopping_from_menu,
    finalize_shopping_list,
    parse_available,
    strip_available_from_shopping_list,
)
from tools.logging_utils import get_logger

logger = get_logger(__name__)

GenerateFn = Callable[..., str]

__all__ = [
    "MalformedModelOutput",
    "MenuRequestError",
    "build_shopping_list",
    "detect_ingredients",
    "extract_first_json",
    "generate_menu",
    "generate_recipe",
    "normalize_nutrition",
    "parse_menu_days",
    "parse_model_json",
    "process_menu",
    "recalc_shopping",
    "resolve_menu_duplicates",
    "sanitize_meal",
    "suggest_recipe",
]


# =============================================================================
# EXCEPTIONS
# =============================================================================

class MalformedModelOutput(ValueError):
    """Model output did not contain a parseable JSON object."""

    def __init__(self, message: str, raw: str = ""):
        self.raw = raw
        super().__init__(f"{message}. Response: {raw[:200]}" if raw else message)


class MenuRequestError(ValueError):
    """Invalid menu request; `errors` holds one message per problem."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


# =============================================================================
# MODEL OUTPUT PARSING
# =============================================================================

_FENCE_OPEN_RE = re.compile(r"```(?:json)?\s*")
_FENCE_CLOSE_RE = re.compile(r"```\s*")


def extract_first_json(text: Any) -> str:
    """
    Extract the first complete JSON object from model output.

    Strips markdown code fences, then returns the first balanced {...} span.
    Falls back to first "{" .. last "}", and finally to the cleaned text so
    that json.loads() fails with an informative error.
    """
    text = str(text or "").strip()
    text = _FENCE_OPEN_RE.sub("", text)
    text = _FENCE_CLOSE_RE.sub("", text)

    depth = 0
    start = -1
    for i, ch in enumerate(text):
        if ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0 and start >= 0:
                return text[start:i + 1]

    i = text.find("{")
    j = text.rfind("}")
    if i >= 0 and j > i:
        return text[i:j + 1]
    return text


def parse_model_json(text: Any) -> Dict[str, Any]:
    """
    Parse the first JSON object in model output.

    Raises:
        MalformedModelOutput: if no JSON object can be decoded
    """
    raw = extract_first_json(text)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedModelOutput(f"Model returned invalid JSON: {e}", raw) from e
    if not isinstance(data, dict):
        raise MalformedModelOutput(
            f"Model returned {type(data).__name__} instead of an object", raw
        )
    return data


def _finite_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value if math.isfinite(value) else 0


def normalize_nutrition(raw: Any) -> Dict[str, Any]:
    """Fill missing or invalid nutrition fields with defaults (0 / "")."""
    n = raw if isinstance(raw, dict) else {}
    balance = n.get("balance")
    return {
        "kcal": _finite_number(n.get("kcal")),
        "protein_g": _finite_number(n.get("protein_g")),
        "veg_servings": _finite_number(n.get("veg_servings")),
        "balance": balance if isinstance(balance, str) else "",
    }


def parse_menu_days(raw_menu: Any) -> List[Dict[str, Any]]:
    """
    Coerce the model's "menu" array into well-formed day dicts.

    Non-dict entries are dropped, "meals" becomes a dict, nutrition is
    defaulted; unknown keys are preserved.
    """
    if not isinstance(raw_menu, list):
        return []
    days = []
    for d in raw_menu:
        if not isinstance(d, dict):
            logger.warning(f"⚠️ Dropping malformed menu day: {d!r}")
            continue
        meals = d.get("meals")
        days.append({
            **d,
            "meals": dict(meals) if isinstance(meals, dict) else {},
            "nutrition": normalize_nutrition(d.get("nutrition")),
        })
    return days


# =============================================================================
# POST-PROCESSING
# =============================================================================

def sanitize_menu_days(days: List[Dict[str, Any]], lexicon: Optional[Lexicon] = None) -> List[Dict[str, Any]]:
    """Sanitize every present breakfast/lunch/dinner dish of every day."""
    lex = resolve_lexicon(lexicon)
    out = []
    for d in days:
        meals = dict(d.get("meals") or {})
        for slot in lex.meal_slot_labels:
            if meals.get(slot) is not None:
                meals[slot] = sanitize_meal(str(meals[slot] or ""), slot, lexicon=lex)
        out.append({**d, "meals": meals})
    return out


def process_menu(payload: Dict[str, Any], available: Any = None,
                 lexicon: Optional[Lexicon] = None,
                 choice: Optional[ChoiceFn] = None) -> Dict[str, Any]:
    """
    Apply every domain rule to a parsed model response.

    Args:
        payload: Parsed model JSON ({"menu": [...], "shoppingList": {...}, ...})
        available: Household's available ingredients (string or list)
        lexicon: Lexicon to use
        choice: Random choice function for duplicate substitution

    Returns:
        New response dict with menu, shoppingList and availableList
    """
    lex = resolve_lexicon(lexicon)
    available_list = parse_available(available)

    days = parse_menu_days(payload.get("menu"))
    days = sanitize_menu_days(days, lexicon=lex)
    days = resolve_menu_duplicates(days, lexicon=lex, choice=choice)

    generic = [
        meal for d in days for meal in (d.get("meals") or {}).values()
        if lex.is_generic_name(meal)
    ]
    if generic:
        logger.warning(f"⚠️ Dish names without a cooking style: {generic}")

    model_list = payload.get("shoppingList")
    result = dict(payload)
    result["menu"] = days
    result["availableList"] = available_list
    result["shoppingList"] = build_shopping_list(
        days, available_list,
        existing_list=model_list if isinstance(model_list, dict) else {},
        lexicon=lex,
    )
    return result


def _call_and_parse(generate: GenerateFn, prompt: str, temperature: float,
                    strict_suffix: str, strict_temperature: float) -> Dict[str, Any]:
    """Call the model; on malformed JSON retry once with a stricter prompt."""
    content = generate(prompt, temperature=temperature)
    try:
        return parse_model_json(content)
    except MalformedModelOutput as e:
        retries = get_config_value('retries', 'max_parse_retries', 1)
        if retries < 1:
            raise
        logger.warning(f"⚠️ First JSON parse failed, retrying with stricter prompt: {e}")
        content = generate(prompt + strict_suffix, temperature=strict_temperature)
        return parse_model_json(content)


def generate_menu(request: Dict[str, Any], generate: GenerateFn,
                  lexicon: Optional[Lexicon] = None,
                  choice: Optional[ChoiceFn] = None) -> Dict[str, Any]:
    """
    Generate and post-process a multi-day menu.

    Args:
        request: {toddlers, kids, adults, days, meals, avoid, request,
                  available, avoidRecent}
        generate: Text generator, called as generate(prompt, temperature=...)

    Raises:
        MenuRequestError: invalid request
        MalformedModelOutput: model output unparseable after the retry
        llm_client.LLMError: generator failures propagate unchanged
    """
    logger.info("📝 Menu generation request received")
    errors = validate_menu_request(request)
    if errors:
        raise MenuRequestError(errors)

    available_list = parse_available(request.get("available"))
    logger.info(f"📦 Available ingredients: {available_list}")

    prompt = build_menu_prompt(
        toddlers=request["toddlers"],
        kids=request["kids"],
        adults=request["adults"],
        days=request["days"],
        meals=request.get("meals") or [],
        avoid=request.get("avoid") or "",
        request=request.get("request") or "",
        available="、".join(available_list),
        avoid_recent=request.get("avoidRecent") or [],
    )

    payload = _call_and_parse(
        generate, prompt,
        temperature=get_config_value('temperatures', 'menu', 0.7),
        strict_suffix=STRICT_JSON_SUFFIX,
        strict_temperature=get_config_value('temperatures', 'menu_strict', 0.4),
    )
    result = process_menu(payload, available_list, lexicon=lexicon, choice=choice)
    logger.info(f"✅ Menu generated: {len(result['menu'])} day(s)")
    return result


def recalc_shopping(menu: Any, available: Any = None,
                    lexicon: Optional[Lexicon] = None) -> Dict[str, Any]:
    """
    Rebuild the shopping list for an (edited) menu from scratch.

    Returns:
        {"shoppingList": {...}, "availableList": [...]}
    """
    lex = resolve_lexicon(lexicon)
    available_list = parse_available(available)
    logger.info(f"🔄 Shopping list recalculation ({len(available_list)} available item(s))")

    shopping = ensure_shopping_from_menu(menu if isinstance(menu, list) else [], {}, lexicon=lex)
    shopping = strip_available_from_shopping_list(shopping, available_list)
    shopping = finalize_shopping_list(shopping, lexicon=lex)
    return {"shoppingList": shopping, "availableList": available_list}


def generate_recipe(request: Dict[str, Any], generate: GenerateFn) -> Dict[str, Any]:
    """Generate a structured recipe for one dish of the menu."""
    request = request or {}
    servings = estimate_servings(request.get("toddlers", 0), request.get("kids", 0),
                                 request.get("adults", 2))
    dish = normalize_recipe_dish(request.get("dish"))
    prompt = build_recipe_prompt(dish, servings, request.get("mode") or "standard")
    logger.info(f"🍳 Recipe requested: {dish} ({servings} servings)")

    return _call_and_parse(
        generate, prompt,
        temperature=get_config_value('temperatures', 'recipe', 0.6),
        strict_suffix=STRICT_RECIPE_SUFFIX,
        strict_temperature=get_config_value('temperatures', 'recipe_strict', 0.3),
    )


def suggest_recipe(request: Dict[str, Any], generate: GenerateFn) -> Dict[str, str]:
    """Free-text recipe or one-meal suggestion from ingredients on hand."""
    request = request or {}
    toddlers = request.get("toddlers", 0)
    kids = request.get("kids", 0)
    adults = request.get("adults", 2)
    prompt = build_suggestion_prompt(
        ingredients=request.get("ingredients") or "",
        servings=estimate_servings(toddlers, kids, adults),
        toddlers=toddlers,
        kids=kids,
        adults=adults,
        want_kids_menu=request.get("wantKidsMenu") or "いいえ",
        genre=request.get("genre") or "",
        request=request.get("request") or "",
        avoid=request.get("avoid") or "",
        menu_type=request.get("menuType") or "recipe",
        use_in=request.get("useIn") or [],
    )
    content = generate(prompt, temperature=get_config_value('temperatures', 'suggestion', 0.7))
    logger.info("✅ Recipe suggestion generated")
    return {"recipe": content}
