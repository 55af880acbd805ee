"""
Kondate Prompts Configuration
==============================

This module contains all LLM prompts used by the menu service, plus the
request validation that decides what goes into them. Separating prompts from
code makes it easier to tune them without touching the post-processing
pipeline.

Prompts are Japanese because the lexicon and the post-processing rules expect
Japanese dish names back.
"""

import re
from typing import Any, Dict, List, Optional, Sequence

from config import get_config_value


# =============================================================================
# MENU PROMPT
# =============================================================================

DEFAULT_MEALS = ["朝食", "昼食", "夕食"]

SHOPPING_CATEGORIES = ["野菜・果物", "肉・魚・卵・乳製品", "穀物・麺類・パン", "調味料・油", "その他"]

# Appended on the single retry after the model returned malformed JSON
STRICT_JSON_SUFFIX = "\n\n【重要】JSON以外は出力しない。"
STRICT_RECIPE_SUFFIX = "\n\n【重要】JSONのみを厳密に出力。"


def build_menu_prompt(toddlers: int, kids: int, adults: int, days: int,
                      meals: Optional[Sequence[str]] = None, avoid: str = "",
                      request: str = "", available: str = "",
                      avoid_recent: Optional[Sequence[str]] = None) -> str:
    """
    Build the strict-JSON multi-day menu prompt.

    Required variables:
        toddlers, kids, adults: household composition
        days: number of days (the skeleton has exactly this many entries)
        meals: selected meal slot labels; unselected slots are not requested
        avoid / avoid_recent: words or dishes to avoid (recent ones from history)
        request: free-text wish
        available: "、"-joined ingredients already at home
    """
    meals = list(meals or [])
    meals_line = "、".join(meals) if meals else "、".join(DEFAULT_MEALS)
    avoid_line = "、".join([x for x in [avoid, *(avoid_recent or [])] if x]) or "なし"

    fields = [f'"{m}": "料理名"' for m in DEFAULT_MEALS if m in meals]
    day_count = int(days) if days else 1
    skeleton_days = ",".join(
        f'{{"day":{i + 1},"meals":{{ {", ".join(fields)} }},'
        f'"nutrition":{{"kcal":0,"protein_g":0,"veg_servings":0,"balance":""}}}}'
        for i in range(day_count)
    )
    skeleton_shopping = ",".join(f'"{c}":[]' for c in SHOPPING_CATEGORIES)

    return f"""
厳密JSONのみを返してください（説明・コードフェンス禁止）。必ず "menu" の要素数は {days} 件、"day" は 1..{days} の連番。

家族: 幼児{toddlers} / 小学生{kids} / 大人{adults}
日数: {days}
出力する食事: {meals_line}（未選択の食事は出力しない）
避けたい語や料理: {avoid_line}
リクエスト: {request or "なし"}
家にある食材: {available or "なし"}

制約:
- 料理名は名詞1語のみ禁止（必ず調理法/スタイルを含む）
- 昼食は主食（ご飯/パン/麺）を必ず含む
- 夕食は主菜（肉/魚/卵/豆腐等）を必ず含む、サラダ単品禁止
- 同じ主要たんぱく質（鶏/豚/牛/鮭/鯖/タラ/卵/豆腐/ツナ）を同じ日に重複させない
- 味噌汁/スープの具は野菜・きのこ・豆腐・わかめ等のみ

{{
  "menu":[
    {skeleton_days}
  ],
  "shoppingList":{{{skeleton_shopping}}},
  "availableList":[]
}}""".strip()


# =============================================================================
# REQUEST VALIDATION
# =============================================================================

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_menu_request(body: Dict[str, Any]) -> List[str]:
    """
    Validate a /generate-menu body.

    Returns:
        List of human-readable (Japanese) error messages; empty when valid
    """
    max_people = get_config_value('menu_request', 'max_people_per_group', 10)
    min_days = get_config_value('menu_request', 'min_days', 1)
    max_days = get_config_value('menu_request', 'max_days', 14)

    body = body or {}
    errors = []
    for key, label in (("toddlers", "幼児"), ("kids", "小学生"), ("adults", "大人")):
        value = body.get(key)
        if not _is_int(value) or value < 0 or value > max_people:
            errors.append(f"{label}の人数は0〜{max_people}の整数で指定してください")

    days = body.get("days")
    if not _is_int(days) or days < min_days or days > max_days:
        errors.append(f"日数は{min_days}〜{max_days}の整数で指定してください")

    meals = body.get("meals")
    if not isinstance(meals, list) or len(meals) == 0:
        errors.append("少なくとも1つの食事を選択してください")

    return errors


# =============================================================================
# RECIPE PROMPTS
# =============================================================================

RECIPE_MODES = {
    "standard": "標準",
    "economy": "節約",
    "quick": "時短",
}

_BULLET_RE = re.compile(r"[•●・\-]")
_RECIPE_STAPLE_RE = re.compile(r"(サンド|丼|定食|パスタ|うどん|そば|ラーメン|ご飯|ライス)")


def _as_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def estimate_servings(toddlers: Any = 0, kids: Any = 0, adults: Any = 2) -> int:
    """Adult-equivalent portions (kid 0.7, toddler 0.5), at least 2."""
    portions = _as_number(adults) + _as_number(kids) * 0.7 + _as_number(toddlers) * 0.5
    return max(2, int(round(portions)))


def normalize_recipe_dish(name: Any) -> str:
    """
    Turn a dish name from the menu into something a recipe can be written for.

    Bare ingredients get a concrete dish; a plain salad becomes a sandwich so
    the recipe is a meal on its own.
    """
    n = _BULLET_RE.sub("", str(name or ""))
    n = re.sub(r"\s+", " ", n).strip() or "鶏の照り焼き"
    if n == "豆腐":
        n = "豆腐ステーキ"
    if n == "サラダ":
        n = "チキンサラダ"
    if n in ("卵", "納豆"):
        n = f"{n}チャーハン"
    if n.endswith("サラダ") and not _RECIPE_STAPLE_RE.search(n):
        n = n[:-len("サラダ")] + "サラダサンド"
    return n


def build_recipe_prompt(dish: str, servings: int, mode: str = "standard") -> str:
    """Strict-JSON recipe prompt for one dish."""
    mode_label = RECIPE_MODES.get(mode, RECIPE_MODES["standard"])
    return f"""
日本の家庭料理のレシピを厳密JSONで返してください。説明禁止。

【料理名】{dish}
【分量】約{servings}人前
【モード】{mode_label}

{{
  "title": "料理名",
  "servings": {servings},
  "ingredients": ["具体食材 量", "..."],
  "seasonings": ["調味料 量", "..."],
  "steps": ["手順1", "..."],
  "tips": ["コツ1", "..."],
  "nutrition_per_serving": {{ "kcal": 0, "protein_g": 0 }}
}}""".strip()


USE_IN_LABELS = {"main": "主菜", "side": "副菜", "soup": "汁物"}


def build_suggestion_prompt(ingredients: str, servings: int, toddlers: Any = 0, kids: Any = 0,
                            adults: Any = 2, want_kids_menu: str = "いいえ", genre: str = "",
                            request: str = "", avoid: str = "", menu_type: str = "recipe",
                            use_in: Optional[Sequence[str]] = None) -> str:
    """
    Free-text prompt suggesting what to cook from given ingredients.

    menu_type "menu" asks for a balanced one-meal set (main, side, soup);
    anything else asks for a single recipe.
    """
    if menu_type == "menu":
        return f"""
【1食分の献立提案】
食材: {ingredients}
人数: 幼児{toddlers}人、小学生{kids}人、大人{adults}人
子ども向け: {want_kids_menu}
ジャンル: {genre or "指定なし"}
要望: {request or "なし"}
避けたい: {avoid or "なし"}

主菜・副菜・汁物のバランスの取れた1食分の献立を提案してください。
各料理の簡単な作り方も含めてください。

【出力形式】
■ 主菜: 料理名
材料: ...
作り方: ...

■ 副菜: 料理名
材料: ...
作り方: ...

■ 汁物: 料理名
材料: ...
作り方: ...""".strip()

    use_in = list(use_in or [])
    use_in_text = ""
    if use_in:
        use_in_text = f"（{'・'.join(USE_IN_LABELS.get(x, '汁物') for x in use_in)}で使用）"

    return f"""
【レシピ提案】
食材: {ingredients} {use_in_text}
人数: 約{servings}人前
子ども向け: {want_kids_menu}
ジャンル: {genre or "指定なし"}
要望: {request or "なし"}
避けたい: {avoid or "なし"}

上記の食材を使った{servings}人前のレシピを1つ提案してください。

【出力形式】
■ 料理名: ○○○○

■ 材料（{servings}人前）
- 食材名: 分量
- ...

■ 作り方
1. 手順1
2. 手順2
...

■ ポイント
- コツやアレンジ案""".strip()


# =============================================================================
# PROMPT TUNING NOTES
# =============================================================================
"""
When tuning prompts, consider:

1. TEMPERATURE: menu 0.7, recipe 0.6 (pipeline.temperatures in config.yaml)
   - The strict retry drops to 0.4 / 0.3 to get plain JSON back

2. CONSTRAINTS: the menu prompt states the meal-slot rules, but the model
   does not reliably follow them; dish_sanitizer and duplicate_resolver
   enforce them afterwards. Keep prompt wording and lexicon patterns in sync.
"""
