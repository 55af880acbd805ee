"""
Dish Sanitizer Tests
====================

Meal-slot rules applied to model dish names.
"""

import pytest

from dish_sanitizer import sanitize_meal


# =============================================================================
# Test: Slot rules
# =============================================================================

class TestSlotRules:

    @pytest.mark.readonly
    def test_lunch_without_staple_gets_rice(self, lexicon):
        assert sanitize_meal("野菜炒め", "昼食", lexicon=lexicon) == "野菜炒めとご飯"

    @pytest.mark.readonly
    @pytest.mark.parametrize("dish", ["カレーライス", "ざるそば", "ミックスサンド", "親子丼"])
    def test_lunch_with_staple_unchanged(self, lexicon, dish):
        assert sanitize_meal(dish, "昼食", lexicon=lexicon) == dish

    @pytest.mark.readonly
    def test_dinner_without_protein_gets_main(self, lexicon):
        result = sanitize_meal("サラダ", "夕食", lexicon=lexicon)
        assert result == "サラダと鶏の照り焼き"
        assert "鶏" in result

    @pytest.mark.readonly
    def test_dinner_with_protein_unchanged(self, lexicon):
        assert sanitize_meal("麻婆豆腐", "夕食", lexicon=lexicon) == "麻婆豆腐"

    @pytest.mark.readonly
    def test_breakfast_single_token_gets_egg_finish(self, lexicon):
        assert sanitize_meal("ほうれん草", "朝食", lexicon=lexicon) == "ほうれん草の卵とじ"

    @pytest.mark.readonly
    @pytest.mark.parametrize("dish", ["トースト", "鮭の塩焼きと味噌汁", "卵粥"])
    def test_breakfast_exemptions(self, lexicon, dish):
        assert sanitize_meal(dish, "朝食", lexicon=lexicon) == dish

    @pytest.mark.readonly
    def test_slot_id_accepted(self, lexicon):
        assert sanitize_meal("サラダ", "dinner", lexicon=lexicon) == "サラダと鶏の照り焼き"

    @pytest.mark.readonly
    def test_unknown_slot_skips_slot_rules(self, lexicon):
        assert sanitize_meal("サラダ", "おやつ", lexicon=lexicon) == "サラダ"
        assert sanitize_meal("サラダ", "", lexicon=lexicon) == "サラダ"


# =============================================================================
# Test: Content rules
# =============================================================================

class TestContentRules:

    @pytest.mark.readonly
    def test_soup_with_incompatible_filling(self, lexicon):
        assert sanitize_meal("オムレツのスープ", "", lexicon=lexicon) == "豆腐とわかめの味噌汁"

    @pytest.mark.readonly
    def test_sweet_egg_finish(self, lexicon):
        assert sanitize_meal("ヨーグルトの卵とじ", "", lexicon=lexicon) == "ほうれん草の卵とじ"

    @pytest.mark.readonly
    def test_fish_with_fried_tofu_rewritten(self, lexicon):
        assert sanitize_meal("鮭の油揚げ", "夕食", lexicon=lexicon) == "鮭の塩焼き"

    @pytest.mark.readonly
    def test_pasta_never_gets_rice(self, lexicon):
        assert sanitize_meal("スパゲッティとご飯", "", lexicon=lexicon) == "スパゲッティ"
        assert sanitize_meal("トーストとご飯", "", lexicon=lexicon) == "トースト"

    @pytest.mark.readonly
    def test_rules_accumulate(self, lexicon):
        # Soup replacement happens first, then the lunch staple is appended
        assert sanitize_meal("ケーキスープ", "昼食", lexicon=lexicon) == "豆腐とわかめの味噌汁とご飯"


# =============================================================================
# Test: General behaviour
# =============================================================================

class TestGeneral:

    @pytest.mark.readonly
    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_empty(self, lexicon, name):
        assert sanitize_meal(name, "昼食", lexicon=lexicon) == ""

    @pytest.mark.readonly
    def test_whitespace_collapsed(self, lexicon):
        assert sanitize_meal("  鮭の  塩焼き ", "", lexicon=lexicon) == "鮭の 塩焼き"

    @pytest.mark.readonly
    @pytest.mark.parametrize("dish,slot", [
        ("野菜炒め", "昼食"),
        ("サラダ", "夕食"),
        ("ほうれん草", "朝食"),
        ("オムレツのスープ", "朝食"),
        ("鮭の油揚げ", "夕食"),
    ])
    def test_idempotent(self, lexicon, dish, slot):
        once = sanitize_meal(dish, slot, lexicon=lexicon)
        assert sanitize_meal(once, slot, lexicon=lexicon) == once

    @pytest.mark.readonly
    def test_custom_lexicon_patterns(self, mini_lexicon):
        assert sanitize_meal("サラダ", "夕食", lexicon=mini_lexicon) == "サラダと焼き鳥"
        assert sanitize_meal("ケーキスープ", "", lexicon=mini_lexicon) == "野菜スープ"
