"""Prompt building and request validation tests."""

import pytest

from prompts import (
    build_menu_prompt,
    build_recipe_prompt,
    build_suggestion_prompt,
    estimate_servings,
    normalize_recipe_dish,
    validate_menu_request,
)


class TestMenuPrompt:

    @pytest.mark.readonly
    def test_skeleton_has_one_entry_per_day(self):
        prompt = build_menu_prompt(0, 1, 2, days=3, meals=["朝食", "夕食"])
        assert prompt.count('"day":') == 3
        assert '"day":3' in prompt
        assert '"朝食": "料理名"' in prompt
        assert '"昼食": "料理名"' not in prompt

    @pytest.mark.readonly
    def test_household_and_preferences(self):
        prompt = build_menu_prompt(1, 2, 2, days=1, meals=["夕食"], avoid="セロリ",
                                   request="魚多め", available="キャベツ、卵",
                                   avoid_recent=["カレーライス"])
        assert "家族: 幼児1 / 小学生2 / 大人2" in prompt
        assert "避けたい語や料理: セロリ、カレーライス" in prompt
        assert "リクエスト: 魚多め" in prompt
        assert "家にある食材: キャベツ、卵" in prompt

    @pytest.mark.readonly
    def test_defaults(self):
        prompt = build_menu_prompt(0, 0, 2, days=1)
        assert "避けたい語や料理: なし" in prompt
        assert "出力する食事: 朝食、昼食、夕食" in prompt
        assert '"野菜・果物":[]' in prompt


class TestValidateMenuRequest:

    VALID = {"toddlers": 0, "kids": 2, "adults": 2, "days": 7, "meals": ["夕食"]}

    @pytest.mark.readonly
    def test_valid(self):
        assert validate_menu_request(dict(self.VALID)) == []

    @pytest.mark.readonly
    @pytest.mark.parametrize("field,value", [
        ("toddlers", -1),
        ("kids", 11),
        ("adults", "2"),
        ("adults", True),
        ("days", 0),
        ("days", 15),
        ("days", 2.5),
        ("meals", []),
        ("meals", "夕食"),
    ])
    def test_invalid_field(self, field, value):
        body = dict(self.VALID)
        body[field] = value
        assert len(validate_menu_request(body)) == 1

    @pytest.mark.readonly
    def test_empty_body(self):
        assert len(validate_menu_request({})) == 5
        assert len(validate_menu_request(None)) == 5


class TestRecipePrompts:

    @pytest.mark.readonly
    @pytest.mark.parametrize("toddlers,kids,adults,expected", [
        (0, 0, 2, 2),
        (0, 0, 1, 2),
        (1, 2, 2, 4),
        ("x", None, "3", 3),
    ])
    def test_estimate_servings(self, toddlers, kids, adults, expected):
        assert estimate_servings(toddlers, kids, adults) == expected

    @pytest.mark.readonly
    @pytest.mark.parametrize("name,expected", [
        ("", "鶏の照り焼き"),
        ("豆腐", "豆腐ステーキ"),
        ("サラダ", "チキンサラダサンド"),
        ("卵", "卵チャーハン"),
        ("ポテトサラダ", "ポテトサラダサンド"),
        ("・鮭の  塩焼き", "鮭の 塩焼き"),
    ])
    def test_normalize_recipe_dish(self, name, expected):
        assert normalize_recipe_dish(name) == expected

    @pytest.mark.readonly
    def test_recipe_prompt_unknown_mode_is_standard(self):
        prompt = build_recipe_prompt("肉じゃが", 4, mode="fancy")
        assert "【モード】標準" in prompt
        assert '"servings": 4' in prompt

    @pytest.mark.readonly
    def test_suggestion_prompt(self):
        prompt = build_suggestion_prompt("鶏肉、ピーマン", 3, genre="中華", use_in=["main", "soup"])
        assert "食材: 鶏肉、ピーマン （主菜・汁物で使用）" in prompt
        assert "ジャンル: 中華" in prompt
        assert "3人前のレシピを1つ提案" in prompt
