"""
Pytest Configuration and Fixtures
=================================

Provides shared fixtures for the test suite:
- Bundled Japanese lexicon (read-only)
- A small hand-built lexicon for rule tests
- Deterministic choice function for duplicate substitution
- Flask test client wired to a fake text generator

SAFETY: config.py writes data/config.yaml and logs on import, so the data
directory is pointed at a throwaway temp dir before anything imports it.
"""

import os
import tempfile

os.environ.setdefault("KONDATE_DATA_DIR", tempfile.mkdtemp(prefix="kondate-tests-"))

import json
from typing import Any, Dict, List

import pytest


# =============================================================================
# Fake text generator
# =============================================================================

class FakeGenerator:
    """
    Stand-in for llm_client.generate.

    Returns queued responses in order (the last one repeats) and records every
    (prompt, temperature) call.
    """

    def __init__(self, *responses: str):
        self.responses: List[str] = list(responses) or ["{}"]
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, prompt: str, temperature: float = 0.7, max_retries: int = None) -> str:
        self.calls.append({"prompt": prompt, "temperature": temperature})
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def lexicon():
    """Bundled lexicon for the configured locale (read-only)."""
    from lexicon import default_lexicon
    return default_lexicon()


@pytest.fixture
def first_choice():
    """Deterministic substitute: always the first candidate."""
    return lambda candidates: candidates[0]


@pytest.fixture
def mini_lexicon_data() -> Dict[str, Any]:
    """Minimal lexicon definition; tests copy and tweak it."""
    return {
        "version": "test-1",
        "locale": "xx",
        "meal_slots": {"breakfast": "朝食", "lunch": "昼食", "dinner": "夕食"},
        "categories": [
            {"id": "produce", "label": "野菜", "color": "#00FF00"},
            {"id": "protein", "label": "たんぱく質"},
            {"id": "grains", "label": "主食"},
        ],
        "substitution_pools": {
            "meats": {
                "category": "protein",
                "members": {"鶏肉": ["豚肉"], "豚肉": ["鶏肉"]},
            },
            "vegetables": {
                "category": "produce",
                "members": {"キャベツ": ["白菜"]},
            },
        },
        "fallback_substitutes": ["白菜"],
        "extra_category_members": {"protein": ["ツナ"]},
        "staple_foods": ["ご飯", "パン"],
        "staple_category": "grains",
        "aliases": {"鶏": "鶏肉"},
        "cook_words": "(焼|煮)",
        "tokenizer": {
            "brackets": "[()]",
            "separators": "[/]",
            "connectors": "(?:と|の|\\s+)",
        },
        "sanitizer": {
            "soup": "スープ",
            "soup_incompatible": "ケーキ",
            "safe_soup": "野菜スープ",
            "egg_finish": "卵とじ",
            "egg_finish_incompatible": "フルーツ",
            "safe_egg_finish": "ねぎの卵とじ",
            "lunch_staple": "(ご飯|パン)",
            "lunch_suffix": "とご飯",
            "dinner_protein": "(鶏|豚|ツナ)",
            "dinner_suffix": "と焼き鳥",
            "breakfast_exempt": "スープ",
            "breakfast_suffix": "の卵とじ",
            "rewrites": [],
        },
        "protein_normalizers": [{"pattern": "チキン", "canonical": "鶏肉"}],
        "detector": {
            "extra_keys": ["鶏"],
            "word_chars": "\\u3040-\\u30FF\\u4E00-\\u9FFFA-Za-z0-9",
            "exclusions": [],
        },
    }


@pytest.fixture
def mini_lexicon(mini_lexicon_data):
    from lexicon import Lexicon
    return Lexicon.from_dict(mini_lexicon_data, source="<test>")


@pytest.fixture
def fake_generator():
    return FakeGenerator


@pytest.fixture
def menu_response():
    """Serializer for model-style menu responses."""
    def _build(days: List[Dict[str, Any]], shopping: Dict[str, List[str]] = None) -> str:
        return json.dumps({"menu": days, "shoppingList": shopping or {}, "availableList": []},
                          ensure_ascii=False)
    return _build


@pytest.fixture
def client(lexicon, first_choice):
    """
    Flask test client whose model calls go to a FakeGenerator.

    The generator is exposed as client.generator; tests replace its responses.
    """
    from panel.app import create_app

    generator = FakeGenerator()
    app = create_app(generate=generator, lexicon=lexicon, choice=first_choice)
    app.config['TESTING'] = True
    with app.test_client() as test_client:
        test_client.generator = generator
        yield test_client


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "readonly: marks test as read-only (no filesystem or network writes)"
    )
