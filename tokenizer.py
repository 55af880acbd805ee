"""
Dish-name tokenizer.

Splits a dish name into candidate ingredient tokens on the lexicon's
connector particles (と, の, ・, 、, ",", whitespace) after turning bracket and
colon/slash variants into spaces.

Token order follows the source text and duplicates are kept; downstream
replacement relies on both.
"""

from typing import List, Optional

from lexicon import Lexicon, resolve_lexicon


def tokenize(text: Optional[str], lexicon: Optional[Lexicon] = None) -> List[str]:
    """
    Split a dish name into non-empty tokens.

    Args:
        text: Dish name (None is treated as empty)
        lexicon: Lexicon supplying the delimiter patterns (default lexicon if None)

    Returns:
        Tokens in original order, e.g. "鮭の塩焼き・ご飯" -> ["鮭", "塩焼き", "ご飯"]
    """
    lex = resolve_lexicon(lexicon)
    s = str(text or "")
    if not s:
        return []
    s = lex.tokenizer_brackets.sub(" ", s)
    s = lex.tokenizer_separators.sub(" ", s)
    return [t for t in lex.tokenizer_connectors.split(s) if t]
