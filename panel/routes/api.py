"""JSON API routes - menu, shopping list and recipe generation."""
from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from llm_client import LLMError
from menu_pipeline import (
    MalformedModelOutput,
    MenuRequestError,
    generate_menu,
    generate_recipe,
    recalc_shopping,
    suggest_recipe,
)
from tools.logging_utils import get_logger

logger = get_logger(__name__)

bp = Blueprint('api', __name__)


def _deps():
    return current_app.extensions['kondate']


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@bp.app_errorhandler(MenuRequestError)
def handle_bad_request(e):
    logger.warning(f"⚠️ Rejected menu request: {e}")
    return jsonify({'error': 'validation_error', 'details': e.errors}), 400


@bp.app_errorhandler(LLMError)
def handle_llm_error(e):
    logger.error(f"❌ Upstream model failure: {e}")
    return jsonify({'error': 'upstream_error', 'message': e.message}), 502


@bp.app_errorhandler(MalformedModelOutput)
def handle_malformed_output(e):
    logger.error(f"❌ Model output unusable: {e}")
    return jsonify({'error': 'malformed_model_output',
                    'message': 'Model did not return valid JSON'}), 502


@bp.app_errorhandler(Exception)
def handle_unexpected(e):
    if isinstance(e, HTTPException):
        return e
    logger.exception(f"❌ Unhandled error: {e}")
    return jsonify({'error': 'internal_error'}), 500


# =============================================================================
# ROUTES
# =============================================================================

@bp.route('/generate-menu', methods=['POST'])
def generate_menu_route():
    """Generate a multi-day menu with shopping list."""
    deps = _deps()
    result = generate_menu(_json_body(), deps['generate'],
                           lexicon=deps['lexicon'], choice=deps['choice'])
    return jsonify(result)


@bp.route('/recalc-shopping', methods=['POST'])
def recalc_shopping_route():
    """Rebuild the shopping list after the user edited the menu."""
    body = _json_body()
    result = recalc_shopping(body.get('menu'), body.get('available'),
                             lexicon=_deps()['lexicon'])
    return jsonify(result)


@bp.route('/generate-recipe', methods=['POST'])
def generate_recipe_route():
    """Structured recipe for one dish."""
    return jsonify(generate_recipe(_json_body(), _deps()['generate']))


@bp.route('/recipe', methods=['POST'])
def suggest_recipe_route():
    """Free-text recipe suggestion from ingredients on hand."""
    return jsonify(suggest_recipe(_json_body(), _deps()['generate']))


@bp.route('/api/health')
def health():
    """Service status: lexicon in use and whether credentials are configured."""
    import config
    from lexicon import resolve_lexicon

    lex = resolve_lexicon(_deps()['lexicon'])
    return jsonify({
        'status': 'ok',
        'lexicon': {'locale': lex.locale, 'version': lex.version},
        'model': config.CHAT_MODEL,
        'llm_configured': bool(config.CHAT_API_KEY),
    })
