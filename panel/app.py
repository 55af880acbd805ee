"""Flask application factory."""
from flask import Flask, jsonify, request


def create_app(generate=None, lexicon=None, choice=None):
    """
    Create and configure the Flask application.

    Args:
        generate: Text generator used for model calls (default: llm_client.generate)
        lexicon: Lexicon for post-processing (default: lexicon.default_lexicon())
        choice: Random choice function for duplicate substitution
    """
    from config import DATA_DIR, get_config_value

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = get_config_value('http', 'max_content_length', 1024 * 1024)
    app.json.ensure_ascii = False

    # Ensure data directory exists
    DATA_DIR.mkdir(parents=True, exist_ok=True)

    if generate is None:
        from llm_client import generate as default_generate
        generate = default_generate

    app.extensions['kondate'] = {
        'generate': generate,
        'lexicon': lexicon,
        'choice': choice,
    }

    allowed_origins = [
        o.strip()
        for o in str(get_config_value('http', 'allowed_origins', '*')).split(',')
        if o.strip()
    ]

    @app.after_request
    def add_cors_headers(response):
        """CORS for the browser UI (served from elsewhere)."""
        origin = request.headers.get('Origin')
        if '*' in allowed_origins:
            response.headers['Access-Control-Allow-Origin'] = origin or '*'
        elif origin and origin in allowed_origins:
            response.headers['Access-Control-Allow-Origin'] = origin
        else:
            return response
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Vary'] = 'Origin'
        return response

    @app.errorhandler(413)
    def too_large(_e):
        return jsonify({'error': 'payload_too_large'}), 413

    @app.errorhandler(404)
    def not_found(_e):
        return jsonify({'error': 'not_found'}), 404

    # Register blueprints
    from panel.routes import register_blueprints
    register_blueprints(app)

    return app


# For gunicorn: gunicorn -b 0.0.0.0:3000 panel.app:app
app = create_app()
