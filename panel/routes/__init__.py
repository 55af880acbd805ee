"""Blueprint registration."""


def register_blueprints(app):
    """Register all route blueprints."""
    from .api import bp as api_bp

    app.register_blueprint(api_bp)
