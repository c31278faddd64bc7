"""Shared test utilities."""

from flask import Flask


def build_app(*blueprints):
    """Create a test Flask application with the given blueprints."""
    app = Flask(__name__)
    app.config['TESTING'] = True
    for blueprint in blueprints:
        app.register_blueprint(blueprint)
    return app
