"""
Standalone Flask application serving bearer token validation.
"""

from flask import Flask
from flask_smorest import Api

from .blueprint import introspection_bp
from .plugin import HostOperations, IntrospectionAuthPlugin


def create_app(host_operations: HostOperations = None) -> Flask:
    """
    Create the token validation service.

    Args:
        host_operations: Logger and home directory to load configuration
            from (defaults to INTROSPECTION_AUTH_HOME and the app logger)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.config.update(
        API_TITLE="OAuth2 Introspection Auth",
        API_VERSION="v1",
        OPENAPI_VERSION="3.0.3",
    )

    plugin = IntrospectionAuthPlugin()
    if host_operations is not None:
        plugin.initialize(host_operations)
    plugin.init_app(app)

    api = Api(app)
    api.register_blueprint(introspection_bp)
    return app
