import os
import uuid

from flask import Flask, g, jsonify
from flask_wtf.csrf import CSRFError
from werkzeug.middleware.proxy_fix import ProxyFix

from config import DevelopmentConfig, ProductionConfig
from extensions import db, csrf, login_manager, limiter, migrate


def get_config():
    """Get configuration based on environment."""
    env = os.environ.get('FLASK_ENV', 'development')
    if env == 'production':
        return ProductionConfig()
    return DevelopmentConfig


def create_app(config_class=None):
    """Application factory pattern."""
    if config_class is None:
        config_class = get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Trust proxy headers (Cloudflare, nginx, etc.) so OAuth redirect URIs use the public host
    if os.environ.get('FLASK_ENV') == 'production':
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)
    limiter.init_app(app)

    # Configure Flask-Login
    login_manager.session_protection = 'basic'  # 'strong' can cause issues in Docker/proxy setups

    @login_manager.user_loader
    def load_user(user_id):
        from models import User
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'code': 'login_required', 'message': 'Please log in to continue.'}), 401

    # Add request ID for logging context
    @app.before_request
    def add_request_id():
        g.request_id = str(uuid.uuid4())[:8]

    # Add security headers
    @app.after_request
    def add_security_headers(response):
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['X-Request-ID'] = g.get('request_id', '')
        if not app.debug:
            response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"
        return response

    # JSON bodies for framework-level errors
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'code': 'not_found', 'message': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'code': 'method_not_allowed', 'message': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def too_large(error):
        return jsonify({'code': 'payload_too_large', 'message': 'Upload is too large'}), 413

    @app.errorhandler(CSRFError)
    def csrf_failed(error):
        return jsonify({'code': 'csrf_failed', 'message': error.description}), 400

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify({'code': 'rate_limited', 'message': str(error.description)}), 429

    # Setup logging
    from utils.logging import setup_logging
    setup_logging(app)

    # Register blueprints
    from routes.auth import auth_bp
    from routes.social import social_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(social_bp, url_prefix='/social')

    if not app.config.get('SOCIAL_TOKEN_ENCRYPTION_KEY'):
        app.logger.warning('SOCIAL_TOKEN_ENCRYPTION_KEY is not set; connecting accounts will fail')

    return app


if __name__ == '__main__':
    app = create_app()
    host = os.environ.get('HOST', '127.0.0.1')
    port = int(os.environ.get('PORT', 5000))
    app.run(host=host, port=port)
