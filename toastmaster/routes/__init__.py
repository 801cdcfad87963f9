from .public_routes import public_bp
from .host_routes import host_bp
from .editor_routes import editor_bp
from .file_routes import file_bp
from .join_routes import join_bp

def register_routes(app):
    app.register_blueprint(public_bp, url_prefix="/api/quiz")
    app.register_blueprint(host_bp, url_prefix="/host")
    app.register_blueprint(editor_bp, url_prefix="/editor")
    app.register_blueprint(file_bp)
    app.register_blueprint(join_bp)
