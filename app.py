import logging
import os

from flask import Flask

from config import Config
from extensions import db, socketio
from toastmaster.logging_config import configure_logging


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    # socketio.init_app must come before register_sockets so handlers bind to this app's server
    socketio.init_app(app)

    os.makedirs(app.config["UPLOADS_DIR"], exist_ok=True)

    from toastmaster import models  # noqa: F401  (registers the tables)
    from toastmaster.routes import register_routes
    from toastmaster.sockets import register_sockets

    with app.app_context():
        db.create_all()

    register_routes(app)
    register_sockets(socketio)
    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("PORT", 5000))
    logging.getLogger("toastmaster").info("Live quiz server ready on 0.0.0.0:%d", port)
    socketio.run(app, host="0.0.0.0", port=port, debug=False, allow_unsafe_werkzeug=True)
