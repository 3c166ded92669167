import logging
import os
from flask import Flask
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

def create_app(test_config=None):
    app = Flask(__name__, instance_relative_config=True)

    # ------------------------------------------------------------------
    # Ensure instance folder exists BEFORE constructing database path
    # ------------------------------------------------------------------
    os.makedirs(app.instance_path, exist_ok=True)

    # SQLite URI must use forward slashes and start with sqlite:/// for absolute path
    db_file = os.path.join(app.instance_path, "foodroulette.db")
    db_uri = f"sqlite:///{db_file.replace(os.path.sep, '/')}"

    # ------------------------------------------------------------------
    # App configuration
    # ------------------------------------------------------------------
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("FOODROULETTE_SECRET", "dev-secret"),
        SQLALCHEMY_DATABASE_URI=os.environ.get("DATABASE_URL", db_uri),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        COUPON_HIDE_AFTER_DAYS=int(os.environ.get("COUPON_HIDE_AFTER_DAYS", "2")),
        LOG_LEVEL=os.environ.get("FOODROULETTE_LOG_LEVEL", "INFO"),
    )
    if test_config:
        app.config.update(test_config)

    logging.getLogger(__name__).setLevel(app.config["LOG_LEVEL"])

    # ------------------------------------------------------------------
    # Initialize SQLAlchemy AFTER config is applied
    # ------------------------------------------------------------------
    db.init_app(app)

    with app.app_context():
        from . import models  # ensures models register with SQLAlchemy
        db.create_all()

    from .routes import bp
    app.register_blueprint(bp)

    return app
