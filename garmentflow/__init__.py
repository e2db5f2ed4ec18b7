from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate()


def create_app(testing: bool = False, config_object=None):
    from .config import Config, TestingConfig

    app = Flask(__name__)
    app.config.from_object(config_object or (TestingConfig if testing else Config))
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    CORS(app, supports_credentials=True)
    db.init_app(app)
    migrate.init_app(app, db)

    from .services.ai_tools import PromptCompletionService
    app.extensions["prompt_completion"] = PromptCompletionService(
        api_key=app.config.get("GEMINI_API_KEY"),
        model_name=app.config.get("AI_MODEL", "gemini-2.0-pro"),
    )

    from . import models  # noqa: F401
    from .routes import bp as main_bp
    from .api import api as api_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(api_bp, url_prefix="/api")

    return app
