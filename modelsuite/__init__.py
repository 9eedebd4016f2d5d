import os

from flask import Flask
from werkzeug.utils import import_string

from modelsuite import parse
from modelsuite.config import Config, config
from modelsuite.exceptions import FieldTypeError, SuiteSpecError
from modelsuite.extension import ModelSuite
from modelsuite.models.database import Database, connect
from modelsuite.suite import Suite, suite
from modelsuite.transform import getter, transform_stream, transformer

__version__ = "0.2.0"
version = __version__

__all__ = [
    "Database",
    "FieldTypeError",
    "ModelSuite",
    "Suite",
    "SuiteSpecError",
    "connect",
    "create_app",
    "getter",
    "parse",
    "suite",
    "transform_stream",
    "transformer",
    "version",
]


def create_app(config_name=None, spec=None):
    """
    Build a Flask app around a suite so the ``flask modelsuite`` commands can run.

    ``spec`` defaults to the object named by ``MODELSUITE_SPEC``
    (``"package.module:SPEC"``).
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'default')

    config_class = config.get(config_name, Config)

    app = Flask(__name__)
    app.config.from_object(config_class)
    config_class.init_app(app)

    if spec is None:
        spec_path = os.getenv("MODELSUITE_SPEC") or app.config.get("MODELSUITE_SPEC")
        if not spec_path:
            raise RuntimeError("MODELSUITE_SPEC is not set and no spec was passed")
        spec = import_string(spec_path)

    ModelSuite(spec, app)
    app.logger.info("Using config: %s", config_class.__name__)
    return app
