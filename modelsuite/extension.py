from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from flask import Flask

from modelsuite.commands import suite_cli
from modelsuite.models.database import Database
from modelsuite.suite import Suite, suite as build_suite
from modelsuite.utils.logging_utils import get_logger, init_logger


class ModelSuite:
    """
    Flask integration: connects a suite to ``MODELSUITE_DATABASE_URI`` and
    exposes the ``flask modelsuite`` command group.

        suite_ext = ModelSuite(spec)
        suite_ext.init_app(app)
        Person = suite_ext.models["Person"]
    """

    def __init__(self, spec: Optional[Union[Mapping, Suite]] = None, app: Optional[Flask] = None):
        self.suite: Optional[Suite] = None
        if spec is not None:
            self.suite = spec if isinstance(spec, Suite) else build_suite(spec)
        self.db: Optional[Database] = None
        self.models: Dict[str, Any] = {}
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        if self.suite is None:
            raise RuntimeError("ModelSuite needs a suite spec before init_app")

        init_logger(app)
        logger = get_logger("app")

        address = app.config.get("MODELSUITE_DATABASE_URI", "sqlite://")
        engine_options = dict(app.config.get("MODELSUITE_ENGINE_OPTIONS") or {})
        if app.config.get("MODELSUITE_ECHO_SQL"):
            engine_options["echo"] = True

        def _connected(error, db=None):
            if error is not None:
                logger.error("modelsuite could not connect: %s", error)
                raise error
            self.db = db

        self.models = self.suite.connect(address, _connected, **engine_options)

        if app.config.get("MODELSUITE_AUTO_SYNC"):
            self.db.sync()

        app.extensions["modelsuite"] = self
        app.cli.add_command(suite_cli)
        logger.info("modelsuite ready models=%s database=%s", list(self.models), self.db.url)
