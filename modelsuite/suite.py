"""
Model suites.

A suite bundles model definitions with optional relation setup and registers
them against one connection::

    people = suite({
        "models": {
            "Person": {
                "fields": {
                    "first_name": {"type": "text", "from": "First"},
                    "birthdate": {"type": "date", "from": parse.date("Birthday", "M/D/YY")},
                },
                "options": {"methods": {"greet": lambda self: f"hi {self.first_name}"}},
            },
        },
        "relations": {
            "Person": lambda db, Person, models: Person.has_one("mother", Person),
        },
    })
    models = people.connect("sqlite:///people.db")
    Person = models["Person"]
    Person.sync()
    Person.create(Person.transform({"First": "Shawn", "Birthday": "6/12/81"}, only=True))
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from modelsuite.exceptions import SuiteSpecError
from modelsuite.models.database import Database, connect as open_database
from modelsuite.schemas import load_model_spec, load_suite_spec
from modelsuite.utils.logging_utils import get_logger, log_context

Callback = Callable[..., Any]


class Suite:
    """Validated suite specification exposing :meth:`create` and :meth:`connect`."""

    def __init__(self, spec: Mapping):
        loaded = load_suite_spec(spec)
        self.models: Dict[str, Any] = dict(loaded["models"])
        self.relations: Dict[str, Callable] = dict(loaded.get("relations") or {})
        unknown = sorted(set(self.relations) - set(self.models))
        if unknown:
            raise SuiteSpecError(f"relations reference undeclared models: {unknown}")

    @property
    def names(self):
        return list(self.models)

    def create(self, db: Database, done: Optional[Callback] = None):
        """
        Define every model on ``db`` (each with its ``transform``), then run relation setup.

        Returns ``db.models``; when ``done`` is given its result is returned
        instead, after calling ``done(None, db.models)``.
        """
        logger = get_logger("suite")
        # every definition is validated before any is registered
        model_specs = {key: load_model_spec(definition, key) for key, definition in self.models.items()}
        registered = {}
        with log_context(action="suite.create", database=db.url):
            for key, model_spec in model_specs.items():
                fields = model_spec["field_map"]
                registered[key] = db.define(model_spec.get("name") or key, fields, model_spec.get("options"))

            for key, setup in self.relations.items():
                logger.debug("Running relation setup for %s", key)
                setup(db, registered[key], registered)

            logger.info("Registered models=%s relations=%s", list(registered), list(self.relations))

        if callable(done):
            return done(None, db.models)
        return db.models

    def connect(self, address, done: Optional[Callback] = None, **engine_options):
        """
        Open ``address`` and run :meth:`create` on the new connection.

        On success ``done(None, db)`` is called after the models are
        registered and the models mapping is returned. A connection failure,
        including a missing database driver, is passed to ``done(error)``
        without registering anything, or raised when no ``done`` is given.
        """
        try:
            db = open_database(address, **engine_options)
        except (SQLAlchemyError, ImportError) as exc:
            if callable(done):
                done(exc)
                return None
            raise

        models = self.create(db)
        if callable(done):
            done(None, db)
        return models


def suite(spec: Mapping) -> Suite:
    """Create a model suite from ``spec``; raises :class:`SuiteSpecError` if malformed."""
    return Suite(spec)
