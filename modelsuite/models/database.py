from __future__ import annotations

from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, Optional, Type, Union

from sqlalchemy import Column, ForeignKey, Integer, Table, create_engine, inspect as sa_inspect
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, backref, registry, relationship, sessionmaker

from modelsuite.exceptions import SuiteSpecError
from modelsuite.models.columns import build_columns
from modelsuite.transform import transform_stream as _transform_stream, transformer
from modelsuite.utils.logging_utils import get_logger, log_context
from modelsuite.utils.model_utils import (
    count_instances,
    create_instance,
    create_instances,
    delete_instance,
    get_instance,
    list_instances,
)

RESERVED_ATTRIBUTES = frozenset({
    "sync",
    "drop",
    "create",
    "get",
    "find",
    "count",
    "remove",
    "has_one",
    "has_many",
    "transform",
    "transform_stream",
    "to_dict",
    "metadata",
    "registry",
})


def _primary_key(model_cls) -> Column:
    return sa_inspect(model_cls).primary_key[0]


def _backref(reverse: Optional[str], join_depth: Optional[int] = None):
    return backref(reverse, lazy="selectin", join_depth=join_depth) if reverse else None


def _self_depth(cls, other) -> Optional[int]:
    # self-referential eager loads need an explicit depth
    return 1 if other is cls else None


class ModelMixin:
    """Behaviour shared by every model class produced by :meth:`Database.define`."""

    __database__ = None

    @classmethod
    def transform_stream(cls, records: Iterable[Mapping]) -> Iterator[Dict[str, Any]]:
        return _transform_stream(cls.transform, records)

    @classmethod
    def sync(cls):
        """Create this model's table if it does not exist yet."""
        cls.__table__.create(cls.__database__.engine, checkfirst=True)
        get_logger("orm").info("Synced table %s", cls.__tablename__)
        return cls

    @classmethod
    def drop(cls):
        cls.__table__.drop(cls.__database__.engine, checkfirst=True)
        get_logger("orm").info("Dropped table %s", cls.__tablename__)
        return cls

    @classmethod
    def create(cls, record=None, **attributes):
        """
        Insert one row from ``record`` and/or keyword attributes, or a list
        of records in a single transaction. Returns detached instances.
        """
        if isinstance(record, (list, tuple)):
            return create_instances(cls.__database__, cls, record)
        values = dict(record or {})
        values.update(attributes)
        return create_instance(cls.__database__, cls, **values)

    @classmethod
    def get(cls, ident):
        return get_instance(cls.__database__, cls, ident)

    @classmethod
    def find(cls, order_by=None, limit=None, offset=None, **conditions):
        return list_instances(
            cls.__database__,
            cls,
            conditions=conditions,
            order_by=order_by,
            limit=limit,
            offset=offset,
        )

    @classmethod
    def count(cls, **conditions) -> int:
        return count_instances(cls.__database__, cls, conditions)

    @classmethod
    def has_one(cls, name: str, other, reverse: Optional[str] = None, required: bool = False):
        """Add ``<name>_id`` referencing ``other`` plus a ``name`` relationship."""
        other_pk = _primary_key(other)
        fk = Column(f"{name}_id", other_pk.type, ForeignKey(other_pk), nullable=not required)
        depth = _self_depth(cls, other)
        setattr(cls, f"{name}_id", fk)
        setattr(cls, name, relationship(
            other,
            foreign_keys=[fk],
            remote_side=[other_pk] if depth else None,
            backref=_backref(reverse, depth),
            lazy="selectin",
            join_depth=depth,
        ))
        get_logger("orm").info("Relation %s.%s -> %s (one)", cls.__name__, name, other.__name__)
        return cls

    @classmethod
    def has_many(cls, name: str, other, reverse: Optional[str] = None) -> Table:
        """Link ``cls`` to many ``other`` rows through a ``<table>_<name>`` join table."""
        owner_pk = _primary_key(cls)
        other_pk = _primary_key(other)
        owner_col = f"{cls.__tablename__}_id"
        other_col = f"{name}_id"
        if owner_col == other_col:
            raise SuiteSpecError(f"relation name {name!r} collides with table {cls.__tablename__!r}")
        join_table = Table(
            f"{cls.__tablename__}_{name}",
            cls.metadata,
            Column(owner_col, owner_pk.type, ForeignKey(owner_pk, ondelete="CASCADE"), primary_key=True),
            Column(other_col, other_pk.type, ForeignKey(other_pk, ondelete="CASCADE"), primary_key=True),
        )
        setattr(cls, name, relationship(
            other,
            secondary=join_table,
            primaryjoin=owner_pk == join_table.c[owner_col],
            secondaryjoin=other_pk == join_table.c[other_col],
            backref=_backref(reverse, _self_depth(cls, other)),
            lazy="selectin",
            join_depth=_self_depth(cls, other),
        ))
        get_logger("orm").info("Relation %s.%s -> %s (many)", cls.__name__, name, other.__name__)
        return join_table

    def remove(self) -> None:
        delete_instance(self.__database__, self)

    def to_dict(self) -> Dict[str, Any]:
        return {attr.key: getattr(self, attr.key) for attr in sa_inspect(type(self)).column_attrs}

    def __repr__(self):
        identity = sa_inspect(self).identity
        key = ":".join(str(part) for part in identity) if identity else "transient"
        return f"<{type(self).__name__} {key}>"


class Database:
    """
    A live connection: one SQLAlchemy engine, its declarative registry and
    the models defined against it (``db.models``).
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.registry = registry()
        self.Model = self.registry.generate_base(cls=ModelMixin, name="Model")
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)
        self.models: Dict[str, Type[ModelMixin]] = {}

    @property
    def metadata(self):
        return self.registry.metadata

    @property
    def url(self) -> str:
        return self.engine.url.render_as_string(hide_password=True)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def define(self, name: str, fields: Mapping, options: Optional[Mapping] = None) -> Type[ModelMixin]:
        """
        Register a model named ``name`` (also its table name) and return its class.

        ``options`` understands ``methods`` (extra instance methods), ``id``
        (name of the implicit primary key) and ``table_args``. The class gets a
        ``transform`` built from the fields' ``from`` entries.
        """
        logger = get_logger("orm")
        options = dict(options or {})
        methods = options.pop("methods", None) or {}
        pk_name = options.pop("id", None) or "id"
        table_args = options.pop("table_args", None)
        for unknown in options:
            logger.warning("Ignoring unsupported option %r for model %s", unknown, name)

        clashes = RESERVED_ATTRIBUTES.intersection(fields).union(RESERVED_ATTRIBUTES.intersection(methods))
        if clashes:
            raise SuiteSpecError(f"model {name!r} uses reserved attribute names: {sorted(clashes)}")

        with log_context(model=name, action="define"):
            columns = build_columns(name, fields)
            attrs: Dict[str, Any] = {
                "__tablename__": name,
                "__database__": self,
                "transform": staticmethod(transformer(fields)),
            }
            if not any(column.primary_key for column in columns.values()):
                if pk_name in columns or any(column.name == pk_name for column in columns.values()):
                    raise SuiteSpecError(
                        f"model {name!r}: field {pk_name!r} collides with the implicit primary key; "
                        "mark it as a key or rename the key with options[\"id\"]"
                    )
                attrs[pk_name] = Column(pk_name, Integer, primary_key=True, autoincrement=True)
            attrs.update(columns)
            if table_args:
                attrs["__table_args__"] = table_args
            for method_name, method in methods.items():
                if method_name in attrs:
                    raise SuiteSpecError(f"model {name!r}: method {method_name!r} shadows a field")
                attrs[method_name] = method

            previous = self.models.pop(name, None)
            if previous is not None:
                logger.warning("Redefining model %s", name)
                self.metadata.remove(previous.__table__)

            model = type(name, (self.Model,), attrs)
            self.models[name] = model
            logger.info("Defined model %s columns=%s", name, list(columns))
            return model

    def sync(self) -> None:
        """Create every defined table that does not exist yet."""
        self.metadata.create_all(self.engine)
        get_logger("orm").info("Synced %s tables on %s", len(self.metadata.tables), self.url)

    def drop(self) -> None:
        self.metadata.drop_all(self.engine)
        get_logger("orm").info("Dropped tables on %s", self.url)

    def close(self) -> None:
        self.engine.dispose()
        get_logger("orm").info("Closed connection %s", self.url)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self):
        return f"<Database {self.url} models={list(self.models)}>"


def connect(address: Union[str, URL], **engine_options: Any) -> Database:
    """
    Open an engine for ``address`` and verify it accepts connections.

    SQLAlchemy errors (bad URL, unknown dialect, unreachable server) and the
    ``ImportError`` of a DBAPI driver that is not installed propagate to the
    caller unchanged.
    """
    logger = get_logger("orm")
    safe_address = make_url(address).render_as_string(hide_password=True)
    try:
        engine = create_engine(address, **engine_options)
    except ImportError:
        logger.exception("Missing database driver for %s", safe_address)
        raise
    try:
        with engine.connect():
            pass
    except SQLAlchemyError:
        engine.dispose()
        logger.exception("Failed to connect to %s", safe_address)
        raise
    logger.info("Connected to %s", safe_address)
    return Database(engine)
