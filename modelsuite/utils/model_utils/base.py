from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Type, TypeVar, Union

from sqlalchemy import func, inspect as sa_inspect, select

from modelsuite.utils.logging_utils import get_logger, log_context

ModelType = TypeVar("ModelType")

_SENSITIVE_TOKENS = ("password", "secret", "token", "otp", "key", "passcode", "credential")


def _serialize_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _sanitize_payload(data: Mapping[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        lower = key.lower()
        if any(token in lower for token in _SENSITIVE_TOKENS):
            sanitized[key] = "***REDACTED***"
        else:
            sanitized[key] = _serialize_value(value)
    return sanitized


def _instance_identity(instance: Any) -> Optional[str]:
    state = sa_inspect(instance, raiseerr=False)
    if state is not None and state.identity:
        return ":".join(str(_serialize_value(part)) for part in state.identity)
    return None


def _build_context(model_name: str, action: str, context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    built = {"model": model_name, "action": action}
    if context:
        for key, value in context.items():
            built[f"ctx_{key}"] = value
    return built


def _apply_conditions(model_cls: Type[ModelType], stmt, conditions: Mapping[str, Any]):
    for key, value in conditions.items():
        column = getattr(model_cls, key)
        if isinstance(value, (list, tuple, set)):
            stmt = stmt.where(column.in_(list(value)))
        else:
            stmt = stmt.where(column == value)
    return stmt


def create_instance(
    database,
    model_cls: Type[ModelType],
    *,
    context: Optional[Dict[str, Any]] = None,
    **attributes: Any,
) -> ModelType:
    """
    Create and persist a new model instance in its own session.
    """

    logger = get_logger("model_utils")
    sanitized_attrs = _sanitize_payload(attributes)
    with log_context(**_build_context(model_cls.__name__, "create", context)):
        logger.info("Creating %s attributes=%s", model_cls.__name__, sanitized_attrs)
        try:
            instance = model_cls(**attributes)
            with database.session_scope() as session:
                session.add(instance)
            logger.info("Created %s target_id=%s", model_cls.__name__, _instance_identity(instance))
            return instance
        except Exception:
            logger.exception("Failed to create %s attributes=%s", model_cls.__name__, sanitized_attrs)
            raise


def create_instances(
    database,
    model_cls: Type[ModelType],
    records: Iterable[Mapping[str, Any]],
    *,
    context: Optional[Dict[str, Any]] = None,
) -> List[ModelType]:
    """
    Persist many records in a single session; nothing is committed if any row fails.
    """

    logger = get_logger("model_utils")
    with log_context(**_build_context(model_cls.__name__, "create_many", context)):
        try:
            instances = [model_cls(**dict(record)) for record in records]
            logger.info("Creating %s count=%s", model_cls.__name__, len(instances))
            with database.session_scope() as session:
                session.add_all(instances)
            logger.info("Created %s count=%s", model_cls.__name__, len(instances))
            return instances
        except Exception:
            logger.exception("Failed to create %s batch", model_cls.__name__)
            raise


def get_instance(database, model_cls: Type[ModelType], instance_id: Any) -> Optional[ModelType]:
    """
    Fetch a single model instance by primary key.
    """

    logger = get_logger("model_utils")
    with log_context(**_build_context(model_cls.__name__, "get", None)):
        if instance_id is None:
            return None
        with database.session_scope() as session:
            instance = session.get(model_cls, instance_id)
        logger.debug("Fetched %s id=%s found=%s", model_cls.__name__, instance_id, instance is not None)
        return instance


def list_instances(
    database,
    model_cls: Type[ModelType],
    *,
    conditions: Optional[Mapping[str, Any]] = None,
    order_by: Optional[Union[str, Sequence[str]]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> List[ModelType]:
    """
    List model instances matching equality ``conditions``, with optional ordering and paging.

    ``order_by`` takes attribute names; a leading ``-`` sorts descending.
    """

    logger = get_logger("model_utils")
    with log_context(**_build_context(model_cls.__name__, "list", None)):
        stmt = _apply_conditions(model_cls, select(model_cls), conditions or {})

        if order_by is not None:
            names = [order_by] if isinstance(order_by, str) else list(order_by)
            for name in names:
                if name.startswith("-"):
                    stmt = stmt.order_by(getattr(model_cls, name[1:]).desc())
                else:
                    stmt = stmt.order_by(getattr(model_cls, name))

        if offset is not None:
            stmt = stmt.offset(offset)

        if limit is not None:
            stmt = stmt.limit(limit)

        with database.session_scope() as session:
            results = list(session.scalars(stmt))
        logger.debug(
            "Listed %s conditions=%s order=%s limit=%s offset=%s count=%s",
            model_cls.__name__,
            _sanitize_payload(conditions or {}),
            order_by,
            limit,
            offset,
            len(results),
        )
        return results


def count_instances(database, model_cls: Type[ModelType], conditions: Optional[Mapping[str, Any]] = None) -> int:
    stmt = _apply_conditions(model_cls, select(func.count()).select_from(model_cls), conditions or {})
    with database.session_scope() as session:
        return session.scalar(stmt)


def delete_instance(database, instance: ModelType) -> None:
    """
    Delete a previously loaded or created instance.
    """

    logger = get_logger("model_utils")
    model_name = instance.__class__.__name__
    identity = _instance_identity(instance)
    with log_context(**_build_context(model_name, "delete", None)):
        try:
            logger.info("Deleting %s target_id=%s", model_name, identity)
            with database.session_scope() as session:
                session.delete(session.merge(instance))
            logger.info("Deleted %s target_id=%s", model_name, identity)
        except Exception:
            logger.exception("Failed to delete %s target=%s", model_name, identity)
            raise
