from collections.abc import Mapping

from marshmallow import EXCLUDE, Schema, ValidationError, validates_schema
from marshmallow import fields as ma_fields

from modelsuite.exceptions import SuiteSpecError


def _type_name(value):
    return "None" if value is None else type(value).__name__


def _require_callable(value):
    if not callable(value):
        raise ValidationError(f"expected relation function, got {_type_name(value)}")


class ModelSpecSchema(Schema):
    """One entry of ``spec["models"]``."""

    class Meta:
        unknown = EXCLUDE

    name = ma_fields.String(required=False, allow_none=True)
    field_map = ma_fields.Raw(required=False, allow_none=True, data_key="fields")
    options = ma_fields.Raw(required=False, allow_none=True)

    @validates_schema(pass_original=True)
    def check_mappings(self, data, original_data, **kwargs):
        raw_fields = original_data.get("fields") if isinstance(original_data, Mapping) else None
        if not isinstance(raw_fields, Mapping):
            raise ValidationError(f"expected model.fields mapping, got {_type_name(raw_fields)}", "fields")
        options = data.get("options")
        if options is not None and not isinstance(options, Mapping):
            raise ValidationError(f"expected model.options mapping, got {_type_name(options)}", "options")


class SuiteSpecSchema(Schema):
    """The top-level suite specification."""

    class Meta:
        unknown = EXCLUDE

    models = ma_fields.Raw(required=False, allow_none=True)
    relations = ma_fields.Dict(
        keys=ma_fields.String(),
        values=ma_fields.Raw(validate=_require_callable),
        required=False,
        allow_none=True,
    )

    @validates_schema(pass_original=True)
    def check_models(self, data, original_data, **kwargs):
        models = original_data.get("models") if isinstance(original_data, Mapping) else None
        if not isinstance(models, Mapping):
            raise ValidationError(f"expected spec.models mapping, got {_type_name(models)}", "models")


def _flatten(messages, prefix=""):
    if isinstance(messages, Mapping):
        for key, value in messages.items():
            yield from _flatten(value, f"{prefix}{key}." if key != "_schema" else prefix)
    elif isinstance(messages, (list, tuple)):
        for value in messages:
            yield from _flatten(value, prefix)
    else:
        yield f"{prefix.rstrip('.')}: {messages}" if prefix else str(messages)


def _load(schema, data, label):
    if not isinstance(data, Mapping):
        raise SuiteSpecError(f"expected {label} mapping, got {_type_name(data)}")
    try:
        return schema.load(data)
    except ValidationError as exc:
        raise SuiteSpecError("; ".join(_flatten(exc.messages))) from exc


def load_suite_spec(spec):
    """Validate a suite specification, raising :class:`SuiteSpecError` on failure."""
    return _load(SuiteSpecSchema(), spec, "spec")


def load_model_spec(model, name):
    """Validate one model definition, raising :class:`SuiteSpecError` on failure."""
    try:
        return _load(ModelSpecSchema(), model, f"spec.models[{name!r}]")
    except SuiteSpecError as exc:
        raise SuiteSpecError(f"model {name!r}: {exc}") from exc.__cause__
