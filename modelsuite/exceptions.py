class SuiteSpecError(AssertionError):
    """Raised when a suite specification or model definition is malformed."""


class FieldTypeError(SuiteSpecError):
    """Raised when a field definition names a type the ORM adapter cannot map."""

    def __init__(self, name, field_type):
        super().__init__(f"unsupported type {field_type!r} for field {name!r}")
        self.name = name
        self.field_type = field_type
