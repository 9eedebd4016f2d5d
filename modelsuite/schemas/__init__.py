# schemas/__init__.py

from .suite_schema import ModelSpecSchema, SuiteSpecSchema, load_model_spec, load_suite_spec

__all__ = [
    'ModelSpecSchema',
    'SuiteSpecSchema',
    'load_model_spec',
    'load_suite_spec',
]
