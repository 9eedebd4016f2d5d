import json
import logging

from modelsuite.utils.logging_utils import (
    ContextAwareFormatter,
    LoggerManager,
    get_log_context,
    get_logger,
    log_context,
)


def _record(message='hello', **extra):
    record = logging.LogRecord('modelsuite.suite', logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:

    def test_nested_contexts_restore(self):
        assert get_log_context() == {}
        with log_context(model='Person'):
            with log_context(action='create', skipped=None):
                assert get_log_context() == {'model': 'Person', 'action': 'create'}
            assert get_log_context() == {'model': 'Person'}
        assert get_log_context() == {}

    def test_returns_a_copy(self):
        with log_context(model='Person'):
            get_log_context()['model'] = 'Pet'
            assert get_log_context() == {'model': 'Person'}


class TestFormatter:

    def test_text_appends_context(self):
        formatter = ContextAwareFormatter('%(levelname)s %(message)s')
        with log_context(model='Person', action='create'):
            assert formatter.format(_record()) == 'INFO hello | action=create model=Person'
        assert formatter.format(_record()) == 'INFO hello'

    def test_json_payload(self):
        formatter = ContextAwareFormatter(json_format=True, static_fields={'service': 'modelsuite'})
        with log_context(model='Person'):
            payload = json.loads(formatter.format(_record(rows=3)))
        assert payload['message'] == 'hello'
        assert payload['level'] == 'INFO'
        assert payload['logger'] == 'modelsuite.suite'
        assert payload['service'] == 'modelsuite'
        assert payload['rows'] == 3
        assert payload['context'] == {'model': 'Person'}


class TestLoggerManager:

    def test_category_loggers_are_namespaced_and_cached(self):
        manager = LoggerManager(enable_console=False)
        logger = manager.get_logger('ORM')
        assert logger.name == 'modelsuite.orm'
        assert manager.get_logger('orm') is logger
        manager.shutdown()

    def test_unknown_category_is_registered(self):
        manager = LoggerManager(enable_console=False)
        manager.get_logger('importer')
        assert manager.categories['importer'].filename == 'importer.log'
        manager.shutdown()

    def test_console_handler_stops_propagation(self):
        manager = LoggerManager(enable_console=True, mirror_app_handlers=False)
        logger = manager.get_logger('suite')
        assert logger.propagate is False
        manager.shutdown()
        assert logger.propagate is True
        assert logger.handlers == []

    def test_category_files(self, tmp_path):
        manager = LoggerManager(
            base_dir=str(tmp_path),
            enable_category_files=True,
            enable_console=False,
            category_levels={'transform': logging.DEBUG},
        )
        logger = manager.get_logger('transform')
        assert logger.level == logging.DEBUG
        logger.debug('converted row')
        manager.shutdown()

        content = (tmp_path / 'transform.log').read_text()
        assert 'converted row' in content

    def test_module_level_logger_follows_environment(self):
        # console disabled by the autouse fixture, so records reach the root logger
        assert get_logger('suite').propagate is True
