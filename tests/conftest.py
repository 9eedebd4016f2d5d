from datetime import datetime

import pytest

from modelsuite import create_app, parse
from modelsuite.models.database import connect
from modelsuite.utils.logging_utils import shutdown_logger

DATE_FORMAT = 'D/M/YY'


def _full_name(self):
    return ' '.join([self.first_name, self.last_name])


def _age(self, now=None):
    if not self.birthdate:
        return None
    return (now or datetime.now()).year - self.birthdate.year


PERSON_SPEC = {
    'models': {
        'Person': {
            'fields': {
                'first_name': {'type': 'text', 'from': 'First'},
                'last_name': {'type': 'text', 'from': 'Last'},
                'birthdate': {'type': 'date', 'from': parse.date('Birthday', DATE_FORMAT)},
            },
            'options': {
                'methods': {
                    'name': _full_name,
                    'age': _age,
                },
            },
        },
    },
}


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    """Keep category loggers off the console and reset them between tests."""
    monkeypatch.setenv('LOGGING_CONSOLE_ENABLED', 'false')
    shutdown_logger()
    yield
    shutdown_logger()


@pytest.fixture(scope='function')
def db():
    """Fresh in-memory database per test."""
    database = connect('sqlite://')
    yield database
    database.close()


@pytest.fixture(scope='function')
def person_spec():
    return PERSON_SPEC


@pytest.fixture(scope='function')
def app(monkeypatch):
    """Create application for testing."""
    monkeypatch.setenv('FLASK_ENV', 'testing')

    app = create_app('testing', spec=PERSON_SPEC)
    yield app
    app.extensions['modelsuite'].db.close()


@pytest.fixture(scope='function')
def runner(app):
    """Create test CLI runner."""
    return app.test_cli_runner()
