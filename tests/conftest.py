"""
Shared fixtures for the Rupy test suite.

The ``rupy_session`` fixture starts one child interpreter for the whole run
and puts ``python_helpers`` on its sys.path; ``objects`` imports the helper
module there. Set RUPY_NO_SITE=1 to start the child without the site
bootstrap.
"""

import os

import pytest

from rupy import RupySession

HELPERS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "python_helpers")


@pytest.fixture(scope="session")
def rupy_session():
    session = RupySession(timeout=5.0)
    session.start()
    session.append_path(HELPERS_DIR)
    yield session
    session.stop()


@pytest.fixture(scope="session")
def objects(rupy_session):
    """Description of the ``objects`` helper module imported in the child."""
    return rupy_session.import_module("objects")


@pytest.fixture
def fresh_session():
    """A session of its own, stopped after the test."""
    session = RupySession(timeout=5.0)
    yield session
    session.stop()
