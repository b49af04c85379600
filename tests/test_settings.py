import logging

import pytest

from api_composer.errors import AmbiguousOriginError
from api_composer.log import setup_logging
from api_composer.mapper import FieldMapper
from api_composer.settings import get_settings


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults(fresh_settings):
    settings = get_settings()
    assert settings.max_depth == 4
    assert settings.preview_limit == 3
    assert settings.ambiguity_policy == "first-match"


def test_environment_overrides(monkeypatch, fresh_settings):
    monkeypatch.setenv("API_COMPOSER_AMBIGUITY_POLICY", "error")
    monkeypatch.setenv("API_COMPOSER_PREVIEW_LIMIT", "5")
    settings = get_settings()
    assert settings.ambiguity_policy == "error"
    assert settings.preview_limit == 5

    mapper = FieldMapper()
    mapper.bind("title", "a", "x")
    mapper.bind("title", "b", "y")
    with pytest.raises(AmbiguousOriginError):
        mapper.resolve("title", {"x": 1})


def test_setup_logging_adds_one_handler():
    setup_logging("DEBUG")
    setup_logging("WARNING")
    logger = logging.getLogger("api_composer")
    assert len([h for h in logger.handlers if getattr(h, "_api_composer", False)]) == 1
    assert logger.level == logging.WARNING
