"""Run the doctests of the modules that have them."""

import doctest
import importlib

import pytest

MODULES_WITH_DOCTESTS = [
    'candlelight.util',
    'candlelight.geometry',
    'candlelight.scheduler',
    'candlelight.detector',
    'candlelight.tracking',
    'candlelight.audio',
    'candlelight.layout',
]


@pytest.mark.parametrize('module_name', MODULES_WITH_DOCTESTS)
def test_doctests(module_name):
    module = importlib.import_module(module_name)
    results = doctest.testmod(module)
    assert results.attempted > 0
    assert results.failed == 0
