"""Tests for the command line helpers."""

import logging

import pytest

from candlelight.script_utils import (
    ESCAPE_KEY_ASCII,
    RELIGHT_KEY,
    KeyboardBreakSignal,
    apply_keyboard,
    configure_logging,
    keyboard_feature_vector,
)


def test_keyboard_feature_vector():
    fv = keyboard_feature_vector(0)
    assert not fv['key_pressed']
    assert keyboard_feature_vector(ord('a'))['key_pressed']


@pytest.mark.parametrize('key_code', [ESCAPE_KEY_ASCII, ord('q')])
def test_break_keys(key_code):
    with pytest.raises(KeyboardBreakSignal):
        keyboard_feature_vector(key_code)


def test_configure_logging(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, 'basicConfig', lambda **kw: calls.append(kw))
    configure_logging('debug')
    assert calls[0]['level'] == logging.DEBUG
    with pytest.raises(ValueError):
        configure_logging('chatty')


class RelightableSession:
    def __init__(self):
        self.relights = 0

    def relight(self):
        self.relights += 1
        return True


def test_relight_key():
    session = RelightableSession()
    assert not apply_keyboard(keyboard_feature_vector(0), session)
    assert not apply_keyboard(keyboard_feature_vector(ord('a')), session)
    assert session.relights == 0
    assert apply_keyboard(keyboard_feature_vector(RELIGHT_KEY), session)
    assert session.relights == 1
