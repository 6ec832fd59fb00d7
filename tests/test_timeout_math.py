"""Unit tests for serial_session._timeout_math."""

import threading
import time

import serial_session
from serial_session import _timeout_math


def test_timeout_to_deadline(mocker):
    TMAX = _timeout_math.TIMEOUT_MAX
    mocker.patch("time.monotonic")
    time.monotonic.return_value = 1000.0

    assert _timeout_math.to_deadline(-1) == 0
    assert _timeout_math.to_deadline(0) == 0
    assert _timeout_math.to_deadline(1) == 1001.0
    assert _timeout_math.to_deadline(None) == TMAX
    assert _timeout_math.to_deadline(TMAX - 1) == TMAX
    assert _timeout_math.to_deadline(TMAX) == TMAX
    assert _timeout_math.to_deadline(TMAX + 1) == TMAX


def test_timeout_from_deadline(mocker):
    TMAX = _timeout_math.TIMEOUT_MAX
    mocker.patch("time.monotonic")
    time.monotonic.return_value = 1000.0

    assert _timeout_math.from_deadline(-1) == 0
    assert _timeout_math.from_deadline(0) == 0
    assert _timeout_math.from_deadline(999) == 0
    assert _timeout_math.from_deadline(1000) == 0
    assert _timeout_math.from_deadline(1001) == 1
    assert _timeout_math.from_deadline(TMAX - 1) == TMAX - 1001
    assert _timeout_math.from_deadline(TMAX) == TMAX
    assert _timeout_math.from_deadline(TMAX + 1) == TMAX


def test_notification_get_timeout_edges():
    notes = serial_session.NotificationQueue()
    assert notes.get(timeout=-1) is None
    assert notes.get(timeout=0) is None

    start = time.monotonic()
    assert notes.get(timeout=0.05) is None
    assert time.monotonic() - start >= 0.04

    notes(serial_session.Error("queued"))
    assert notes.get(timeout=0) == serial_session.Error("queued")


def test_notification_get_beyond_timeout_max():
    notes = serial_session.NotificationQueue()
    late = serial_session.Data("in", b"late")
    timer = threading.Timer(0.02, notes, args=(late,))
    timer.start()
    assert notes.get(timeout=_timeout_math.TIMEOUT_MAX * 2) == late
    timer.join()
