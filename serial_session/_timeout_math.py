import threading
import time

TIMEOUT_MAX = threading.TIMEOUT_MAX


def to_deadline(timeout: float | int | None) -> float | int:
    if timeout is None:
        return TIMEOUT_MAX
    if timeout <= 0:
        return 0
    return min(TIMEOUT_MAX, time.monotonic() + timeout)


def from_deadline(deadline: float | int) -> float | int:
    if deadline >= TIMEOUT_MAX:
        return TIMEOUT_MAX
    return max(0, deadline - time.monotonic())
