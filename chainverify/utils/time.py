import time
from datetime import datetime, timezone


def now_s() -> float:
    return time.time()


def age_seconds(then: datetime, now_epoch: float) -> float:
    """
    Seconds elapsed between `then` and the epoch `now_epoch`.
    Naive datetimes are treated as UTC. Negative when `then` is in the future.
    """
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    return float(now_epoch) - then.timestamp()
