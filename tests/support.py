from datetime import datetime

NOW = datetime(2024, 3, 1, 12, 0, 0)


class FakeClock:
    """Settable clock so due dates can be crossed without sleeping."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now
