import pytest

from models import get_engine, get_session_factory, init_db
from seen_counter import SeenCounter
from selection import DueSetSelector
from service import SchedulerService
from store import ReviewStore
from tests.support import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(tmp_path):
    engine = get_engine(f"sqlite:///{tmp_path / 'reviews.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return ReviewStore(get_session_factory(engine))


@pytest.fixture
def words(store):
    """Three words, in insertion order."""
    return [store.add_word(w, translation=t) for w, t in [("casa", "house"), ("perro", "dog"), ("gato", "cat")]]


@pytest.fixture
def service(store, clock):
    selector = DueSetSelector(store, recency_window=50, clock=clock)
    seen_counter = SeenCounter(lambda key: store.increment_seen(*key), window=0.05)
    svc = SchedulerService(store, selector, seen_counter, clock=clock)
    yield svc
    svc.close()
