from dataclasses import dataclass

from shared.application.message_bus import MessageBus
from shared.application.uow import InMemoryUnitOfWork
from shared.domain.base import Aggregate, DomainEvent


@dataclass(kw_only=True)
class Pinged(DomainEvent):
    name = "pinged"


@dataclass(kw_only=True, eq=False)
class Counter(Aggregate):
    value: int = 0

    def ping(self):
        self.value += 1
        self.add_event(Pinged(aggregate_id=self.id))


def test_handlers_receive_events_and_failures_do_not_stop_others():
    bus = MessageBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.register_event_handler(Pinged, broken)
    bus.register_event_handler(Pinged, received.append)

    event = Pinged()
    bus.publish_events([event])

    assert received == [event]


def test_registering_the_same_handler_twice_is_a_no_op():
    bus = MessageBus()
    bus.register_event_handler(Pinged, print)
    bus.register_event_handler(Pinged, print)

    assert bus.handlers_for(Pinged) == [print]


def test_unit_of_work_publishes_on_commit():
    bus = MessageBus()
    received = []
    bus.register_event_handler(Pinged, received.append)
    counter = Counter()

    with InMemoryUnitOfWork(bus) as uow:
        counter.ping()
        uow.collect_events(counter)
        assert received == []

    assert len(received) == 1
    assert received[0].aggregate_id == counter.id
    assert counter.events == []


def test_unit_of_work_drops_events_on_error():
    bus = MessageBus()
    received = []
    bus.register_event_handler(Pinged, received.append)
    counter = Counter()

    try:
        with InMemoryUnitOfWork(bus) as uow:
            counter.ping()
            uow.collect_events(counter)
            raise ValueError("abort")
    except ValueError:
        pass

    assert received == []
