import json

from citysim.clock import Duration, Tick
from citysim.driver import run_until_done
from citysim.engine.base import SimulationEngine
from citysim.engine.traffic import TrafficEngine
from citysim.rng import RandomStream
from citysim.world.trips import BusSegment, TripMode, TripRecord, TripRequest


def test_walk_trip_takes_free_flow_time(tiny_map, still_config):
    trips = [TripRequest(0, 10, TripMode.WALK, Tick.from_seconds(5), 100.0)]
    engine = TrafficEngine(tiny_map, trips, RandomStream.seeded(1), still_config)
    assert isinstance(engine, SimulationEngine)
    run_until_done(engine)
    assert engine.finished_trips()[0] == TripRecord(10, TripMode.WALK, Duration.seconds(100))
    assert engine.unfinished_trips() == 0


def test_drivers_slow_each_other_down(tiny_map, still_config):
    trips = [
        TripRequest(0, 0, TripMode.DRIVE, Tick.zero(), 1000.0),
        TripRequest(1, 1, TripMode.DRIVE, Tick.zero(), 1000.0),
    ]
    engine = TrafficEngine(tiny_map, trips, RandomStream.seeded(1), still_config)
    run_until_done(engine)
    durations = {r.agent_id: r.duration for r in engine.finished_trips()}
    assert durations[0] == Duration.seconds(115)
    assert durations[1] == Duration.seconds(340)


def test_transit_rider_boards_and_alights(tiny_map, still_config):
    trips = [TripRequest(0, 0, TripMode.TRANSIT, Tick.zero(), 200.0, "1", 0, 2)]
    engine = TrafficEngine(tiny_map, trips, RandomStream.seeded(1), still_config)
    run_until_done(engine)
    assert engine.finished_trips() == [TripRecord(0, TripMode.TRANSIT, Duration.seconds(113))]
    assert list(engine.bus_segments()) == [
        BusSegment("1", 0, 0, Duration.seconds(28)),
        BusSegment("1", 0, 1, Duration.seconds(25)),
    ]


def test_rider_who_misses_the_last_bus_never_finishes(tiny_map, still_config):
    trips = [TripRequest(0, 0, TripMode.TRANSIT, Tick.parse("00:02:00"), 200.0, "1", 0, 2)]
    engine = TrafficEngine(tiny_map, trips, RandomStream.seeded(1), still_config)
    result = run_until_done(engine)
    assert result.completed
    assert engine.is_done()
    assert engine.unfinished_trips() == 1
    assert len(result.ledger) == 0


def test_step_lands_on_target_time(tiny_map):
    engine = TrafficEngine(tiny_map, [], RandomStream.seeded(1))
    engine.step(Duration.seconds(12.3))
    assert engine.time == Tick(123)


def test_state_round_trip_resumes_identically(tiny_map):
    trips = [
        TripRequest(i, i, mode, Tick.from_seconds(7 * i), 300.0 + 50 * i)
        for i, mode in enumerate([TripMode.DRIVE, TripMode.BIKE, TripMode.WALK, TripMode.DRIVE])
    ]
    trips.append(TripRequest(4, 4, TripMode.TRANSIT, Tick.zero(), 100.0, "1", 0, 1))
    running = TrafficEngine(tiny_map, trips, RandomStream.seeded(3))
    running.step(Duration.seconds(20))

    restored = TrafficEngine.from_state(json.loads(json.dumps(running.to_state())))
    assert restored.time == running.time
    assert restored.to_state() == running.to_state()

    run_until_done(running)
    run_until_done(restored)
    assert list(restored.finished_trips()) == list(running.finished_trips())
    assert list(restored.bus_segments()) == list(running.bus_segments())
