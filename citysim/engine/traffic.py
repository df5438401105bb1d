"""
Reference Traffic Engine
========================
Event-driven stand-in for the micro-simulation.

- Walk and bike trips travel at the map's free-flow speed for their mode
- Drive trips are slowed by the BPR volume-delay curve over active drivers
- Transit riders walk to a stop, wait for the next bus on their route, ride,
  and finish when they alight
- Buses share the road with cars unless their route has a bus lane

Every departing trip draws exactly one jitter value from the engine's stream,
so the draw sequence depends only on the departure schedule.
"""

from __future__ import annotations

import heapq
from typing import Any, Dict, List, Sequence, Tuple

from citysim.clock import Duration, Tick
from citysim.config import EngineConfig
from citysim.rng import RandomStream
from citysim.world.map import MapConfig
from citysim.world.trips import BusSegment, TripMode, TripRecord, TripRequest

DEPART = "depart"
REACH_STOP = "reach_stop"
FINISH = "finish"
BUS_AT_STOP = "bus_at_stop"

Event = Tuple[int, int, str, tuple]


class TrafficEngine:
    def __init__(
        self,
        map_cfg: MapConfig,
        trips: Sequence[TripRequest],
        rng: RandomStream,
        config: EngineConfig | None = None,
        *,
        schedule: bool = True,
    ) -> None:
        self.map = map_cfg
        self.config = config or EngineConfig()
        self.rng = rng
        self.time = Tick.zero()
        self._trips: Dict[int, TripRequest] = {trip.trip_id: trip for trip in trips}
        if len(self._trips) != len(trips):
            raise ValueError("trip ids must be unique")
        self._events: List[Event] = []
        self._seq = 0
        self._active_drivers = 0
        self._waiting: Dict[str, List[List[int]]] = {
            route.name: [[] for _ in range(route.n_stops)] for route in map_cfg.bus_routes
        }
        self._onboard: Dict[int, List[int]] = {}
        self._finished: List[TripRecord] = []
        self._segments: List[BusSegment] = []
        if schedule:
            self._schedule_initial()

    @property
    def map_name(self) -> str:
        return self.map.name

    def _schedule_initial(self) -> None:
        for trip in sorted(self._trips.values(), key=lambda t: (t.depart, t.trip_id)):
            self._push(trip.depart, DEPART, (trip.trip_id,))
        bus_id = 0
        for route in self.map.bus_routes:
            for departure in route.departures():
                self._push(departure, BUS_AT_STOP, (route.name, bus_id, 0, -1))
                bus_id += 1

    def _push(self, at: Tick, kind: str, payload: tuple) -> None:
        heapq.heappush(self._events, (at.ticks, self._seq, kind, payload))
        self._seq += 1

    def step(self, duration: Duration) -> None:
        if duration.ticks < 0:
            raise ValueError(f"Can't step backwards by {duration}")
        target = self.time + duration
        while self._events and self._events[0][0] <= target.ticks:
            at, _, kind, payload = heapq.heappop(self._events)
            self.time = Tick(at)
            if kind == DEPART:
                self._depart(payload[0])
            elif kind == REACH_STOP:
                self._reach_stop(payload[0])
            elif kind == FINISH:
                self._finish(payload[0])
            elif kind == BUS_AT_STOP:
                self._bus_at_stop(*payload)
            else:
                raise ValueError(f"Unknown event kind {kind!r}")
        self.time = target

    def is_done(self) -> bool:
        return not self._events

    def finished_trips(self) -> Sequence[TripRecord]:
        return self._finished

    def bus_segments(self) -> Sequence[BusSegment]:
        return self._segments

    def unfinished_trips(self) -> int:
        return len(self._trips) - len(self._finished)

    def total_trips(self) -> int:
        return len(self._trips)

    def _congestion(self) -> float:
        ratio = self._active_drivers / self.map.road_capacity
        return 1.0 + self.config.bpr_alpha * ratio ** self.config.bpr_beta

    def _jitter(self) -> float:
        return 1.0 + self.rng.uniform(-self.config.jitter, self.config.jitter)

    def _travel(self, seconds: float) -> Duration:
        return Duration(max(1, Duration.seconds(seconds).ticks))

    def _depart(self, trip_id: int) -> None:
        trip = self._trips[trip_id]
        jitter = self._jitter()
        if trip.mode is TripMode.TRANSIT:
            walk = self.map.access_distance_m / self.map.speed(TripMode.WALK)
            self._push(self.time + self._travel(walk * jitter), REACH_STOP, (trip_id,))
            return
        seconds = trip.distance_m / self.map.speed(trip.mode)
        if trip.mode is TripMode.DRIVE:
            self._active_drivers += 1
            seconds *= self._congestion()
        self._push(self.time + self._travel(seconds * jitter), FINISH, (trip_id,))

    def _reach_stop(self, trip_id: int) -> None:
        trip = self._trips[trip_id]
        self._waiting[trip.route][trip.board_stop].append(trip_id)

    def _finish(self, trip_id: int) -> None:
        trip = self._trips[trip_id]
        if trip.mode is TripMode.DRIVE:
            self._active_drivers -= 1
        self._finished.append(TripRecord(trip.agent_id, trip.mode, self.time - trip.depart))

    def _bus_at_stop(self, route_name: str, bus_id: int, stop: int, prev_arrival: int) -> None:
        route = self.map.route(route_name)
        if prev_arrival >= 0:
            self._segments.append(BusSegment(route_name, bus_id, stop - 1, Duration(self.time.ticks - prev_arrival)))

        riders = self._onboard.pop(bus_id, [])
        staying = []
        for trip_id in riders:
            if self._trips[trip_id].alight_stop == stop:
                self._finish(trip_id)
            else:
                staying.append(trip_id)
        if stop == route.n_stops - 1:
            return

        boarding = self._waiting[route_name][stop]
        self._waiting[route_name][stop] = []
        staying.extend(boarding)
        self._onboard[bus_id] = staying

        seconds = self.config.bus_dwell_seconds + self.config.bus_boarding_seconds * len(boarding)
        travel = route.stop_spacing_m[stop] / route.speed_mps
        if not route.bus_lane:
            travel *= self._congestion()
        arrival = self.time + self._travel(seconds + travel)
        self._push(arrival, BUS_AT_STOP, (route_name, bus_id, stop + 1, self.time.ticks))

    def to_state(self) -> Dict[str, Any]:
        return {
            "map": self.map.model_dump(mode="json"),
            "config": self.config.model_dump(mode="json"),
            "time": self.time.ticks,
            "rng": {
                "seed": self.rng.seed,
                "deterministic": self.rng.deterministic,
                "state": self.rng.get_state(),
            },
            "trips": [trip.to_dict() for trip in self._trips.values()],
            "events": [[at, seq, kind, list(payload)] for at, seq, kind, payload in self._events],
            "seq": self._seq,
            "active_drivers": self._active_drivers,
            "waiting": self._waiting,
            "onboard": {str(bus_id): riders for bus_id, riders in self._onboard.items()},
            "finished": [record.to_dict() for record in self._finished],
            "segments": [segment.to_dict() for segment in self._segments],
        }

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> TrafficEngine:
        rng = RandomStream(state["rng"]["seed"], deterministic=state["rng"]["deterministic"])
        rng.set_state(state["rng"]["state"])
        engine = cls(
            MapConfig.model_validate(state["map"]),
            [TripRequest.from_dict(trip) for trip in state["trips"]],
            rng,
            EngineConfig.model_validate(state["config"]),
            schedule=False,
        )
        engine.time = Tick(int(state["time"]))
        engine._events = [(int(at), int(seq), kind, tuple(payload)) for at, seq, kind, payload in state["events"]]
        heapq.heapify(engine._events)
        engine._seq = int(state["seq"])
        engine._active_drivers = int(state["active_drivers"])
        engine._waiting = {route: [list(stop) for stop in stops] for route, stops in state["waiting"].items()}
        engine._onboard = {int(bus_id): list(riders) for bus_id, riders in state["onboard"].items()}
        engine._finished = [TripRecord.from_dict(record) for record in state["finished"]]
        engine._segments = [BusSegment.from_dict(segment) for segment in state["segments"]]
        return engine
