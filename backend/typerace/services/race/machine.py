"""The replicated typing-race state machine.

Every replica builds a ``GameStateMachine`` on its own runtime and feeds it
the same ordered events; all mutation happens synchronously inside event
handlers, and every deferred callback re-checks its guard when it fires
because there is no way to cancel one.

How the room agrees on settings is delegated to a strategy:

- ``StandaloneSettings``: settings come from ``initialize`` or, if nobody
  supplied any, the session defaults are locked in shortly after the first
  player joins.
- ``NegotiatedSettings``: the host replica carries a handoff payload and
  broadcasts it on ``room/sync-settings``; guest replicas play on temporary
  defaults until the broadcast arrives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .player import PlayerState
from .runtime import SESSION_TOPIC, VIEW_EXIT, VIEW_JOIN
from .scoring import leaderboard
from .settings import DEFAULT_SETTINGS, GUEST_DEFAULTS, RoomSettings, coerce_partial
from .words import generate_words, shuffle

log = logging.getLogger(__name__)


@dataclass
class Timings:
    tick_ms: int = 1000
    settings_check_ms: int = 500
    broadcast_ms: int = 1000
    rebroadcast_ms: int = 500
    throttle_ms: int = 100

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'Timings':
        return cls(
            tick_ms=int(config.get('TICK_INTERVAL_MS', 1000)),
            settings_check_ms=int(config.get('SETTINGS_CHECK_DELAY_MS', 500)),
            broadcast_ms=int(config.get('SETTINGS_BROADCAST_DELAY_MS', 1000)),
            rebroadcast_ms=int(config.get('SETTINGS_REBROADCAST_DELAY_MS', 500)),
            throttle_ms=int(config.get('VIEW_UPDATE_THROTTLE_MS', 100)),
        )


class StandaloneSettings:
    name = 'standalone'

    def before_initialize(self, machine: GameStateMachine) -> None:
        pass

    def after_initialize(self, machine: GameStateMachine) -> None:
        pass

    def after_join(self, machine: GameStateMachine, view_id: str) -> None:
        pass

    def settings_timeout(self, machine: GameStateMachine) -> None:
        # defaults were applied in initialize; only the flag is missing
        log.info(f"[settings-fallback] session={machine.session_id} keeping session defaults")
        machine.settings_initialized = True


class NegotiatedSettings:
    """Host/guest settings handoff.

    ``handoff`` is the settings payload the host agreed on before the session
    existed; it is passed in at session creation instead of living in shared
    global state. A replica created without one is a guest.
    """

    name = 'negotiated'

    def __init__(self, handoff: Optional[Mapping[str, Any]] = None):
        self.handoff = handoff
        self.canonical: Optional[Dict[str, Any]] = None
        self.machine: Optional[GameStateMachine] = None

    @property
    def is_host(self) -> bool:
        return bool(coerce_partial(self.handoff))

    def before_initialize(self, machine: GameStateMachine) -> None:
        # subscribe first so a broadcast can never slip past us
        self.machine = machine
        machine.runtime.subscribe('room', 'sync-settings', self.sync_settings)

    def after_initialize(self, machine: GameStateMachine) -> None:
        if machine.settings_initialized:
            self.canonical = machine.current_settings()
            return

        if self.is_host:
            settings = _settings_payload(self.handoff)
            log.info(f"[host-settings] session={machine.session_id} settings={settings}")
            machine.apply_settings(settings)
            machine.settings_initialized = True
            self.canonical = settings
            machine.runtime.after(machine.timings.broadcast_ms, lambda: self.broadcast(settings))
        else:
            log.info(f"[guest-wait] session={machine.session_id} using temporary defaults")
            machine.apply_settings(GUEST_DEFAULTS.to_payload())

    def broadcast(self, settings: Dict[str, Any]) -> None:
        runtime = self.machine.runtime
        log.info(f"[broadcast-settings] session={self.machine.session_id}")
        runtime.publish('room', 'sync-settings', settings)
        runtime.publish('view', 'update')

    def sync_settings(self, settings: Optional[Mapping[str, Any]]) -> None:
        if not settings:
            return
        machine = self.machine
        received = _settings_payload(settings)
        if machine.settings_initialized:
            # settings are fixed for the session once agreed
            if self._matches_canonical(received):
                log.debug(f"[sync-skip] session={machine.session_id} settings unchanged")
            else:
                log.info(f"[sync-ignored] session={machine.session_id} settings={received} already initialized")
            return

        log.info(f"[sync-settings] session={machine.session_id} settings={received}")
        machine.apply_settings(received)
        machine.settings_initialized = True
        self.canonical = received
        machine.runtime.publish('view', 'update')

    def after_join(self, machine: GameStateMachine, view_id: str) -> None:
        if self.canonical is None or len(machine.players) <= 1:
            return
        settings = self.canonical
        machine.runtime.after(machine.timings.rebroadcast_ms, lambda: self.broadcast(settings))

    def settings_timeout(self, machine: GameStateMachine) -> None:
        # guests keep their temporary defaults until the host's broadcast lands
        log.info(f"[guest-wait] session={machine.session_id} still waiting for host settings")

    def _matches_canonical(self, settings: Dict[str, Any]) -> bool:
        if self.canonical is None:
            return False
        return coerce_partial(settings) == coerce_partial(self.canonical)


def _settings_payload(settings: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalise a settings mapping to wire keys, keeping only usable fields."""
    partial = coerce_partial(settings)
    fields = RoomSettings.model_fields
    return {(fields[name].alias or name): value for name, value in partial.items()}


class GameStateMachine:

    def __init__(self, runtime, strategy=None, timings: Optional[Timings] = None, session_id: str = ''):
        self.runtime = runtime
        self.strategy = strategy or StandaloneSettings()
        self.timings = timings or Timings()
        self.session_id = session_id

        self.words = []
        self.custom_words: Optional[List[str]] = None
        self.players: Dict[str, PlayerState] = {}
        self.started = False
        self.theme = DEFAULT_SETTINGS.theme
        self.sentence_length = DEFAULT_SETTINGS.sentence_length
        self.time_limit = DEFAULT_SETTINGS.time_limit
        self.max_players = DEFAULT_SETTINGS.max_players
        self.time_left = self.time_limit
        self.highscores: Dict[str, int] = {}
        self.settings_initialized = False
        self.tick_scheduled = False

        self._initialized = False
        self._round = 0
        self._last_view_update: Optional[int] = None
        self._view_update_pending = False

    def initialize(self, room_settings: Optional[Mapping[str, Any]] = None) -> 'GameStateMachine':
        if self._initialized:
            log.warning(f"[init-skip] session={self.session_id} already initialized")
            return self
        self._initialized = True

        self.strategy.before_initialize(self)

        runtime = self.runtime
        runtime.subscribe('room', 'initialize-settings', self.initialize_settings)
        runtime.subscribe('game', 'start', self.start_game)
        runtime.subscribe('game', 'reset', self.reset_game)
        runtime.subscribe(SESSION_TOPIC, VIEW_JOIN, self.handle_join)
        runtime.subscribe(SESSION_TOPIC, VIEW_EXIT, self.handle_leave)

        self.set_default_settings()
        if coerce_partial(room_settings):
            self.apply_settings(room_settings)
            self.settings_initialized = True

        self.players = {}
        self.started = False
        self.time_left = self.time_limit
        self.highscores = {}

        self.strategy.after_initialize(self)
        log.info(
            f"[init] session={self.session_id} strategy={self.strategy.name} "
            f"theme={self.theme} words={len(self.words)} time_limit={self.time_limit}"
        )
        return self

    # settings
    def set_default_settings(self) -> None:
        self.theme = DEFAULT_SETTINGS.theme
        self.sentence_length = DEFAULT_SETTINGS.sentence_length
        self.time_limit = DEFAULT_SETTINGS.time_limit
        self.max_players = DEFAULT_SETTINGS.max_players
        self.custom_words = None
        self.words = generate_words(self.sentence_length, self.theme)
        shuffle(self.words, self.runtime.random)

    def initialize_settings(self, settings: Optional[Mapping[str, Any]]) -> None:
        if self.settings_initialized:
            log.debug(f"[init-settings-skip] session={self.session_id} already initialized")
            return
        self.apply_settings(settings)
        self.settings_initialized = True
        self.throttled_view_update()

    def apply_settings(self, settings: Optional[Mapping[str, Any]]) -> None:
        """Merge present fields over the current settings and rebuild the words."""
        partial = coerce_partial(settings)
        if 'theme' in partial:
            self.theme = partial['theme']
        if 'sentence_length' in partial:
            self.sentence_length = partial['sentence_length']
        if 'time_limit' in partial:
            self.time_limit = partial['time_limit']
        if 'max_players' in partial:
            requested = partial['max_players']
            if requested < len(self.players):
                log.warning(
                    f"[capacity-clamp] session={self.session_id} requested={requested} "
                    f"players={len(self.players)}"
                )
                requested = len(self.players)
            self.max_players = requested

        words = partial.get('words')
        if words:
            self.custom_words = list(words)
            self.words = list(words)
        else:
            self.custom_words = None
            self.words = generate_words(self.sentence_length, self.theme)

        shuffle(self.words, self.runtime.random)
        self.time_left = self.time_limit

    def current_settings(self) -> Dict[str, Any]:
        return {
            'sentenceLength': self.sentence_length,
            'timeLimit': self.time_limit,
            'maxPlayers': self.max_players,
            'theme': self.theme,
            'words': list(self.custom_words or []),
        }

    # membership
    def handle_join(self, view_id: str) -> None:
        if view_id in self.players:
            log.info(f"[join-skip] session={self.session_id} view={view_id} already joined")
            return

        if len(self.players) >= self.max_players:
            log.info(f"[room-full] session={self.session_id} view={view_id} max={self.max_players}")
            self.runtime.publish(view_id, 'room-full')
            return

        self.players[view_id] = PlayerState(view_id, self)
        log.info(f"[join] session={self.session_id} view={view_id} players={len(self.players)}")

        if len(self.players) == 1:
            self.runtime.after(self.timings.settings_check_ms, self.check_settings_initialized)

        self.strategy.after_join(self, view_id)
        self.throttled_view_update()

    def check_settings_initialized(self) -> None:
        if self.settings_initialized:
            return
        self.strategy.settings_timeout(self)
        if self.settings_initialized:
            self.throttled_view_update()

    def handle_leave(self, view_id: str) -> None:
        player = self.players.pop(view_id, None)
        if player is not None:
            player.destroy()
            log.info(f"[leave] session={self.session_id} view={view_id} players={len(self.players)}")
        self.throttled_view_update()

    def get_player(self, view_id: str) -> Optional[PlayerState]:
        return self.players.get(view_id)

    # round lifecycle
    def start_game(self) -> None:
        if self.started:
            return

        self.started = True
        self._round += 1
        self.time_left = self.time_limit
        for player in self.players.values():
            player.reset()

        shuffle(self.words, self.runtime.random)
        self.schedule_next_tick()
        log.info(f"[start] session={self.session_id} round={self._round} time_limit={self.time_limit}")
        self.runtime.publish('view', 'update')

    def reset_game(self) -> None:
        self.started = False
        self._round += 1
        self.time_left = self.time_limit
        self.tick_scheduled = False
        for player in self.players.values():
            player.reset()

        shuffle(self.words, self.runtime.random)
        log.info(f"[reset] session={self.session_id}")
        self.runtime.publish('view', 'update')

    def schedule_next_tick(self) -> None:
        if self.tick_scheduled:
            return
        self.tick_scheduled = True
        expected_round = self._round
        self.runtime.after(self.timings.tick_ms, lambda: self._fire_tick(expected_round))

    def _fire_tick(self, expected_round: int) -> None:
        # a tick queued before a reset belongs to a round that no longer exists
        if expected_round != self._round:
            log.debug(f"[tick-stale] session={self.session_id} round={expected_round} current={self._round}")
            return
        self.tick()

    def tick(self) -> None:
        self.tick_scheduled = False
        if not self.started:
            return

        self.time_left = max(0, self.time_left - 1)
        self.runtime.publish('view', 'update')

        if self.time_left > 0:
            self.schedule_next_tick()
            return

        self.started = False
        log.info(f"[finish] session={self.session_id} round={self._round}")
        for player in self.players.values():
            if player.initials:
                self.set_highscore(player.initials, player.score)
        self.runtime.publish('view', 'update')

    def set_highscore(self, initials: str, score: int) -> None:
        best = self.highscores.get(initials)
        if best is not None and best >= score:
            return
        self.highscores[initials] = score
        log.info(f"[highscore] session={self.session_id} initials={initials} score={score}")
        self.runtime.publish('view', 'update')
        self.runtime.publish('view', 'new-highscore', {'initials': initials, 'score': score})

    # notifications
    def throttled_view_update(self) -> None:
        """Coalesce bursts of updates; the last one in a window always lands."""
        now = self.runtime.now()
        window = self.timings.throttle_ms
        if self._last_view_update is None or now - self._last_view_update >= window:
            self._last_view_update = now
            self.runtime.publish('view', 'update')
            return
        if self._view_update_pending:
            return
        self._view_update_pending = True
        self.runtime.after(self._last_view_update + window - now, self._flush_view_update)

    def _flush_view_update(self) -> None:
        self._view_update_pending = False
        self._last_view_update = self.runtime.now()
        self.runtime.publish('view', 'update')

    # snapshot
    def get_game_state(self) -> Dict[str, Any]:
        return {
            'started': self.started,
            'time_left': self.time_left,
            'time_limit': self.time_limit,
            'theme': self.theme,
            'sentence_length': self.sentence_length,
            'max_players': self.max_players,
            'player_count': len(self.players),
            'words': list(self.words),
            'highscores': dict(self.highscores),
            'settings_initialized': self.settings_initialized,
            'players': [p.to_dict() for p in self.players.values()],
            'leaderboard': leaderboard(self.players.values()),
        }
