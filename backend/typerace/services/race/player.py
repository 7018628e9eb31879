from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional

from .scoring import compute_wpm, rank_players

if TYPE_CHECKING:
    from .machine import GameStateMachine

log = logging.getLogger(__name__)


class PlayerState:
    """One joined participant's progress in the race.

    Created on join and destroyed on leave. Listens on its own ``view_id``
    topic for ``set-initials``, ``set-avatar`` and ``typed-word``.
    """

    def __init__(self, view_id: str, machine: GameStateMachine):
        self.view_id = view_id
        self.machine = machine
        self.initials = ''
        self.avatar_url = ''
        self.score = 0
        self.index = 0
        self.progress = 0.0
        self.wpm = 0

        runtime = machine.runtime
        runtime.subscribe(view_id, 'set-initials', self.set_initials)
        runtime.subscribe(view_id, 'set-avatar', self.set_avatar)
        runtime.subscribe(view_id, 'typed-word', self.typed_word)

    def destroy(self) -> None:
        runtime = self.machine.runtime
        runtime.unsubscribe(self.view_id, 'set-initials', self.set_initials)
        runtime.unsubscribe(self.view_id, 'set-avatar', self.set_avatar)
        runtime.unsubscribe(self.view_id, 'typed-word', self.typed_word)

    def _publish_update(self) -> None:
        self.machine.runtime.publish('view', 'update')

    def set_avatar(self, url: str) -> None:
        if self.avatar_url == url:
            return
        self.avatar_url = url
        self._publish_update()

    def set_initials(self, initials: str) -> None:
        if not initials or self.initials == initials:
            return

        # first holder of a name keeps it; later claims are dropped quietly
        for other in self.machine.players.values():
            if other is not self and other.initials == initials:
                log.info(f"[initials-taken] session={self.machine.session_id} view={self.view_id} name={initials}")
                return

        self.initials = initials
        best = self.machine.highscores.get(initials, 0)
        if self.score > best:
            self.machine.set_highscore(initials, self.score)
        self._publish_update()

    def typed_word(self, correct: bool) -> None:
        if not self.machine.started:
            return

        total = len(self.machine.words)
        if correct and not self.is_completed():
            self.score += 1
            self.index += 1
            if self.index >= total:
                self.progress = 100.0
            else:
                self.progress = min(self.score / total * 100, 100.0)

        self.update_wpm()
        self._publish_update()

    def update_wpm(self) -> None:
        self.wpm = compute_wpm(self.score, self.machine.time_limit, self.machine.time_left)

    def reset(self) -> None:
        self.score = 0
        self.progress = 0.0
        self.index = 0
        self.wpm = 0
        self._publish_update()

    def is_completed(self) -> bool:
        return self.index >= len(self.machine.words)

    def completion_percentage(self) -> int:
        return int(self.progress + 0.5)

    def current_word(self) -> Optional[str]:
        if self.index < len(self.machine.words):
            return self.machine.words[self.index]
        return None

    def rank(self) -> int:
        ranked = rank_players(self.machine.players.values())
        return ranked.index(self) + 1

    def to_dict(self) -> Dict:
        return {
            'id': self.view_id,
            'initials': self.initials,
            'avatar_url': self.avatar_url,
            'score': self.score,
            'index': self.index,
            'progress': self.progress,
            'wpm': self.wpm,
            'completed': self.is_completed(),
            'current_word': self.current_word(),
            'rank': self.rank(),
        }

    def __repr__(self):
        return f"PlayerState(id={self.view_id}, initials={self.initials!r}, score={self.score})"
