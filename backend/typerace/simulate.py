"""Scripted races on a logical runtime, used by ``flask simulate-race``."""

import random
from typing import Any, Dict

from typerace.services.race import GameStateMachine, LogicalRuntime


def simulate_race(players: int = 2, seed: int = 0, theme: str = 'tech', time_limit: int = 30,
                  accuracy: float = 0.8, sentence_length: int = 30) -> Dict[str, Any]:
    runtime = LogicalRuntime(seed=seed)
    machine = GameStateMachine(runtime, session_id=f"sim-{seed}")
    machine.initialize({
        'theme': theme,
        'timeLimit': time_limit,
        'sentenceLength': sentence_length,
        'maxPlayers': max(players, 1),
    })

    # typing behaviour has its own stream so it never perturbs the shared one
    script = random.Random(seed)
    view_ids = [f"view-{i + 1}" for i in range(players)]
    for i, view_id in enumerate(view_ids):
        runtime.join(view_id)
        runtime.publish(view_id, 'set-initials', f"P{i + 1}")

    runtime.publish('game', 'start')
    while machine.started:
        for view_id in view_ids:
            for _ in range(script.randint(0, 2)):
                runtime.publish(view_id, 'typed-word', script.random() < accuracy)
        runtime.advance(machine.timings.tick_ms)
    runtime.run_until_idle()

    return machine.get_game_state()
