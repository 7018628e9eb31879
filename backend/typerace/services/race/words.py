"""Themed word banks and the replica-safe shuffle."""

from typing import Callable, Dict, List, MutableSequence

MAX_WORDS = 40
DEFAULT_THEME = 'general'

WORD_BANKS: Dict[str, List[str]] = {
    'tech': [
        'blockchain', 'decentralized', 'smart', 'contract', 'crypto',
        'wallet', 'DAO', 'NFT', 'dApp', 'token', 'ledger', 'protocol',
        'consensus', 'mining', 'staking',
    ],
    'network': [
        'sync', 'real', 'time', 'multi', 'player', 'react', 'model', 'view',
        'event', 'publish', 'subscribe', 'session', 'client', 'server',
        'network', 'peer', 'node', 'distributed', 'replica',
    ],
    'chain': [
        'evm', 'layer1', 'block', 'finality', 'parallel', 'tps',
        'transaction', 'validator', 'state', 'consensus', 'execution',
        'decentralized', 'security', 'ethereum', 'storage', 'rollup',
    ],
    'web3': [
        'web3', 'wallet', 'smart', 'contract', 'dapp', 'eth', 'crypto',
        'address', 'gas', 'token', 'sign', 'dao', 'blockchain', 'open',
        'ledger', 'decentralized', 'identity', 'metamask', 'key',
    ],
    'general': [
        'quick', 'brown', 'fox', 'jumps', 'over', 'lazy', 'dog', 'pack',
        'type', 'fast', 'speed', 'word', 'text', 'key', 'board', 'finger',
    ],
}

# 'random' is offered to players but has no bank of its own
THEMES = tuple(WORD_BANKS) + ('random',)


def generate_words(max_length: int, theme: str) -> List[str]:
    """Pick the bank for ``theme`` and bound it by ``max_length``.

    Words longer than ``max_length`` characters are dropped, then the list is
    cut to ``min(max_length, MAX_WORDS)`` entries. Bank order is preserved;
    callers shuffle afterwards.
    """
    bank = WORD_BANKS.get(theme) or WORD_BANKS[DEFAULT_THEME]
    words = [w for w in bank if len(w) <= max_length]
    return words[:min(max_length, MAX_WORDS)]


def shuffle(seq: MutableSequence[str], random: Callable[[], float]) -> None:
    """Fisher-Yates in place using the runtime's shared random stream."""
    for i in range(len(seq) - 1, 0, -1):
        j = int(random() * (i + 1))
        seq[i], seq[j] = seq[j], seq[i]
