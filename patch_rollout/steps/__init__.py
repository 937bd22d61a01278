from __future__ import annotations

from .discover import DiscoverRepos
from .finish import FinishRollout
from .init import InitRollout
from .next_repo import NextRepo
from .process_repo import ProcessRepo

__all__ = [
    "DiscoverRepos",
    "FinishRollout",
    "InitRollout",
    "NextRepo",
    "ProcessRepo",
]
