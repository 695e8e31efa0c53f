"""
Reconcile a user's local vote selection with the toggle-only vote API.

The backend has no "set my selection" call, only a toggle per
(user, option). Sending the symmetric difference between what the user held
when the vote was loaded and what they hold at submit time brings the server
to the new selection with one call per changed option.
"""
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Set
from jeongchongmu.core.exceptions import EmptyVoteSelectionError, StaleVoteSessionError, VoteClosedError
from jeongchongmu.schemas.vote import Vote


@dataclass(frozen=True)
class VoteDelta:
    """Options the user newly selected and newly deselected."""
    added: FrozenSet[int]
    removed: FrozenSet[int]

    @property
    def to_toggle(self) -> FrozenSet[int]:
        return self.added | self.removed

    def __len__(self) -> int:
        return len(self.added) + len(self.removed)

    def __bool__(self) -> bool:
        return bool(self.added or self.removed)


def compute_vote_delta(original: Iterable[int], current: Iterable[int]) -> VoteDelta:
    """Options to toggle so the server moves from original to current."""
    original_ids = frozenset(original)
    current_ids = frozenset(current)
    return VoteDelta(added=current_ids - original_ids, removed=original_ids - current_ids)


class VoteEditSession:
    """
    One user's edits to a vote between loading its status and submitting.

    `original` is captured once from the loaded status and only replaced by
    commit() after a successful submit. A failed submit leaves some toggles
    applied on the server, so the session is marked stale and must be
    rebuilt from a fresh vote status.
    """

    def __init__(self, vote: Vote, user_id: int):
        self.vote = vote
        self.user_id = user_id
        self._original: FrozenSet[int] = vote.options_voted_by(user_id)
        self._selected: Set[int] = set(self._original)
        self._option_ids = frozenset(option.option_id for option in vote.options)
        self.stale = False

    @property
    def expense_id(self) -> int:
        return self.vote.expense_id

    @property
    def original(self) -> FrozenSet[int]:
        return self._original

    @property
    def selected(self) -> FrozenSet[int]:
        return frozenset(self._selected)

    @property
    def is_dirty(self) -> bool:
        return self._selected != self._original

    def _check_editable(self) -> None:
        if self.vote.is_closed:
            raise VoteClosedError("The vote is closed.")
        if self.stale:
            raise StaleVoteSessionError(self.expense_id)

    def toggle(self, option_id: int) -> bool:
        """Flip one option locally. Returns whether it is now selected."""
        self._check_editable()
        if option_id not in self._option_ids:
            raise ValueError(f"option {option_id} is not part of vote {self.vote.vote_id}")
        if option_id in self._selected:
            self._selected.discard(option_id)
            return False
        self._selected.add(option_id)
        return True

    def select(self, option_ids: Iterable[int]) -> None:
        """Replace the local selection."""
        self._check_editable()
        option_ids = set(option_ids)
        unknown = option_ids - self._option_ids
        if unknown:
            raise ValueError(f"options {sorted(unknown)} are not part of vote {self.vote.vote_id}")
        self._selected = option_ids

    def delta(self) -> VoteDelta:
        """Toggles needed to submit the current selection."""
        self._check_editable()
        if not self._selected:
            raise EmptyVoteSelectionError()
        return compute_vote_delta(self._original, self._selected)

    def commit(self) -> None:
        """Record a successful submit: the current selection is the new baseline."""
        self._original = frozenset(self._selected)

    def mark_stale(self) -> None:
        self.stale = True
