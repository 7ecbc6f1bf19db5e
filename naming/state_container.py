"""Single-writer state container with copy-on-write updates and change listeners."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

StateListener = Callable[[dict[str, Any], dict[str, Any]], None]


@dataclass(frozen=True)
class StateFieldMetadata:
    """How a top-level state field is treated by snapshots.

    `persist` fields go into the persisted snapshot; `anonymous` fields are safe
    to include in anonymized exports.
    """

    persist: bool
    anonymous: bool


class StateContainer:
    def __init__(
        self,
        *,
        name: str,
        metadata: dict[str, StateFieldMetadata],
        state: dict[str, Any],
    ) -> None:
        unknown = sorted(set(state) - set(metadata))
        if unknown:
            raise ValueError(f"{name}: no metadata for state fields {unknown}")
        self.name = name
        self.metadata = dict(metadata)
        self._state: dict[str, Any] = copy.deepcopy(state)
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> dict[str, Any]:
        return copy.deepcopy(self._state)

    def update(self, callback: Callable[[dict[str, Any]], None]) -> None:
        """Apply `callback` to a draft copy of the state and publish the result.

        The live state is only replaced once the callback returns, so an exception
        inside it leaves the visible state untouched.
        """
        draft = copy.deepcopy(self._state)
        callback(draft)
        previous, self._state = self._state, draft
        self._publish(previous)

    def subscribe(self, listener: StateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> bool:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    def _publish(self, previous: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state, copy.deepcopy(previous))
            except Exception:
                logger.exception("%s state listener failed listener=%r", self.name, listener)

    def _filtered_state(self, predicate: Callable[[StateFieldMetadata], bool]) -> dict[str, Any]:
        return {
            key: copy.deepcopy(value)
            for key, value in self._state.items()
            if predicate(self.metadata[key])
        }

    def get_persistent_state(self) -> dict[str, Any]:
        return self._filtered_state(lambda meta: meta.persist)

    def get_anonymized_state(self) -> dict[str, Any]:
        return self._filtered_state(lambda meta: meta.anonymous)
