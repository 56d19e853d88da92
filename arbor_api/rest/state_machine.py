"""State machine for one paginated fetch."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class PagedFetchState(str, Enum):
    """State of a paginated fetch.

    - INIT: Not yet started
    - CACHE_CHECK: Looking up the aggregate cache
    - FETCH_FIRST_PAGE: Requesting page 1
    - DETERMINE_PAGE_COUNT: Reading links.last from page 1
    - FETCH_REMAINING_PAGES: Requesting pages 2..N
    - ASSEMBLE: Ordering page results and collecting failures
    - CACHE_WRITE: Storing a complete aggregate
    - RETURN: Done (complete, or served from cache)
    - RETURN_WITHOUT_CACHE: Done without caching (partial or caching off)
    - ABORTED: Failed on page 1, paging metadata or cancellation
    """

    INIT = "INIT"
    CACHE_CHECK = "CACHE_CHECK"
    FETCH_FIRST_PAGE = "FETCH_FIRST_PAGE"
    DETERMINE_PAGE_COUNT = "DETERMINE_PAGE_COUNT"
    FETCH_REMAINING_PAGES = "FETCH_REMAINING_PAGES"
    ASSEMBLE = "ASSEMBLE"
    CACHE_WRITE = "CACHE_WRITE"
    RETURN = "RETURN"
    RETURN_WITHOUT_CACHE = "RETURN_WITHOUT_CACHE"
    ABORTED = "ABORTED"


_VALID_TRANSITIONS: dict[PagedFetchState, set[PagedFetchState]] = {
    PagedFetchState.INIT: {PagedFetchState.CACHE_CHECK},
    PagedFetchState.CACHE_CHECK: {
        PagedFetchState.FETCH_FIRST_PAGE,
        PagedFetchState.RETURN,
    },
    PagedFetchState.FETCH_FIRST_PAGE: {
        PagedFetchState.DETERMINE_PAGE_COUNT,
        PagedFetchState.ABORTED,
    },
    PagedFetchState.DETERMINE_PAGE_COUNT: {
        PagedFetchState.FETCH_REMAINING_PAGES,
        PagedFetchState.ABORTED,
    },
    PagedFetchState.FETCH_REMAINING_PAGES: {
        PagedFetchState.ASSEMBLE,
        PagedFetchState.ABORTED,
    },
    PagedFetchState.ASSEMBLE: {
        PagedFetchState.CACHE_WRITE,
        PagedFetchState.RETURN_WITHOUT_CACHE,
    },
    PagedFetchState.CACHE_WRITE: {PagedFetchState.RETURN},
    PagedFetchState.RETURN: set(),  # Terminal state
    PagedFetchState.RETURN_WITHOUT_CACHE: set(),  # Terminal state
    PagedFetchState.ABORTED: set(),  # Terminal state
}

_TERMINAL_STATES = frozenset(
    {
        PagedFetchState.RETURN,
        PagedFetchState.RETURN_WITHOUT_CACHE,
        PagedFetchState.ABORTED,
    }
)


class PagedFetchTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        endpoint: str,
        from_state: PagedFetchState,
        to_state: PagedFetchState,
    ) -> None:
        """Initialize the transition error.

        Args:
            endpoint: Endpoint being fetched.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.endpoint = endpoint
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal state transition for fetch of '{endpoint}': "
            f"{from_state.value} -> {to_state.value}"
        )


class PagedFetchStateMachine:
    """Tracks one ``fetch_all`` call through its states.

    Enforces valid transitions and logs all state changes.
    """

    def __init__(
        self,
        endpoint: str,
        initial_state: PagedFetchState = PagedFetchState.INIT,
    ) -> None:
        """Initialize the state machine.

        Args:
            endpoint: Endpoint being fetched.
            initial_state: Starting state.
        """
        self._endpoint = endpoint
        self._state = initial_state
        self._history: list[PagedFetchState] = [initial_state]
        self._log = logger.bind(component="rest", endpoint=endpoint)

    @property
    def state(self) -> PagedFetchState:
        """Get the current state."""
        return self._state

    @property
    def history(self) -> list[PagedFetchState]:
        """Get every state visited, in order."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in _TERMINAL_STATES

    def can_transition_to(self, target: PagedFetchState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: PagedFetchState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            PagedFetchTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise PagedFetchTransitionError(self._endpoint, self._state, target)

        old_state = self._state
        self._state = target
        self._history.append(target)

        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def abort(self) -> None:
        """Transition to ABORTED when the current state allows it."""
        if self.can_transition_to(PagedFetchState.ABORTED):
            self.transition_to(PagedFetchState.ABORTED)
