class CancellationToken:
    """
    A pollable cancellation flag shared by the sub-providers of one request.

    Cancellation is cooperative: setting the flag never interrupts work, it
    only tells long-running loops to stop and return no result.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
