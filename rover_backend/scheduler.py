"""Cancellable scheduled-task queue on a virtual clock.

Tick cadence, replay cadence and damage-flash reverts are all tasks on one
of these queues, so stopping a run cancels everything still pending.
"""
import heapq
import itertools


class ScheduledTask:
    """Handle for a pending callback."""

    __slots__ = ('due', 'seq', 'fn', 'args', 'cancelled', 'done')

    def __init__(self, due, seq, fn, args):
        self.due = due
        self.seq = seq
        self.fn = fn
        self.args = args
        self.cancelled = False
        self.done = False

    def __lt__(self, other):
        return (self.due, self.seq) < (other.due, other.seq)

    @property
    def pending(self):
        return not (self.cancelled or self.done)

    def cancel(self):
        self.cancelled = True


class TaskScheduler:
    """Deterministic queue; time only moves when ``advance``/``run_until_idle`` is called.

    Tasks due at the same time run in the order they were scheduled.
    """

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()

    def call_later(self, delay, fn, *args):
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        task = ScheduledTask(self.now + delay, next(self._seq), fn, args)
        heapq.heappush(self._queue, task)
        return task

    def cancel(self, task):
        if task is not None:
            task.cancel()

    def cancel_all(self):
        for task in self._queue:
            task.cancel()
        self._queue = []

    def pending(self):
        return [task for task in sorted(self._queue) if task.pending]

    def _run_next(self, limit):
        while self._queue and not self._queue[0].pending:
            heapq.heappop(self._queue)
        if not self._queue or self._queue[0].due > limit:
            return False
        task = heapq.heappop(self._queue)
        self.now = max(self.now, task.due)
        task.done = True
        task.fn(*task.args)
        return True

    def advance(self, seconds):
        """Run every task due within ``seconds`` from now, then move the clock."""
        target = self.now + seconds
        while self._run_next(target):
            pass
        self.now = target

    def run_until_idle(self, max_time=None):
        """Run tasks until the queue is empty (or the clock would pass ``max_time``)."""
        limit = float('inf') if max_time is None else max_time
        count = 0
        while self._run_next(limit):
            count += 1
        return count
