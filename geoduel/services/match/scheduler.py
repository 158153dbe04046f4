import threading
from typing import Callable


class ScheduledTask:
    """Handle for a delayed callback that can be cancelled before it fires."""

    def __init__(self, name: str):
        self.name = name
        self._cancelled = threading.Event()
        self.fired = False

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


class BackgroundScheduler:
    """Runs delayed and periodic work on Socket.IO background tasks.

    - Sleeps with ``socketio.sleep`` so the async mode's event loop keeps
      serving other sockets during the delay
    - Each callback runs inside an app context
    - ``inline=True`` runs callbacks immediately on the calling thread, for
      deterministic tests
    """

    def __init__(self, socketio, app, inline: bool = False):
        self._socketio = socketio
        self._app = app
        self.inline = inline

    def schedule(self, delay_sec: float, fn: Callable, *args, name: str = 'task') -> ScheduledTask:
        task = ScheduledTask(name)
        self._app.logger.info(f"[timer-set] task={name} delay={delay_sec}s")

        def _worker():
            if delay_sec and delay_sec > 0:
                self._socketio.sleep(delay_sec)
            if task.cancelled:
                self._app.logger.info(f"[timer-abort] task={name} cancelled")
                return
            task.fired = True
            self._app.logger.info(f"[timer-fire] task={name}")
            with self._app.app_context():
                fn(*args)

        if self.inline:
            _worker()
        else:
            self._socketio.start_background_task(_worker)
        return task

    def start_periodic(self, interval_sec: float, fn: Callable, name: str = 'periodic') -> ScheduledTask:
        """Call ``fn`` every ``interval_sec`` until the returned task is cancelled.

        No-op in inline mode.
        """
        task = ScheduledTask(name)
        if self.inline or not interval_sec or interval_sec <= 0:
            return task

        def _loop():
            while not task.cancelled:
                self._socketio.sleep(interval_sec)
                if task.cancelled:
                    return
                try:
                    with self._app.app_context():
                        fn()
                except Exception:
                    self._app.logger.exception(f"[periodic-error] task={name}")

        self._socketio.start_background_task(_loop)
        return task
