"""
Cosmetic progress spinner for long pipeline stages.

The spinner runs on its own thread and stops when a one-shot event is set.
Anything that goes wrong while rendering is logged and swallowed so the
pipeline outcome never depends on the terminal.
"""

import threading
from typing import Optional

from rich.console import Console

from .logging import ETLLogger


class ProgressIndicator:
    """Spinner shown while a blocking stage runs.

    Usage:
        with ProgressIndicator("Descargando Base de Datos...DGII"):
            download()
    """

    def __init__(
        self,
        message: str,
        enabled: bool = True,
        console: Optional[Console] = None,
        logger: Optional[ETLLogger] = None,
    ):
        self.message = message
        self.enabled = enabled
        self.console = console
        self.logger = logger or ETLLogger(name='rnc.progress', log_to_file=False)
        self.failed = False
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _run(self) -> None:
        try:
            console = self.console or Console(stderr=True)
            with console.status(self.message, spinner='dots'):
                self._done.wait()
        except Exception as e:
            self.failed = True
            self.logger.warning(f"Progress indicator stopped: {e}")

    def start(self) -> None:
        if not self.enabled or self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run,
            name='rnc-progress',
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._done.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def __enter__(self) -> 'ProgressIndicator':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
