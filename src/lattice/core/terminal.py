"""Terminal ownership for handing control to interactive external tools.

The UI holds the terminal in raw mode on the alternate screen. Before an
interactive program such as `jj resolve` can run, the terminal must be given
back in its normal state, and it must be taken again afterwards no matter how
the program ended.
"""

import logging
import sys
import termios
import tty
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

logger = logging.getLogger(__name__)

ENTER_ALTERNATE_SCREEN = "\x1b[?1049h"
LEAVE_ALTERNATE_SCREEN = "\x1b[?1049l"
HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"
CLEAR_SCREEN = "\x1b[2J\x1b[H"


class TerminalError(OSError):
    """The terminal could not be released or restored."""


class Terminal(ABC):
    """Abstract terminal that can be released to a child process."""

    @abstractmethod
    def release(self) -> None:
        """Leave raw mode and the alternate screen, show the cursor."""
        ...

    @abstractmethod
    def restore(self) -> None:
        """Re-enter raw mode and the alternate screen, clear for a full redraw."""
        ...

    @contextmanager
    def suspended(self) -> Iterator[None]:
        """Release the terminal for the duration of the block.

        restore() runs on every exit path, including when release() itself
        fails part way or the block raises because the program could not be
        started.
        """
        try:
            self.release()
            yield
        finally:
            self.restore()


class RealTerminal(Terminal):
    """Terminal backed by a tty file descriptor.

    Release and restore only act while the UI is active; a CLI command that
    never entered the UI can still use suspended() safely.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._saved_attributes: list | None = None
        self._ui_active = False
        self._suspended = False

    @property
    def ui_active(self) -> bool:
        return self._ui_active

    def _fd(self) -> int | None:
        if not self._stream.isatty():
            return None
        return self._stream.fileno()

    def enter_ui(self) -> None:
        fd = self._fd()
        try:
            if fd is not None:
                self._saved_attributes = termios.tcgetattr(fd)
                tty.setraw(fd)
            self._stream.write(ENTER_ALTERNATE_SCREEN + HIDE_CURSOR + CLEAR_SCREEN)
            self._stream.flush()
        except (termios.error, OSError) as e:
            raise TerminalError(f"Failed to enter terminal UI mode: {e}") from e
        self._ui_active = True

    def exit_ui(self) -> None:
        fd = self._fd()
        try:
            if fd is not None and self._saved_attributes is not None:
                termios.tcsetattr(fd, termios.TCSADRAIN, self._saved_attributes)
            self._stream.write(SHOW_CURSOR + LEAVE_ALTERNATE_SCREEN)
            self._stream.flush()
        except (termios.error, OSError) as e:
            raise TerminalError(f"Failed to leave terminal UI mode: {e}") from e
        finally:
            self._ui_active = False

    def release(self) -> None:
        if not self._ui_active:
            return
        logger.debug("Releasing terminal")
        self._suspended = True
        self.exit_ui()

    def restore(self) -> None:
        if not self._suspended:
            return
        logger.debug("Restoring terminal")
        self._suspended = False
        self.enter_ui()
