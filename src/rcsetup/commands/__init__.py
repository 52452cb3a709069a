"""Built-in CLI commands for rcsetup.

* :mod:`~rcsetup.commands.init` -- write a starter setup file.
* :mod:`~rcsetup.commands.validate` -- check a setup file offline.
* :mod:`~rcsetup.commands.provision` -- create everything the setup file
  declares.

Each module exports a plain callback function registered directly on the
root app. Commands report :class:`~rcsetup.exceptions.RcsetupError`
failures through :func:`exit_on_error`, which prints the message and exits
with the error's code.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer

from rcsetup.exceptions import RcsetupError, UserCancelled
from rcsetup.output import error, warning


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Turn an :class:`RcsetupError` into a printed message and ``typer.Exit``.

    :class:`UserCancelled` is printed as a warning and exits with code 0.
    """
    try:
        yield
    except UserCancelled as exc:
        warning(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    except RcsetupError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
