"""Built-in CLI sub-commands for mxrequest.

* :mod:`~mxrequest.commands.api` -- ``call``, ``whoami``, ``sync``, ``login``.
* :mod:`~mxrequest.commands.profile` -- add, list, show, and remove profiles.
* :mod:`~mxrequest.commands.config` -- view and modify global settings.

Multi-command groups export a :class:`typer.Typer` sub-application; single
commands are plain callbacks registered directly on the root app.
"""
