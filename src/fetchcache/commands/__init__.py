"""Built-in CLI sub-commands for fetchcache.

* :mod:`~fetchcache.commands.cache` -- ``run`` (batch simulation from an
  input file) and ``load`` (ad-hoc loads).
* :mod:`~fetchcache.commands.config` -- view and modify global settings.

Single commands are plain callbacks registered on the root app; command
groups export a :class:`typer.Typer` sub-application.
"""
