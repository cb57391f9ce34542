"""Built-in CLI sub-commands for offsync.

* :mod:`~offsync.commands.queue` -- ``status``, ``actions``, ``requests``,
  ``sync``, ``clear`` and ``cleanup``, registered directly on the root app.
* :mod:`~offsync.commands.cache` -- the ``cache`` group (``clear``, ``stats``).
* :mod:`~offsync.commands.config` -- the ``config`` group (``show``, ``set``,
  ``reset``).
"""
