"""Built-in CLI commands for kubeconnect.

* :mod:`~kubeconnect.commands.contexts` -- list kubeconfig contexts.
* :mod:`~kubeconnect.commands.resolve` -- show resolved connection options.
* :mod:`~kubeconnect.commands.credential` -- print the current credential.
* :mod:`~kubeconnect.commands.get` -- authenticated GET request.
* :mod:`~kubeconnect.commands.config` -- view and modify user settings.

Single commands export a callback registered on the root app; the
``config`` group exports a :class:`typer.Typer` sub-application.
"""
