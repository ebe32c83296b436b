"""``kubeconnect contexts`` -- list the contexts in the kubeconfig."""

from __future__ import annotations

import typer

from kubeconnect.output import get_output


def contexts_command(ctx: typer.Context) -> None:
    """List contexts, marking the current one.

    Example::

        kubeconnect contexts
        kubeconnect --kubeconfig ./admin.conf contexts --json
    """
    from kubeconnect.loader import load_document

    document = load_document(ctx.obj.get("kubeconfig"))
    output = get_output()
    if not document.contexts:
        output.info("The kubeconfig defines no contexts.")
        return

    rows = [
        [
            "*" if entry.name == document.current_context else "",
            entry.name,
            entry.context.cluster,
            entry.context.user,
            entry.context.namespace or "",
        ]
        for entry in document.contexts
    ]
    output.print_table(["CURRENT", "NAME", "CLUSTER", "USER", "NAMESPACE"], rows, title="Contexts")
