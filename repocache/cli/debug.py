import click

from .utils.logging import configure_logging


def _set_debug(ctx, param, value):
    root = ctx.find_root()
    root.ensure_object(dict)
    # `repocache --debug clone ...` and `repocache clone --debug ...` are equivalent
    debug = bool(value) or root.obj.get("DEBUG", False)
    root.obj["DEBUG"] = debug
    configure_logging(debug)


debug_option = click.option(
    "--debug",
    is_flag=True,
    is_eager=True,
    expose_value=False,
    callback=_set_debug,
    help="Log every git command that runs.",
)
