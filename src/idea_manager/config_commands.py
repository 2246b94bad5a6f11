"""Configuration commands for idea manager CLI."""

from cyclopts import App

from idea_manager.config import DEFAULTS, get_config

config_app = App(name="config", help="Manage configuration")

# Keys holding credentials are masked when printed.
_SECRET_KEYS = ("session.cookies",)


def _display(key: str, value: object) -> str:
    return "<hidden>" if key in _SECRET_KEYS else str(value)


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a configuration setting.

    Args:
        key: Configuration key, e.g. api.base_url
        value: Configuration value
        global_: If True, set in global config. If False, set in local config.
    """
    config = get_config(use_global=global_)
    config.set(key, value)
    scope = "global" if global_ else "local"
    print(f"Set {key} = {_display(key, value)} ({scope})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Unset a configuration setting.

    Args:
        key: Configuration key
        global_: If True, unset from global config. If False, unset from local config.
    """
    config = get_config(use_global=global_)
    config.unset(key)
    scope = "global" if global_ else "local"
    print(f"Unset {key} ({scope})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Get the value of a configuration setting and where it comes from.

    Args:
        key: Configuration key
        global_: If True, read the global config only.
    """
    config = get_config(use_global=global_)
    source = config.source(key)
    if source is None:
        print(f"{key} is not set")
        return
    print(f"{key} = {_display(key, config.get(key))} ({source})")


@config_app.command(name="list")
def list_config(global_: bool = False, defaults: bool = True) -> None:
    """List configuration settings with their source.

    Args:
        global_: If True, list global config only. If False, list merged config.
        defaults: Also list built-in defaults that nothing overrides.
    """
    config = get_config(use_global=global_)
    keys = list(config.list())
    if defaults:
        keys += [key for key in DEFAULTS if key not in keys]

    if not keys:
        scope = "global" if global_ else "local"
        print(f"No {scope} configuration settings")
        return

    print("Settings:\n")
    width = max(len(key) for key in keys)
    for key in keys:
        print(f"{key:<{width}} = {_display(key, config.get(key))} ({config.source(key)})")
