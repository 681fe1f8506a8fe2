"""Configuration commands for entity graph CLI."""

from cyclopts import App

from entity_graph.config import DEFAULTS, get_config

config_app = App(name="config", help="Manage configuration")


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a configuration setting.

    Args:
        key: Configuration key, e.g. backend or sqlite.path
        value: Configuration value
        global_: If True, set in global config. If False, set in local config.
    """
    if key not in DEFAULTS:
        print(f"Warning: {key} is not a known setting")
    config = get_config(use_global=global_)
    config.set(key, value)
    scope = "global" if global_ else "local"
    print(f"Set {key} = {value} ({scope})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Unset a configuration setting."""
    config = get_config(use_global=global_)
    config.unset(key)
    scope = "global" if global_ else "local"
    print(f"Unset {key} ({scope})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Get the effective value of a configuration setting, defaults included."""
    config = get_config(use_global=global_)
    value = config.get(key)
    if value is None:
        print(f"{key} is not set")
    else:
        print(f"{key} = {value}")


@config_app.command(name="list")
def list_config(global_: bool = False, defaults: bool = False) -> None:
    """List configuration settings.

    Args:
        global_: If True, list global config only. If False, list merged config.
        defaults: Also show built-in defaults for keys that are not set.
    """
    config = get_config(use_global=global_)
    settings = config.list()
    if defaults:
        settings = {**DEFAULTS, **settings}

    if not settings:
        scope = "global" if global_ else "local"
        print(f"No {scope} configuration settings")
        return

    scope = "Global" if global_ else "Configuration"
    print(f"{scope} settings:\n")
    for key, value in settings.items():
        print(f"{key} = {value}")
