import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from sitepaths.models import ModuleConfig

logger = logging.getLogger(__name__)

# All functions in this service take a `session: Session` argument and leave
# committing to the caller.


def get_module_config(session: Session, module_name: str) -> Dict[str, Any]:
    """Returns the persisted configuration of a module, {} when there is none."""
    config = session.get(ModuleConfig, module_name)
    if config is None:
        return {}
    return dict(config.data or {})


def save_module_config(session: Session, module_name: str, data: Dict[str, Any]) -> None:
    """Replaces the persisted configuration of a module."""
    config = session.get(ModuleConfig, module_name)
    if config is None:
        session.add(ModuleConfig(module_name=module_name, data=dict(data)))
    else:
        # Reassign so the JSON column is flagged dirty.
        config.data = dict(data)
    session.flush()
    logger.debug(f"Saved module config for '{module_name}' ({len(data)} keys).")


def update_module_config(session: Session, module_name: str, **values: Any) -> Dict[str, Any]:
    """Merges ``values`` into a module's configuration and returns the result."""
    data = get_module_config(session, module_name)
    data.update(values)
    save_module_config(session, module_name, data)
    return data
