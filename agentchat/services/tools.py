"""Tool resolution for the pydantic-ai agent service.

``AGENT__TOOLS`` lists tools as dotted import paths, either
``package.module:function`` or ``package.module.function``. Resolved
functions are registered on every agent; the ones named in
``AGENT__APPROVAL_TOOLS`` pause the turn for a human decision.
"""

import importlib
from typing import Any, Callable

from loguru import logger


def _split_path(path: str) -> tuple[str, str]:
    if ":" in path:
        module_path, _, attr = path.partition(":")
    else:
        module_path, _, attr = path.rpartition(".")
    return module_path.strip(), attr.strip()


def resolve_tool(path: str) -> Callable[..., Any] | None:
    """Import one tool. Returns None (and logs) when it cannot be loaded."""
    module_path, attr = _split_path(path)
    if not module_path or not attr:
        logger.warning(f"Tool path '{path}' must look like 'package.module:function'")
        return None
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        logger.warning(f"Tool module '{module_path}' could not be imported: {e}")
        return None

    tool = getattr(module, attr, None)
    if tool is None:
        logger.warning(f"Tool '{attr}' not found in {module_path}")
        return None
    if not callable(tool):
        logger.warning(f"Tool '{path}' is not callable")
        return None
    return tool


def resolve_tools(paths: list[str]) -> list[Callable[..., Any]]:
    """Resolve tool paths in order, skipping any that fail to load."""
    resolved = []
    for path in paths:
        tool = resolve_tool(path)
        if tool is not None:
            resolved.append(tool)
    if paths:
        logger.info(f"Resolved {len(resolved)}/{len(paths)} agent tools")
    return resolved
