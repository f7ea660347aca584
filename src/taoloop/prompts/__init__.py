"""System prompt templates.

Templates are plain text files with ``str.format`` placeholders. A file of
the same name in ``$TAOLOOP_PROMPTS_DIR`` or in ``./prompts`` overrides the
template shipped with the package.
"""

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path

PROMPTS_DIR_ENV = "TAOLOOP_PROMPTS_DIR"


def _override_dirs() -> list[Path]:
    dirs = []
    env_dir = os.getenv(PROMPTS_DIR_ENV)
    if env_dir:
        dirs.append(Path(env_dir))
    dirs.append(Path.cwd() / "prompts")
    return dirs


@lru_cache(maxsize=16)
def load_prompt(name: str) -> str:
    """Load the template ``{name}.txt``, preferring user overrides.

    Raises:
        FileNotFoundError: If neither an override nor a packaged template exists
    """
    filename = f"{name}.txt"
    searched = []

    for directory in _override_dirs():
        candidate = directory / filename
        if candidate.is_file():
            return candidate.read_text(encoding="utf-8")
        searched.append(str(candidate))

    packaged = resources.files(__name__).joinpath(filename)
    if packaged.is_file():
        return packaged.read_text(encoding="utf-8")

    raise FileNotFoundError(
        f"Prompt template '{name}' not found in: {', '.join(searched)} or the taoloop package"
    )


def get_system_prompt() -> str:
    """Raw Think/Act/Observe template with a {tools_description} placeholder."""
    return load_prompt("system")


def render_system_prompt(tools_description: str, template: str | None = None) -> str:
    """Fill the tool list into a system prompt template.

    An empty tool list renders as "None" so the model knows it has no tools.
    """
    return (template or get_system_prompt()).format(
        tools_description=tools_description or "None"
    )


def clear_cache() -> None:
    """Forget loaded templates, e.g. after editing an override file."""
    load_prompt.cache_clear()


__all__ = [
    "PROMPTS_DIR_ENV",
    "load_prompt",
    "get_system_prompt",
    "render_system_prompt",
    "clear_cache",
]
