from pathlib import Path
from typing import Any, Mapping, Optional

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, PackageLoader, select_autoescape

STATIC_DIR = Path(__file__).parent / 'static'


def create_environment(template_dir: Optional[str] = None) -> Environment:
    """Build the Jinja2 environment; templates found in `template_dir` override the bundled ones."""
    loaders = [PackageLoader('alchemy_admin', 'templates')]
    if template_dir:
        loaders.insert(0, FileSystemLoader(str(template_dir)))
    return Environment(
        loader=ChoiceLoader(loaders),
        autoescape=select_autoescape(['html']),
        trim_blocks=True,
        lstrip_blocks=True,
    )


_env: Optional[Environment] = None


def get_environment() -> Environment:
    """Get the shared Jinja2 environment (lazy singleton)."""
    global _env
    if _env is None:
        _env = create_environment()
    return _env


def render(env: Environment, name: str, context: Mapping[str, Any]) -> str:
    return env.get_template(name).render(**context)
