"""Jinja2 prompt templates under blogagent/prompts/."""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"


def render_prompt(template_name: str, **kwargs) -> str:
    env = Environment(loader=FileSystemLoader(str(PROMPTS_DIR)), trim_blocks=True, lstrip_blocks=True)
    return env.get_template(template_name).render(**kwargs).strip()
