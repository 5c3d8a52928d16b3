"""Initializes the prompts module and aggregates prompts from all submodules."""

from .generation import get_prompts as get_generation_prompts


def get_prompts() -> dict[str, str]:
    """
    Returns a dictionary of all available prompts from all prompt files.
    """
    prompts = {}
    prompts.update(get_generation_prompts())
    return prompts
