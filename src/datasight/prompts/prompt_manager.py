import logging
from functools import lru_cache

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from src.datasight.config import ROOT_DIR

logger = logging.getLogger(__name__)


class PromptManager:
    """
    Manages loading and rendering of Jinja2 prompt templates.
    """
    def __init__(self, template_dir=None):
        """Initializes the PromptManager."""
        template_dir = template_dir or ROOT_DIR / "src" / "datasight" / "prompts" / "templates"
        if not template_dir.exists():
            logger.error("Prompt template directory not found at: %s", template_dir)
            raise FileNotFoundError(f"Prompt template directory not found: {template_dir}")

        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(),
            undefined=StrictUndefined,
        )
        logger.info("PromptManager initialized from %s", template_dir)

    def render(self, template_name: str, **kwargs) -> str:
        """
        Renders a prompt template with the given context.

        Args:
            template_name: The name of the template file (e.g., 'system_prompt.jinja2').
            **kwargs: The context variables to pass to the template.

        Returns:
            The rendered prompt string.
        """
        try:
            template = self.env.get_template(template_name)
            return template.render(**kwargs)
        except Exception as e:
            logger.error("Failed to render prompt template '%s': %s", template_name, e, exc_info=True)
            raise


@lru_cache(maxsize=1)
def get_prompt_manager() -> PromptManager:
    return PromptManager()
