import logging

import openai

from domain.aopenai import DEFAULT_MODEL, MAX_TOKENS, json_chat
from domain.models import Recipe, RecipeForm
from domain.prompts import CreateRecipePrompt, recipe_request


logger = logging.getLogger(__name__)


class RecipeGenerationError(Exception):
    pass


class LLMService:
    def __init__(
        self,
        openai_client: openai.AsyncClient | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = MAX_TOKENS,
    ) -> None:
        self.openai_client = (
            openai.AsyncClient() if openai_client is None else openai_client
        )
        self.model = model
        self.max_tokens = max_tokens
        self.prompt = CreateRecipePrompt()

    async def generate_recipe(self, form: RecipeForm) -> Recipe:
        """Recipe plus categorised shopping list. Not retried, the user resubmits."""
        msg = recipe_request(form.dish_name, form.people_count, form.restrictions)
        try:
            data = await json_chat(
                str(self.prompt),
                msg,
                openai_client=self.openai_client,
                model=self.model,
                max_tokens=self.max_tokens,
            )
            return Recipe.from_dict(data)
        except (openai.OpenAIError, ValueError, KeyError, TypeError) as e:
            logger.exception("Recipe generation failed for %r", form.dish_name)
            raise RecipeGenerationError(
                "Failed to generate recipe. Please try again."
            ) from e
