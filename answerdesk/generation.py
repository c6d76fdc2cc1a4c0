"""Generation gateway over the OpenAI-compatible chat completions API."""

from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from .config import config
from .errors import EmptyInputError, GenerationError, UpstreamTimeoutError

logger = config.get_logger(__name__)


class GenerationService:
    """Sends a single prompt to the chat model and returns its raw text."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the GenerationService.

        Args:
            api_key: Provider API key. If None, read from the environment.
            model: Chat model name. If None, uses config.CHAT_MODEL.
            client: Preconfigured OpenAI client, mainly for tests.
        """
        if client is None:
            default_headers = config.get_api_headers()
            client = OpenAI(
                api_key=api_key or config.get_openai_api_key(),
                base_url=config.OPENAI_BASE_URL,
                default_headers=default_headers or None,
                timeout=config.GENERATION_TIMEOUT,
                max_retries=config.GENERATION_MAX_RETRIES,
            )
        self.client = client
        self.model = model or config.CHAT_MODEL

    def generate(self, prompt: str) -> str:
        """Run the prompt through the chat model.

        Returns:
            str: The model output, stripped; empty if the model sent nothing.

        Raises:
            EmptyInputError: If the prompt is blank.
            UpstreamTimeoutError: If the call timed out after retries.
            GenerationError: On non-success status or transport failure.
        """
        prompt = (prompt or "").strip()
        if not prompt:
            msg = "Prompt is required"
            raise EmptyInputError(msg)

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=config.CHAT_MAX_TOKENS,
                temperature=config.CHAT_TEMPERATURE,
                top_p=config.CHAT_TOP_P,
            )
        except APITimeoutError as e:
            logger.exception("Generation request timed out")
            msg = "Generation model timed out"
            raise UpstreamTimeoutError(msg, upstream_message=str(e)) from e
        except APIStatusError as e:
            logger.exception("Generation model returned status %s", e.status_code)
            msg = "Failed to generate text"
            raise GenerationError(
                msg, upstream_status=e.status_code, upstream_message=e.message
            ) from e
        except APIConnectionError as e:
            logger.exception("Generation model unreachable")
            msg = "Generation model unreachable"
            raise GenerationError(msg, upstream_message=str(e)) from e

        try:
            output = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            msg = "Malformed generation response"
            raise GenerationError(msg, upstream_message=repr(response)) from e

        output = output.strip() if output else ""
        logger.info("Generated %d chars with %s", len(output), self.model)
        return output
