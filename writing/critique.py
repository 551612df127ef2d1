"""Editorial critique of a full article draft."""
from utils.logger import setup_logger
from extraction.models import ChatMessage, DraftPiece
from ingestion.models import VideoMetadata
from execution.api_clients import BaseChatClient
from writing import prompts
import config

logger = setup_logger(__name__)


class CritiqueStage:
    """Asks the feedback model for a structured review of the v1 draft.

    The review is opaque Markdown; it is handed to the revision prompts as-is.
    """

    def __init__(self, client: BaseChatClient, model: str, max_tokens: int = 2500):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def get_draft_feedback(
        self,
        article_title: str,
        video: VideoMetadata,
        draft_markdown: str
    ) -> DraftPiece:
        messages = [
            ChatMessage(role="system", content=prompts.critique_system_prompt()),
            ChatMessage(role="user", content=prompts.critique_prompt(article_title, video, draft_markdown)),
        ]
        result = await self.client.chat_complete(
            self.model,
            messages,
            temperature=config.FEEDBACK_TEMPERATURE,
            max_tokens=self.max_tokens,
        )
        logger.info(f"Received draft critique ({len(result.content)} chars)")
        return DraftPiece(content=result.content.strip(), usage=result.usage)
