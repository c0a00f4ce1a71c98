"""Gymna assistant using Google Gemini for workout and diet advice."""
import logging
import os
import threading

import httpx
from dotenv import load_dotenv
from google import genai
from google.genai import errors, types
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from gymna_backend.modules.errors import ServiceConfigurationError
from gymna_backend.modules.history_sanitizer import to_gemini_contents

logger = logging.getLogger(__name__)

load_dotenv()

DEFAULT_CHAT_MODEL = "gemini-2.5-flash"
DEFAULT_PLAN_MODEL = "gemini-2.0-flash"

SYSTEM_PROMPT = (
    "You are Gymna, an expert AI personal trainer and nutritionist. "
    "You provide detailed workout and diet plans in markdown format. "
    "When asked for a plan, use tables where appropriate. "
    "Be encouraging, professional, and concise.\n\n"
)

# One retry on network trouble or a 5xx from Gemini. 4xx errors are not retried.
TRANSIENT_ERRORS = (errors.ServerError, httpx.TransportError)
MAX_ATTEMPTS = 2


class GymnaBot:
    def __init__(self, api_key=None, chat_model=None, plan_model=None, timeout_seconds=None):
        self._api_key = api_key
        self.chat_model = chat_model or os.getenv("GYMNA_MODEL", DEFAULT_CHAT_MODEL)
        self.plan_model = plan_model or os.getenv("GYMNA_PLAN_MODEL", DEFAULT_PLAN_MODEL)
        self.timeout_seconds = timeout_seconds or float(os.getenv("GYMNA_TIMEOUT_SECONDS", "60"))
        self._client = None
        self._client_lock = threading.Lock()

    @property
    def api_key(self):
        # Read per call: a missing key is a request-time error, not a startup one.
        return self._api_key or os.getenv("GEMINI_API_KEY")

    @property
    def is_configured(self):
        return bool(self.api_key)

    def _get_client(self):
        if not self.is_configured:
            logger.error("GEMINI_API_KEY is missing")
            raise ServiceConfigurationError()
        if self._client is None:
            # The bot is shared across threadpool workers.
            with self._client_lock:
                if self._client is None:
                    self._client = genai.Client(
                        api_key=self.api_key,
                        http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
                    )
        return self._client

    def _retrying(self):
        return Retrying(
            reraise=True,
            stop=stop_after_attempt(MAX_ATTEMPTS),
            wait=wait_exponential(multiplier=0.5, max=4),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
        )

    def reply(self, history, content, model_id=None):
        """
        Send `content` on top of a sanitized `history` and return the reply text.

        Args:
            history: list of HistoryTurn, already alternating
            content: the new user message
            model_id: overrides the chat model (plan generation uses plan_model)
        """
        client = self._get_client()
        model_id = model_id or self.chat_model

        for attempt in self._retrying():
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning("Retrying Gemini call (attempt %s)", attempt.retry_state.attempt_number)
                chat = client.chats.create(
                    model=model_id,
                    history=to_gemini_contents(history),
                )
                response = chat.send_message(content)

        text = response.text
        if not text:
            raise ValueError("Empty response from model")
        return text
