"""
Chat Service

Turns a natural-language operation into a bound ffmpeg command: asks the
selected provider for a placeholder command and binds it to the session's
current input file and a fresh output path.
"""
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from constants import ChatDefaults
from exceptions import InputFileError, ProviderError, ValidationError
from services.command_template import (
    SYSTEM_PROMPT,
    CommandTemplate,
    build_operation_message,
    generate_output_filename,
    parse_provider_response,
)
from services.interfaces import IProviderChat
from services.providers import get_provider
from services.session_tracker import ExecutionSessionTracker

logger = logging.getLogger(__name__)


class ChatService:
    """
    Usage:
        chat = ChatService(session_tracker)
        reply = await chat.generate_command(session_id=sid, provider="openai", operation="make it grayscale")
    """

    def __init__(
        self,
        tracker: ExecutionSessionTracker,
        provider_factory: Callable[[str], IProviderChat] = get_provider,
        system_prompt: Optional[str] = None,
    ):
        self.tracker = tracker
        self.provider_factory = provider_factory
        self.system_prompt = system_prompt or SYSTEM_PROMPT

    def _messages(self, history: List[Dict[str, str]], user_message: str) -> List[Dict[str, str]]:
        messages = [m for m in history if m.get("role") and m.get("content") is not None]
        if not messages or messages[0]["role"] != "system":
            messages.insert(0, {"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": user_message})
        return messages

    async def generate_command(
        self,
        *,
        session_id: str,
        provider: str,
        operation: str,
        history: Optional[List[Dict[str, str]]] = None,
        region: Optional[str] = None,
        model: Optional[str] = None,
    ) -> dict:
        """
        Ask the provider for a command and bind it.

        The session input file is not advanced here; only a successful
        execution does that.

        Returns:
            {"response", "isStructured": True, "parsedResponse", "executableResponse"}
            or {"response", "parseError": True} when the reply is unusable

        Raises:
            ValidationError: Unknown or unconfigured provider, empty operation
            InputFileError: The session has no input file
            ProviderError: The provider call failed
        """
        if not operation or not operation.strip():
            raise ValidationError("No operation provided")

        chat_client = self.provider_factory(provider)
        if not chat_client.is_configured():
            raise ValidationError(f"{provider} is not properly configured")

        input_file = self.tracker.get_current_input_file(session_id)
        if not input_file:
            raise InputFileError("No input file set for this session", session_id=session_id)

        user_message = build_operation_message(Path(input_file).name, operation, region)
        options = {"temperature": ChatDefaults.TEMPERATURE, "max_tokens": ChatDefaults.MAX_TOKENS}
        if model:
            options["model"] = model

        logger.info(f"Requesting command from {provider} for session {session_id}")
        reply = await chat_client.chat(self._messages(history or [], user_message), options)
        logger.debug(f"Raw {provider} response: {reply}")

        try:
            parsed = parse_provider_response(reply, provider)
        except ProviderError as e:
            logger.warning(f"Unparseable {provider} response: {e}")
            return {"response": reply, "parseError": True}

        if not parsed.is_executable:
            return {
                "response": reply,
                "isStructured": False,
                "parsedResponse": parsed.to_dict(),
                "error": parsed.error,
            }

        output_file = generate_output_filename(parsed.output_extension)
        template = CommandTemplate(parsed.command)
        executable = {
            **parsed.to_dict(),
            "command": template.bind(input_file, output_file),
            "output_file": output_file,
            "input_file": input_file,
        }
        if not template.has_placeholders:
            logger.warning(f"{provider} returned a command without placeholders: {template.display}")

        return {
            "response": reply,
            "isStructured": True,
            "parsedResponse": {**parsed.to_dict(), "command": template.display},
            "executableResponse": executable,
        }
