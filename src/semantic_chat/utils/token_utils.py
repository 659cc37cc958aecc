"""
Input size validation for chat-completion requests.

The system prompt embeds the whole model structure plus sample rows, so
large models can push a request past what the chat API accepts. Checks
are plain character counts against a configured hard limit.
"""

from typing import Iterable, Optional


class InputValidator:
    """Character-limit checks for chat input."""

    @staticmethod
    def validate_char_limit(
        text: str,
        max_chars: int,
        error_message: Optional[str] = None
    ) -> None:
        """
        Validate that text does not exceed maximum character limit.

        Raises:
            ValueError: If text exceeds character limit

        Example:
            >>> InputValidator.validate_char_limit("Hello", max_chars=100)  # OK
            >>> InputValidator.validate_char_limit("A" * 1000, max_chars=100)  # Raises ValueError
        """
        char_count = len(text)

        if char_count > max_chars:
            raise ValueError(
                error_message
                or f"Input too large: {char_count} characters, maximum allowed: {max_chars}"
            )

    @staticmethod
    def validate_total_chars(contents: Iterable[str], max_chars: int) -> int:
        """
        Validate the combined size of all message contents in one request.

        Args:
            contents: Message contents (system prompt, history, user message)
            max_chars: Maximum allowed total characters

        Returns:
            The total character count

        Raises:
            ValueError: If total exceeds character limit
        """
        total_chars = sum(len(content) for content in contents)

        if total_chars > max_chars:
            raise ValueError(
                f"Total input too large: {total_chars} characters, "
                f"maximum allowed: {max_chars}. "
                f"Clear the chat history or reduce sample rows."
            )

        return total_chars
