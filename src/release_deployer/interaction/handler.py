"""User interaction handlers for the deployer commands."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

CANCEL_KEY = "c"


class InputType(str, Enum):
    """Type of user input expected."""
    CHOICE = "choice"       # 从 options 中选择
    TEXT = "text"           # 自由文本输入
    CONFIRM = "confirm"     # 是/否确认


class QuestionCategory(str, Enum):
    """Category of questions for context."""
    DECISION = "decision"           # 选择发布版本等
    CONFIRMATION = "confirmation"   # 确认高风险操作


@dataclass
class InteractionRequest:
    """A question put to the operator."""

    question: str
    input_type: InputType = InputType.CHOICE
    options: List[str] = field(default_factory=list)
    category: QuestionCategory = QuestionCategory.DECISION
    context: Optional[str] = None
    default: Optional[str] = None

    def format_prompt(self) -> str:
        """Format the request as a user-friendly prompt."""
        icons = {
            QuestionCategory.DECISION: "🤔",
            QuestionCategory.CONFIRMATION: "⚠️",
        }
        lines = [f"\n{icons.get(self.category, '❓')} {self.question}"]

        if self.context:
            lines.append(f"   ℹ️  {self.context}")

        if self.input_type == InputType.CHOICE and self.options:
            for i, option in enumerate(self.options, 1):
                default_marker = " (default)" if self.default == option else ""
                lines.append(f"   [{i}] {option}{default_marker}")
            lines.append(f"   [{CANCEL_KEY}] cancel")
        elif self.input_type == InputType.CONFIRM:
            default_hint = f" (default: {self.default})" if self.default else ""
            lines.append(f"   [y/n]{default_hint}")
        elif self.input_type == InputType.TEXT and self.default:
            lines.append(f"   (default: {self.default})")

        return "\n".join(lines)


@dataclass
class InteractionResponse:
    """The operator's answer to an interaction request."""

    value: str
    selected_option: Optional[int] = None  # 1-based
    cancelled: bool = False

    @classmethod
    def from_choice(cls, option_index: int, options: List[str]) -> "InteractionResponse":
        """Create response from a choice selection."""
        if 1 <= option_index <= len(options):
            return cls(value=options[option_index - 1], selected_option=option_index)
        raise ValueError(f"Invalid option index: {option_index}")

    @classmethod
    def cancelled_response(cls) -> "InteractionResponse":
        return cls(value="", cancelled=True)


class UserInteractionHandler(ABC):
    """Abstract base class for handling user interactions."""

    @abstractmethod
    def ask(self, request: InteractionRequest) -> InteractionResponse:
        """
        Present a request to the user and get their response.

        Args:
            request: The interaction request to present

        Returns:
            The user's response
        """
        pass

    @abstractmethod
    def notify(self, message: str, level: str = "info") -> None:
        """
        Send a notification to the user (no response needed).

        Args:
            message: The message to display
            level: Severity level (info, warning, error, success)
        """
        pass


class CLIInteractionHandler(UserInteractionHandler):
    """Command-line interaction handler."""

    def __init__(self, input_func: Callable[[str], str] = input) -> None:
        self._input = input_func

    def ask(self, request: InteractionRequest) -> InteractionResponse:
        """Present request and get user input via CLI."""
        print(request.format_prompt())

        try:
            if request.input_type == InputType.CHOICE:
                return self._handle_choice(request)
            elif request.input_type == InputType.CONFIRM:
                return self._handle_confirm(request)
            else:  # TEXT
                return self._handle_text(request)
        except KeyboardInterrupt:
            print("\n   (cancelled)")
            return InteractionResponse.cancelled_response()
        except EOFError:
            return InteractionResponse.cancelled_response()

    def _handle_choice(self, request: InteractionRequest) -> InteractionResponse:
        if not request.options:
            print("   Nothing to choose from")
            return InteractionResponse.cancelled_response()

        while True:
            prompt = f"\n   Select 1-{len(request.options)}"
            default_idx = None
            if request.default in request.options:
                default_idx = request.options.index(request.default) + 1
                prompt += f" [{default_idx}]"
            user_input = self._input(prompt + ": ").strip()

            if user_input.lower() == CANCEL_KEY:
                return InteractionResponse.cancelled_response()
            if not user_input and default_idx is not None:
                return InteractionResponse.from_choice(default_idx, request.options)

            try:
                return InteractionResponse.from_choice(int(user_input), request.options)
            except ValueError:
                print(f"   ❌ Invalid choice, enter 1-{len(request.options)} or '{CANCEL_KEY}'")

    def _handle_confirm(self, request: InteractionRequest) -> InteractionResponse:
        default = request.default or "n"

        while True:
            user_input = self._input(f"\n   Confirm? [y/n] (default: {default}): ").strip().lower()
            if not user_input:
                user_input = default

            if user_input in ("y", "yes"):
                return InteractionResponse(value="yes")
            elif user_input in ("n", "no"):
                return InteractionResponse(value="no")
            print("   ❌ Please answer y or n")

    def _handle_text(self, request: InteractionRequest) -> InteractionResponse:
        prompt = "\n   Enter value"
        if request.default:
            prompt += f" (default: {request.default})"
        user_input = self._input(prompt + ": ").strip()
        if not user_input and request.default:
            user_input = request.default
        return InteractionResponse(value=user_input)

    def notify(self, message: str, level: str = "info") -> None:
        """Display a notification message."""
        icons = {
            "info": "ℹ️",
            "warning": "⚠️",
            "error": "❌",
            "success": "✅",
        }
        print(f"\n{icons.get(level, '•')} {message}")


class AutoResponseHandler(UserInteractionHandler):
    """
    Automatic response handler for testing or non-interactive mode.
    Uses the default, then the first option; cancels when there is neither.
    """

    def __init__(
        self,
        default_responses: Optional[dict] = None,
        always_confirm: bool = False,
    ) -> None:
        """
        Initialize auto-response handler.

        Args:
            default_responses: Dict mapping question keywords to responses
            always_confirm: Whether to auto-confirm (True) or reject (False)
        """
        self.default_responses = default_responses or {}
        self.always_confirm = always_confirm

    def ask(self, request: InteractionRequest) -> InteractionResponse:
        logger.info(f"Auto-responding to: {request.question[:50]}")

        for keyword, response in self.default_responses.items():
            if keyword.lower() in request.question.lower():
                return InteractionResponse(value=response)

        if request.default:
            return InteractionResponse(value=request.default)

        if request.input_type == InputType.CONFIRM:
            return InteractionResponse(value="yes" if self.always_confirm else "no")
        elif request.input_type == InputType.CHOICE and request.options:
            return InteractionResponse.from_choice(1, request.options)
        return InteractionResponse.cancelled_response()

    def notify(self, message: str, level: str = "info") -> None:
        logger.info(f"[{level}] {message}")
