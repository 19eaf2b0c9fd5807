"""Base action class for lifecycle operations."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel

from database.base import StoreError
from lifecycle.engine import CommerceLifecycleEngine
from lifecycle.errors import LifecycleError
from state_machine.lifecycle_state import TransitionError

logger = logging.getLogger(__name__)


class ActionResult(BaseModel):
    """Standardized action result."""

    success: bool
    message: str
    data: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        result: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
        }
        if self.data:
            result["data"] = self.data
        if self.error:
            result["error"] = self.error
        return result


class BaseLifecycleAction(ABC):
    """
    Base class for user-facing lifecycle actions.

    Each action runs one engine operation and reports the outcome as a
    structured result with a human-readable message. Expected failures
    (duplicates, missing records, bad input, refused transitions, store
    failures) become failed results; nothing is raised to the caller.
    """

    name: str
    description: str
    verb: str

    def __init__(self, engine: CommerceLifecycleEngine):
        self.engine = engine

    def _failure(self, message: str, error: dict[str, Any]) -> ActionResult:
        return ActionResult(
            success=False,
            message=f"Failed to {self.verb}: {message}",
            error=error,
        )

    @abstractmethod
    def _execute(self, **kwargs: Any) -> ActionResult:
        """
        Execute the action.

        Returns:
            ActionResult with operation outcome
        """
        ...

    def run(self, **kwargs: Any) -> dict[str, Any]:
        """
        Run the action and return JSON result.

        Returns:
            JSON-serializable dictionary
        """
        logger.info(f"Action '{self.name}' executing")

        try:
            result = self._execute(**kwargs)
        except (LifecycleError, TransitionError) as e:
            logger.warning(f"Action '{self.name}' failed: {e}")
            result = self._failure(str(e), e.to_dict())
        except StoreError as e:
            logger.error(f"Action '{self.name}' store error: {e}")
            result = self._failure(
                str(e),
                {"code": "STORE_ERROR", "message": str(e)},
            )
        except Exception as e:
            logger.exception(f"Action '{self.name}' unexpected error: {e}")
            result = self._failure(
                str(e),
                {"code": "INTERNAL_ERROR", "message": str(e)},
            )

        return result.to_json()
