"""context-budget: token budgeting for conversational-agent context windows."""

from .config import load_config, resolve_context_management
from .core.manager import ContextBudgetManager
from .core.summarizer import ConversationSummarizer, LLMSummaryPredictor
from .core.truncator import ToolOutputTruncator, truncate_tool_call_outputs
from .types import (
    BudgetResult,
    ContentPart,
    ContextBudgetConfig,
    ContextManagementConfig,
    EvictionStats,
    Message,
    ToolCall,
    TruncationResult,
)

__version__ = "0.1.0"

__all__ = [
    "ContextBudgetManager",
    "ConversationSummarizer",
    "LLMSummaryPredictor",
    "ToolOutputTruncator",
    "load_config",
    "resolve_context_management",
    "truncate_tool_call_outputs",
    "BudgetResult",
    "ContentPart",
    "ContextBudgetConfig",
    "ContextManagementConfig",
    "EvictionStats",
    "Message",
    "ToolCall",
    "TruncationResult",
]
