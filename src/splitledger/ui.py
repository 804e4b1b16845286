"""Interactive UI components for the CLI."""

import logging
from collections.abc import Sequence
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import CATEGORIES, Settlement

logger = logging.getLogger(__name__)


def fuzzy_match(query: str, text: str) -> bool:
    """
    Fuzzy match: all characters in query must appear in order in text.

    Example:
        query="ent" matches "entertainment"
        query="utl" matches "utilities"
    """
    query_idx = 0
    for char in text:
        if query_idx < len(query) and char == query[query_idx]:
            query_idx += 1
    return query_idx == len(query)


class CategoryCompleter(Completer):
    """Fuzzy search completer for expense categories."""

    def __init__(self, categories: Sequence[str] = CATEGORIES):
        """Initialize the completer with available categories."""
        self.categories = list(categories)

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for category in self.categories:
            if not query or fuzzy_match(query, category):
                yield Completion(
                    text=category,
                    start_position=-len(document.text),
                    display=category,
                )


def select_category_interactive(expense_description: str) -> str | None:
    """
    Interactive category selection with fuzzy search.

    Args:
        expense_description: Description of the expense being categorized

    Returns:
        Selected category, or None to skip
    """
    print(f"\n📝 Categorize: {expense_description}")
    print("   Type to search, press Enter to confirm, Ctrl+C to skip\n")

    completer = CategoryCompleter()
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        # Loop until valid category or skip
        while True:
            result = session.prompt("Category: ", complete_while_typing=True)

            if not result:
                return None

            result = result.strip().lower()
            if result in completer.categories:
                logger.info(f"User selected category: {result}")
                return result

            print("❌ Invalid category. Please select from the list or press Tab to complete.")

    except KeyboardInterrupt:
        print("\n⏭️  Skipped")
        return None
    except EOFError:
        return None


def confirm_settlement(settlement: Settlement) -> bool:
    """
    Simple yes/no confirmation before confirming a settlement.

    Returns:
        True if confirmed, False otherwise
    """
    print(
        f"\n💸 User {settlement.from_user} says they paid you "
        f"${settlement.amount:,.2f}"
    )

    response = input("   Did you receive it? [Y/n] ").strip().lower()

    return response in ("", "y", "yes")
