"""Rendering of alerts as single-line messages."""

import re

from usage_delta.models import Alert

DATE_FORMAT = "%Y-%m-%d"

_WORD = re.compile(r"\w+")


def title_case(value: str) -> str:
    """Capitalize each word, where words are split on spaces and punctuation.

    ``"azure-ea"`` becomes ``"Azure-Ea"``; underscores stay inside a word.
    """
    return _WORD.sub(lambda match: match.group(0).capitalize(), value)


def format_money(value: float) -> str:
    """Two decimals with English thousands grouping, e.g. ``1,234.50``."""
    return f"{value:,.2f}"


def format_alert(alert: Alert) -> str:
    """Render the alert text delivered to every sink."""
    if alert.unbounded:
        amount = "an unbounded amount"
    else:
        amount = f"{alert.magnitude:.1f}%"

    return (
        f"Daily usage {alert.direction.verb} by {amount} "
        f"for '{alert.organization_name}' "
        f"in {title_case(alert.connection.type)} ({alert.connection.name}) "
        f"between {alert.day_one.strftime(DATE_FORMAT)} "
        f"and {alert.day_two.strftime(DATE_FORMAT)}, "
        f"from ${format_money(alert.day_one_total)} "
        f"to ${format_money(alert.day_two_total)}"
    )
