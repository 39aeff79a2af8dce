from __future__ import annotations


class RuleViolation(ValueError):
    """A user-sequencing mistake (wrong phase, unknown id, empty deck, ...).

    Raised by guard checks before any state is touched; stores turn it into a
    failed ActionResult.
    """
