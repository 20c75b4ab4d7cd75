from typing import Any, NamedTuple, Tuple

from xdeploy.chain import Receipt
from xdeploy.exceptions import EventNotFoundError


class EventRule(NamedTuple):
    """Where to find a produced address when it is not the deployment's return value."""

    event_name: str
    arg_index: int = 0


def extract_event_args(receipt: Receipt, event_name: str) -> Tuple[Any, ...]:
    """Returns the arguments of the first log entry emitting ``event_name``."""
    for entry in receipt.logs:
        if entry.event_name == event_name:
            return tuple(entry.args)
    raise EventNotFoundError(event_name)


def resolve_event_address(receipt: Receipt, rule: EventRule) -> Any:
    args = extract_event_args(receipt, rule.event_name)
    try:
        return args[rule.arg_index]
    except IndexError:
        raise EventNotFoundError(f"{rule.event_name}[{rule.arg_index}]")
