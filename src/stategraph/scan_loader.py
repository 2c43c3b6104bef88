"""Load scan payloads from JSON or from a compact text notation (Lark).

Text notation, one statement per line::

    # comments start with '#'
    state Idle
    state HitReact annotated
    Idle -> Walk : "Speed > 0"
    Walk -> Idle

States that only appear in transitions are added in order of appearance.
`state` and `annotated` are keywords; a state with a name that is not a
bare identifier (a keyword, spaces, dots) is written in double quotes:
`state "state"`, `"Hit React" -> Idle`.
"""
from __future__ import annotations
import json
import logging
import os

from lark import Lark, Transformer
from lark.exceptions import LarkError

from stategraph.graph_model import (
    ScanError, ScanPayload, ScannedState, ScannedTransition,
)

log = logging.getLogger("stategraph.scan")

_GRAMMAR = r"""
start: stmt*

?stmt: state_decl
     | transition

state_decl: "state" name ANNOTATED?
transition: name "->" name (":" ESCAPED_STRING)?

?name: NAME | ESCAPED_STRING

ANNOTATED: "annotated"
NAME: /[A-Za-z_]\w*(?:-(?!>)\w+)*/
COMMENT: /#[^\n]*/

%import common.ESCAPED_STRING
%import common.WS
%ignore WS
%ignore COMMENT
"""

_parser = None

def _get_parser():
    global _parser
    if _parser is None:
        _parser = Lark(_GRAMMAR, parser="lalr")
    return _parser


class ScanTextTransformer(Transformer):
    """Transforms the Lark parse tree into a ScanPayload."""

    def NAME(self, token):
        return str(token)

    def ESCAPED_STRING(self, token):
        return str(token)[1:-1].replace('\\"', '"').replace("\\\\", "\\")

    def state_decl(self, args):
        return ("state", args[0], len(args) > 1)

    def transition(self, args):
        rule = args[2] if len(args) > 2 else None
        return ("transition", ScannedTransition(args[0], args[1], rule))

    def start(self, items):
        order: list[str] = []
        annotated: dict[str, bool] = {}
        transitions: list[ScannedTransition] = []

        def _touch(name: str):
            if name not in annotated:
                annotated[name] = False
                order.append(name)

        for item in items:
            if item[0] == "state":
                _, name, flag = item
                _touch(name)
                annotated[name] = annotated[name] or flag
            else:
                t = item[1]
                _touch(t.source)
                _touch(t.target)
                transitions.append(t)

        return ScanPayload(
            states=tuple(ScannedState(n, annotated[n]) for n in order),
            transitions=tuple(transitions),
        )


def parse_scan_text(text: str) -> ScanPayload:
    """Parse the text notation. Raises ScanError on syntax errors."""
    try:
        tree = _get_parser().parse(text)
    except LarkError as e:
        raise ScanError(f"Invalid scan text: {e}") from e
    return ScanTextTransformer().transform(tree)


def parse_scan_payload(data) -> ScanPayload:
    """Validate a decoded JSON scan result and convert it to a ScanPayload."""
    if not isinstance(data, dict):
        raise ScanError("Scan payload must be an object")

    raw_states = data.get("states")
    if not isinstance(raw_states, list):
        raise ScanError("Scan payload has no 'states' list")
    raw_transitions = data.get("transitions", [])
    if not isinstance(raw_transitions, list):
        raise ScanError("'transitions' must be a list")

    states = []
    for i, s in enumerate(raw_states):
        if not isinstance(s, dict) or not isinstance(s.get("name"), str):
            raise ScanError(f"State #{i} has no string 'name'")
        flag = s.get("hasAnnotation", s.get("hasMontage", False))
        states.append(ScannedState(s["name"], bool(flag)))

    transitions = []
    for i, t in enumerate(raw_transitions):
        if (not isinstance(t, dict) or not isinstance(t.get("from"), str)
                or not isinstance(t.get("to"), str)):
            raise ScanError(f"Transition #{i} needs string 'from' and 'to'")
        rule = t.get("rule")
        if rule is not None and not isinstance(rule, str):
            rule = str(rule)
        transitions.append(ScannedTransition(t["from"], t["to"], rule))

    return ScanPayload(
        states=tuple(states),
        transitions=tuple(transitions),
        scanned_at=data.get("scannedAt"),
        anim_instance_class=data.get("animInstanceClass"),
        header_path=data.get("headerPath"),
        montage_refs=tuple(str(r) for r in data.get("montageRefs") or ()),
        anim_variables=tuple(str(v) for v in data.get("animVariables") or ()),
    )


def parse_scan_json(text: str) -> ScanPayload:
    try:
        data = json.loads(text)
    except RecursionError as e:
        raise ScanError("Invalid scan JSON: nested too deeply") from e
    except json.JSONDecodeError as e:
        raise ScanError(f"Invalid scan JSON: {e}") from e
    return parse_scan_payload(data)


def load_scan_file(path: str) -> ScanPayload:
    """Read a scan from disk: ``.json`` as JSON, anything else as text notation."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ScanError(f"Cannot read scan file {path}: {e}") from e
    if path.lower().endswith(".json"):
        payload = parse_scan_json(text)
    else:
        payload = parse_scan_text(text)
    log.info("Loaded scan %s: %d states, %d transitions",
             os.path.basename(path), len(payload.states), len(payload.transitions))
    return payload


class FileScanSource:
    """Scan source that re-reads a file on every request."""

    def __init__(self, path: str):
        self.path = path

    def __call__(self) -> ScanPayload:
        if not self.path:
            raise ScanError("No scan file configured")
        return load_scan_file(self.path)

    def __repr__(self):
        return f"FileScanSource({self.path!r})"
