"""Decode the ``gml_*`` script identifiers found in compiler and runner output.

Examples:
    gml_GlobalScript_scr_utils           -> script asset ``scr_utils``
    gml_Script_jump@scr_player           -> function ``jump`` in ``scr_player``
    gml_Script_anon@42@scr_player        -> anonymous function 42 in ``scr_player``
    gml_Object_obj_player_Step_0         -> Step event 0 of ``obj_player``
"""

from dataclasses import dataclass

from igorjobs.errors import ScriptNameError


SCRIPT_PREFIX = "gml_"


@dataclass(frozen=True)
class ScriptLocation:
    """Where a piece of GML lives.

    Attributes:
        kind: ``GlobalScript``, ``Script`` (a function) or ``Object``
        name: Script, function or object name
        defined_in: Enclosing location of a function, if known
        event: Raw event name of an object event, e.g. ``Step``
        sub_event: Event number of an object event
    """

    kind: str
    name: str
    defined_in: "ScriptLocation | None" = None
    event: str | None = None
    sub_event: int | None = None

    def root(self) -> "ScriptLocation":
        """The asset (script or object) this location ultimately belongs to."""
        location = self
        while location.defined_in is not None:
            location = location.defined_in
        return location

    def describe(self) -> str:
        if self.kind == "Object":
            return f"{self.name}'s {self.event} {self.sub_event} Event"
        if self.kind == "Script":
            if self.defined_in is None:
                return f"Method {self.name}"
            return f"Method {self.name} (defined in {self.root().describe()})"
        return self.name


def parse_script_name(full_name: str) -> ScriptLocation:
    """Decode a ``gml_*`` identifier.

    Raises:
        ScriptNameError: If the identifier is not in a known format
    """
    if not full_name.startswith(SCRIPT_PREFIX):
        raise ScriptNameError(f"Unknown script name format `{full_name}`")

    rest = full_name[len(SCRIPT_PREFIX) :]
    type_split = rest.find("_")
    if type_split < 0:
        raise ScriptNameError(f"Unknown script name format `{full_name}`")

    script_type = rest[:type_split]
    rest = rest[type_split + 1 :]

    if script_type == "GlobalScript":
        return ScriptLocation(kind="GlobalScript", name=rest)

    if script_type == "Script":
        return _parse_function(full_name, rest)

    if script_type == "Object":
        return _parse_object_event(full_name, rest)

    raise ScriptNameError(f"Unknown script type `{script_type}` in `{full_name}`")


def _parse_function(full_name: str, rest: str) -> ScriptLocation:
    if "@" not in rest:
        # LTS runtimes omit the parent script.
        return ScriptLocation(kind="Script", name=rest)

    if rest.startswith("anon@"):
        anon_index, sep, parent_name = rest[len("anon@") :].partition("@")
        if not sep:
            raise ScriptNameError(
                f"Expected anonymous function `{full_name}` to have a parent script name"
            )
        name = f"<anon function {anon_index}>"
    else:
        name, _sep, parent_name = rest.partition("@")

    if not parent_name.startswith(SCRIPT_PREFIX) and "@" in parent_name:
        # Nested methods and constructors, the last entry is the owning script.
        parent_name = parent_name.split("@")[-1]

    if parent_name.startswith(SCRIPT_PREFIX):
        try:
            parent = parse_script_name(parent_name)
        except ScriptNameError as e:
            raise ScriptNameError(
                f"Failed to parse function `{name}`'s parent script name", e
            ) from e
    else:
        # Newer runtimes use the readable script name here.
        parent = ScriptLocation(kind="GlobalScript", name=parent_name)

    return ScriptLocation(kind="Script", name=name, defined_in=parent)


def _parse_object_event(full_name: str, rest: str) -> ScriptLocation:
    if "_Collision_" in rest:
        raise ScriptNameError(
            f"Cannot parse `{full_name}`, collision event names are ambiguous"
        )

    sub_event_split = rest.rfind("_")
    event_split = rest.rfind("_", 0, sub_event_split)
    if event_split <= 0:
        raise ScriptNameError(f"Expected an object event name, found `{full_name}`")

    try:
        sub_event = int(rest[sub_event_split + 1 :])
    except ValueError as e:
        raise ScriptNameError(f"Invalid event number in `{full_name}`", e) from e

    return ScriptLocation(
        kind="Object",
        name=rest[:event_split],
        event=rest[event_split + 1 : sub_event_split],
        sub_event=sub_event,
    )
