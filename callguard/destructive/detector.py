"""Destructive-command detection entry point.

detect_destructive() extracts a command from the call's params, then runs
the sub-detectors in a fixed priority order and returns the first match:

  1. remote code execution, truncation      (on the full command string)
  2. privilege-escalation unwrap            (sudo / doas / pkexec / su)
  3. rm, git, find, xargs                   (by command name)
  4. generic system commands
  5. dangerous-path arguments
  6. SQL                                     (on every string param)

Privilege escalation is unwrapped ONE level. In ``sudo sudo rm -rf /tmp/x``
the inner command is ``sudo`` and is not unwrapped again, so rm -rf is never
seen and the bare privilege-escalation match is returned. The inner
wrapper's arguments still go through the dangerous-path check.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from callguard.destructive.rules import (
    has_dangerous_path,
    is_destructive_find,
    is_destructive_git,
    is_destructive_rm,
    is_destructive_sql,
    is_destructive_system,
    is_destructive_xargs,
    is_file_truncation,
    is_remote_code_execution,
    with_prefix,
)
from callguard.models.detection import DestructiveCategory, DestructiveMatch, Severity

_PRIVILEGE_COMMANDS = frozenset({"sudo", "doas", "pkexec", "su"})

# sudo/doas options that consume the following token.
_SUDO_VALUE_FLAGS = frozenset({"-u", "-g", "-C", "-h", "-p", "-r", "-t", "-U", "-D"})
_PKEXEC_VALUE_FLAGS = frozenset({"--user"})
_SU_COMMAND_FLAGS = ("-c", "--command")

# Command names dispatched to a dedicated sub-detector.
_COMMAND_DETECTORS: dict[str, Callable[[list[str]], Optional[DestructiveMatch]]] = {
    "rm": is_destructive_rm,
    "del": is_destructive_rm,
    "remove": is_destructive_rm,
    "git": is_destructive_git,
    "find": is_destructive_find,
    "xargs": is_destructive_xargs,
}


@dataclass(frozen=True)
class PrivilegeEscalation:
    """A privilege-escalation wrapper and the command it runs."""

    match: DestructiveMatch
    inner_command: str
    inner_args: list[str] = field(default_factory=list)


def normalize_command(command: str) -> str:
    """Basename of an executable path, lowercased."""
    return command.rsplit("/", 1)[-1].lower()


def _after_flags(args: list[str], value_flags: frozenset[str]) -> tuple[str, list[str]]:
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in value_flags:
            i += 2
        elif arg.startswith("-"):
            i += 1
        else:
            return arg, args[i + 1:]
    return "", []


def _su_command(args: list[str]) -> tuple[str, list[str]]:
    index = next((i for i, arg in enumerate(args) if arg in _SU_COMMAND_FLAGS), None)
    if index is None or index + 1 >= len(args):
        return "", []
    value = args[index + 1]
    # A quoted -c value was split on whitespace; rejoin it up to the closing quote.
    quote = value[:1]
    if quote in ("'", '"') and not (len(value) > 1 and value.endswith(quote)):
        tokens = [value]
        for token in args[index + 2:]:
            tokens.append(token)
            if token.endswith(quote):
                break
        value = " ".join(tokens)
    parts = value.strip("'\"").split()
    if not parts:
        return "", []
    return parts[0], parts[1:]


def check_privilege_escalation(command: str, args: list[str]) -> Optional[PrivilegeEscalation]:
    """Recognize a privilege-escalation wrapper and recover its inner command.

    Returns None if ``command`` is not sudo, doas, pkexec or su. The inner
    command is empty when none could be recovered (``sudo -i``).
    """
    cmd = command.lower()
    if cmd not in _PRIVILEGE_COMMANDS:
        return None

    if cmd in ("sudo", "doas"):
        inner_command, inner_args = _after_flags(args, _SUDO_VALUE_FLAGS)
    elif cmd == "pkexec":
        inner_command, inner_args = _after_flags(args, _PKEXEC_VALUE_FLAGS)
    else:
        inner_command, inner_args = _su_command(args)

    return PrivilegeEscalation(
        match=DestructiveMatch(
            category=DestructiveCategory.PRIVILEGE_ESCALATION,
            reason=f"{cmd} runs command with elevated privileges",
            severity=Severity.HIGH,
            pattern=cmd,
        ),
        inner_command=inner_command,
        inner_args=inner_args,
    )


def classify_command(command: str, args: list[str]) -> Optional[DestructiveMatch]:
    """Per-command detectors, then system commands, then dangerous paths."""
    detector = _COMMAND_DETECTORS.get(command)
    if detector is not None:
        match = detector(args)
        if match is not None:
            return match
    return is_destructive_system(command, args) or has_dangerous_path(args)


def _extract_command(params: Mapping[str, Any]) -> tuple[str, list[str], str, bool]:
    """Return (executable, args, full command string, came_from_input)."""
    for key in ("command", "cmd"):
        value = params.get(key)
        if isinstance(value, str):
            parts = value.split()
            return (parts[0] if parts else ""), parts[1:], value, False
    argv = params.get("args")
    if isinstance(argv, list):
        parts = [str(item) for item in argv]
        return (parts[0] if parts else ""), parts[1:], " ".join(parts), False
    value = params.get("input")
    if isinstance(value, str):
        return "", [], value, True
    return "", [], "", False


def detect_destructive(tool_name: str, params: Mapping[str, Any]) -> Optional[DestructiveMatch]:
    """Classify a tool call as destructive, or return None.

    Command sources, first present wins: a ``command`` or ``cmd`` string, an
    ``args`` list (first element is the executable), or an ``input`` string
    (SQL only). Without an executable, the tool name stands in for it.
    """
    if not isinstance(params, Mapping):
        return None

    command, args, full_command, from_input = _extract_command(params)

    if from_input:
        sql_match = is_destructive_sql(full_command)
        if sql_match is not None:
            return sql_match

    if full_command:
        early = is_remote_code_execution(full_command) or is_file_truncation(full_command)
        if early is not None:
            return early

    cmd_name = normalize_command(command) or tool_name.lower()

    escalation = check_privilege_escalation(cmd_name, args)
    if escalation is not None:
        inner_name = normalize_command(escalation.inner_command)
        if inner_name:
            inner_match = classify_command(inner_name, escalation.inner_args)
            if inner_match is not None:
                return with_prefix(inner_match, cmd_name, severity=Severity.CRITICAL)
        return escalation.match

    match = classify_command(cmd_name, args)
    if match is not None:
        return match

    for value in params.values():
        if isinstance(value, str):
            sql_match = is_destructive_sql(value)
            if sql_match is not None:
                return sql_match

    return None


def might_be_destructive(tool_name: str, params: Mapping[str, Any]) -> bool:
    return detect_destructive(tool_name, params) is not None
