"""Destructive-command sub-detectors.

Each detector inspects a normalized command name and/or its whitespace-split
argument vector and returns a DestructiveMatch or None. Detectors never
raise and never look at anything but their arguments.

Tokenization is whitespace-only. There is no quoting or escaping grammar:
``rm -rf "my dir"`` is seen as ``["-rf", '"my', 'dir"']``.

IMPORT RULES: import re2 ONLY. Never import re (stdlib). All patterns are
compiled at module load.
"""

from __future__ import annotations

import dataclasses
from typing import Optional

import re2

from callguard.models.detection import DestructiveCategory, DestructiveMatch, Severity

_FILE_DELETE = DestructiveCategory.FILE_DELETE
_GIT = DestructiveCategory.GIT_DESTRUCTIVE
_SQL = DestructiveCategory.SQL_DESTRUCTIVE
_SYSTEM = DestructiveCategory.SYSTEM_DESTRUCTIVE
_PROCESS = DestructiveCategory.PROCESS_KILL
_NETWORK = DestructiveCategory.NETWORK_DESTRUCTIVE


def _is_short_flag(arg: str) -> bool:
    return len(arg) > 1 and arg.startswith("-") and not arg.startswith("--")


def _is_rm(arg: str) -> bool:
    return arg == "rm" or arg.endswith("/rm")


def with_prefix(match: DestructiveMatch, prefix: str, severity: Optional[Severity] = None) -> DestructiveMatch:
    """Copy of ``match`` with reason and pattern prefixed by ``prefix``."""
    return dataclasses.replace(
        match,
        reason=f"{prefix} {match.reason}",
        pattern=f"{prefix} {match.pattern}",
        severity=severity or match.severity,
    )


# ─── File deletion ───────────────────────────────────────────────────────────


def is_destructive_rm(args: list[str]) -> Optional[DestructiveMatch]:
    """``rm`` with both recursive and force flags.

    Short flags may be combined (``-rf``, ``-fR``, ``-vfr``). Long flags are
    ``--recursive`` and ``--force``. Scanning stops at ``--``.
    """
    force = False
    recursive = False
    for arg in args:
        if arg == "--":
            break
        if arg == "--force":
            force = True
        elif arg == "--recursive":
            recursive = True
        elif _is_short_flag(arg):
            letters = arg[1:]
            force = force or "f" in letters
            recursive = recursive or "r" in letters or "R" in letters

    if force and recursive:
        return DestructiveMatch(
            category=_FILE_DELETE,
            reason="Recursive force deletion (rm -rf)",
            severity=Severity.CRITICAL,
            pattern="rm -rf",
        )
    return None


def is_destructive_find(args: list[str]) -> Optional[DestructiveMatch]:
    """``find`` with ``-delete`` or ``-exec rm``; critical on a dangerous start path."""
    has_delete = "-delete" in args
    has_exec_rm = any(
        arg in ("-exec", "-execdir") and i + 1 < len(args) and _is_rm(args[i + 1])
        for i, arg in enumerate(args)
    )
    if not (has_delete or has_exec_rm):
        return None

    start_path = next((arg for arg in args if not arg.startswith("-")), None)
    dangerous = start_path is not None and (
        start_path in ("/", "~", "$HOME")
        or start_path.startswith("/etc")
        or start_path.startswith("/usr")
    )
    how = "-delete" if has_delete else "-exec rm"
    return DestructiveMatch(
        category=_FILE_DELETE,
        reason=f"find with {how} can remove many files",
        severity=Severity.CRITICAL if dangerous else Severity.HIGH,
        pattern=f"find {how}",
    )


def is_destructive_xargs(args: list[str]) -> Optional[DestructiveMatch]:
    """``xargs ... rm``; the rm arguments decide between rm -rf and plain bulk rm."""
    rm_index = next((i for i, arg in enumerate(args) if _is_rm(arg)), None)
    if rm_index is None:
        return None
    rm_match = is_destructive_rm(args[rm_index + 1:])
    if rm_match is not None:
        return with_prefix(rm_match, "xargs")
    return DestructiveMatch(
        category=_FILE_DELETE,
        reason="xargs rm can delete many files",
        severity=Severity.HIGH,
        pattern="xargs rm",
    )


# ─── Version control ─────────────────────────────────────────────────────────

# Global git options that consume the following token.
_GIT_VALUE_OPTIONS = frozenset({
    "-C",
    "-c",
    "--exec-path",
    "--html-path",
    "--man-path",
    "--info-path",
    "--git-dir",
    "--work-tree",
    "--namespace",
    "--super-prefix",
})

_GIT_HISTORY_SUBCOMMANDS = ("reset", "revert", "checkout", "restore")


def _git_subcommand(args: list[str]) -> tuple[Optional[str], int]:
    i = 0
    while i < len(args):
        arg = args[i]
        if arg.startswith("--") and "=" in arg:
            i += 1
        elif arg in _GIT_VALUE_OPTIONS:
            i += 2
        elif arg == "--":
            return None, -1
        elif arg.startswith("-"):
            i += 1
        else:
            return arg, i
    return None, -1


def _git(reason: str, severity: Severity, pattern: str) -> DestructiveMatch:
    return DestructiveMatch(category=_GIT, reason=reason, severity=severity, pattern=pattern)


def is_destructive_git(args: list[str]) -> Optional[DestructiveMatch]:
    """Subcommand-aware git classification. ``args`` excludes ``git`` itself."""
    subcommand, index = _git_subcommand(args)
    if subcommand is None:
        return None
    rest = args[index + 1:]
    next_arg = rest[0] if rest else None

    if subcommand in _GIT_HISTORY_SUBCOMMANDS:
        hard = "--hard" in args
        return _git(
            f"git {subcommand}{' --hard' if hard else ''} can lose uncommitted changes",
            Severity.CRITICAL if hard else Severity.HIGH,
            f"git {subcommand}",
        )

    if subcommand == "clean":
        forced = any(
            arg == "--force" or (_is_short_flag(arg) and "f" in arg[1:]) for arg in rest
        )
        if forced:
            return _git("git clean -f removes untracked files permanently", Severity.HIGH, "git clean -f")

    if subcommand == "switch":
        if any(arg in ("-f", "--force", "--discard-changes") for arg in rest):
            return _git(
                "git switch with force/discard-changes loses uncommitted work",
                Severity.HIGH,
                "git switch -f",
            )

    if subcommand == "stash" and next_arg in ("drop", "clear", "pop"):
        return _git(
            f"git stash {next_arg} can lose stashed changes",
            Severity.CRITICAL if next_arg == "clear" else Severity.HIGH,
            f"git stash {next_arg}",
        )

    if subcommand == "push":
        if any(arg in ("-f", "--force", "--force-with-lease") for arg in rest):
            return _git("git push --force can overwrite remote history", Severity.CRITICAL, "git push --force")

    if subcommand == "branch":
        if any(arg in ("-d", "-D", "--delete") for arg in rest):
            return _git("git branch delete removes branch", Severity.MEDIUM, "git branch -d")

    if subcommand == "reflog" and next_arg in ("expire", "delete"):
        return _git(
            f"git reflog {next_arg} removes recovery points",
            Severity.CRITICAL,
            f"git reflog {next_arg}",
        )

    return None


# ─── SQL ─────────────────────────────────────────────────────────────────────

_SQL_PATTERNS: list[tuple[object, str, Severity, str]] = [
    (
        re2.compile(r"(?i)\bDROP\s+(?:TABLE|DATABASE|SCHEMA|INDEX)\b"),
        "SQL DROP statement permanently removes data",
        Severity.CRITICAL,
        "DROP",
    ),
    (
        re2.compile(r"(?i)\bTRUNCATE\s+TABLE\b"),
        "SQL TRUNCATE removes all rows from table",
        Severity.CRITICAL,
        "TRUNCATE",
    ),
    (
        re2.compile(r"(?i)\bDELETE\s+FROM\s+\w+\s*(?:;|$)"),
        "DELETE without WHERE clause removes all rows",
        Severity.CRITICAL,
        "DELETE without WHERE",
    ),
]

_SQL_UPDATE_SET = re2.compile(r"(?i)\bUPDATE\s+\w+\s+SET\s+")
_SQL_WHERE = re2.compile(r"(?i)\bWHERE\b")

_SQL_ALTER_DROP = re2.compile(r"(?i)\bALTER\s+TABLE\s+\w+\s+DROP\b")


def _update_without_where(text: str) -> bool:
    for m in _SQL_UPDATE_SET.finditer(text):
        statement = text[m.end():].split(";", 1)[0]
        if not _SQL_WHERE.search(statement):
            return True
    return False


def is_destructive_sql(text: str) -> Optional[DestructiveMatch]:
    """Textual SQL check, first rule wins: DROP, TRUNCATE, DELETE/UPDATE without WHERE, ALTER DROP."""
    for pattern, reason, severity, name in _SQL_PATTERNS:
        if pattern.search(text):
            return DestructiveMatch(category=_SQL, reason=reason, severity=severity, pattern=name)
    if _update_without_where(text):
        return DestructiveMatch(
            category=_SQL,
            reason="UPDATE without WHERE clause modifies all rows",
            severity=Severity.HIGH,
            pattern="UPDATE without WHERE",
        )
    if _SQL_ALTER_DROP.search(text):
        return DestructiveMatch(
            category=_SQL,
            reason="ALTER TABLE DROP removes column/constraint",
            severity=Severity.HIGH,
            pattern="ALTER TABLE DROP",
        )
    return None


# ─── System ──────────────────────────────────────────────────────────────────

_POWER_COMMANDS = frozenset({"shutdown", "reboot", "halt", "poweroff", "init"})
_DISK_COMMANDS = frozenset({"format", "fdisk", "mkfs", "dd", "parted", "gdisk"})
_KILL_COMMANDS = frozenset({"kill", "pkill", "killall"})
_KILL_SIGNALS = frozenset({"-9", "-KILL", "-SIGKILL"})
_FIREWALL_COMMANDS = frozenset({"iptables", "firewall-cmd", "ufw", "nft"})
_PERMISSION_COMMANDS = frozenset({"chmod", "chown", "chgrp"})
_SYSTEM_PATH_PREFIXES = ("/etc", "/usr", "/bin", "/sbin")


def is_destructive_system(command: str, args: list[str]) -> Optional[DestructiveMatch]:
    """Power, disk, process-kill, firewall and recursive permission commands."""
    cmd = command.lower()

    if cmd in _POWER_COMMANDS:
        return DestructiveMatch(_SYSTEM, f"{cmd} will shut down or restart the system", Severity.CRITICAL, cmd)

    if cmd in _DISK_COMMANDS:
        return DestructiveMatch(_SYSTEM, f"{cmd} can destroy disk data", Severity.CRITICAL, cmd)

    if cmd in _KILL_COMMANDS:
        sigkill = any(arg in _KILL_SIGNALS for arg in args)
        return DestructiveMatch(
            _PROCESS,
            f"{cmd}{' -9' if sigkill else ''} terminates processes",
            Severity.HIGH if sigkill else Severity.MEDIUM,
            cmd,
        )

    if cmd in _FIREWALL_COMMANDS:
        return DestructiveMatch(_NETWORK, f"{cmd} modifies firewall rules", Severity.HIGH, cmd)

    if cmd in _PERMISSION_COMMANDS:
        recursive = any(arg in ("-R", "--recursive") for arg in args)
        sensitive = any(arg in ("/", "~") or arg.startswith(_SYSTEM_PATH_PREFIXES) for arg in args)
        if recursive and sensitive:
            return DestructiveMatch(
                _SYSTEM,
                f"{cmd} -R on system directory can break the system",
                Severity.CRITICAL,
                f"{cmd} -R",
            )

    return None


# ─── Dangerous paths ─────────────────────────────────────────────────────────

# First matching entry wins; checked per argument in argument order.
_DANGEROUS_PATHS: list[tuple[object, str, Severity]] = [
    (re2.compile(r"^/$"), "Root directory", Severity.CRITICAL),
    (re2.compile(r"^~$"), "Home directory", Severity.CRITICAL),
    (re2.compile(r"(?i)^\$HOME$"), "Home directory", Severity.CRITICAL),
    (re2.compile(r"^/etc\b"), "System config directory", Severity.CRITICAL),
    (re2.compile(r"^/usr\b"), "System directory", Severity.CRITICAL),
    (re2.compile(r"^/bin\b"), "System binaries", Severity.CRITICAL),
    (re2.compile(r"^/sbin\b"), "System binaries", Severity.CRITICAL),
    (re2.compile(r"^/boot\b"), "Boot directory", Severity.CRITICAL),
    (re2.compile(r"^/var/log\b"), "System logs", Severity.HIGH),
    (re2.compile(r"^/var/lib\b"), "System data", Severity.HIGH),
    (re2.compile(r"(?i)^C:\\Windows"), "Windows system directory", Severity.CRITICAL),
    (re2.compile(r"(?i)^C:\\Program Files"), "Windows programs", Severity.CRITICAL),
    (re2.compile(r"(?i)System32"), "Windows system directory", Severity.CRITICAL),
    (re2.compile(r"\.ssh\b"), "SSH configuration", Severity.HIGH),
    (re2.compile(r"\.gnupg\b"), "GPG configuration", Severity.HIGH),
    (re2.compile(r"\*\s*$"), "Wildcard pattern", Severity.MEDIUM),
]


def has_dangerous_path(args: list[str]) -> Optional[DestructiveMatch]:
    """First argument that hits the path denylist, whatever the command."""
    for arg in args:
        for pattern, label, severity in _DANGEROUS_PATHS:
            if pattern.search(arg):
                return DestructiveMatch(_FILE_DELETE, f"Operation on {label}", severity, arg)
    return None


# ─── Whole-command checks ────────────────────────────────────────────────────

_REMOTE_EXECUTION: list[tuple[object, str]] = [
    (
        re2.compile(r"(?i)\b(?:curl|wget)\b[^|]*\|\s*(?:bash|sh|zsh|ksh|fish)\b"),
        "curl|bash",
    ),
    (
        re2.compile(r"(?i)\b(?:curl|wget)\b[^|]*\|\s*sudo\s+(?:bash|sh|zsh|ksh|fish)\b"),
        "curl|sudo bash",
    ),
    (
        re2.compile(r"""(?i)\bpython[23]?\s+-c\s+["'].*(?:urllib|requests).*exec"""),
        "python remote exec",
    ),
    (
        re2.compile(r"""(?i)\beval\s+["'`]?\$\((?:curl|wget)"""),
        "eval $(curl)",
    ),
]

# Bare redirection at the start of the command or after ; & |
_TRUNCATION = re2.compile(r"(?:^|[;&|])\s*>[\s|]*([^\s;&|]+)")
_CRITICAL_TRUNCATION_PREFIXES = ("/etc/", "/usr/", "/bin/", "/sbin/", "/boot/", "/var/")


def is_remote_code_execution(full_command: str) -> Optional[DestructiveMatch]:
    """Remote content piped into an interpreter."""
    for pattern, name in _REMOTE_EXECUTION:
        if pattern.search(full_command):
            return DestructiveMatch(_SYSTEM, f"Remote code execution via {name}", Severity.CRITICAL, name)
    return None


def is_file_truncation(full_command: str) -> Optional[DestructiveMatch]:
    """``> /abs/path`` redirection; only the first redirection is considered."""
    m = _TRUNCATION.search(full_command)
    if m is None:
        return None
    path = m.group(1)
    if not path.startswith("/"):
        return None
    critical = path.startswith(_CRITICAL_TRUNCATION_PREFIXES)
    return DestructiveMatch(
        _FILE_DELETE,
        f"File truncation can destroy {path}",
        Severity.CRITICAL if critical else Severity.HIGH,
        f"> {path}",
    )
