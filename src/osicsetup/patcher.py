# patcher.py
from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List

from .model import PatchRule


# ---------------------------------------------------------------------
# Rule helpers
# ---------------------------------------------------------------------

def comment_out(pattern: str, *, replacement: str | None = None, then_append: str | None = None) -> PatchRule:
    """
    Comment out lines matching `pattern` (prefix "# " unless `replacement` is given),
    optionally appending `then_append` once.
    """
    return PatchRule(pattern=pattern, replacement=replacement, append=then_append)


def replace_text(pattern: str, replacement: str) -> PatchRule:
    return PatchRule(pattern=pattern, replacement=replacement)


def append_line(line: str) -> PatchRule:
    return PatchRule(append=line)


# ---------------------------------------------------------------------
# Core
# ---------------------------------------------------------------------

def _rewrite(rule: PatchRule, rx: "re.Pattern[str]", line: str) -> str:
    if rule.replacement is None:
        if line.lstrip().startswith("#"):
            return line
        return f"# {line}"

    new = rx.sub(rule.replacement, line)
    # a rewritten line must be a fixed point, or reruns would keep changing it
    if new != line and rx.sub(rule.replacement, new) != new:
        raise ValueError(
            f"Patch rule {rule.pattern!r} -> {rule.replacement!r} rewrites its own output"
        )
    return new


def patch_lines(lines: List[str], rules: Iterable[PatchRule]) -> List[str]:
    out = list(lines)
    for rule in rules:
        if rule.pattern is not None:
            rx = re.compile(rule.pattern)
            for i, line in enumerate(out):
                if rule.append is not None and line.rstrip() == rule.append:
                    continue
                if rx.search(line):
                    out[i] = _rewrite(rule, rx, line)

        if rule.append is not None:
            if not any(line.rstrip() == rule.append for line in out):
                out.append(rule.append)
    return out


def patch_text(text: str, rules: Iterable[PatchRule]) -> str:
    """
    Apply `rules` in order. Applying the same rules to the result again
    returns it unchanged; appended lines are never duplicated.
    """
    lines = text.splitlines()
    patched = patch_lines(lines, rules)
    if patched == lines:
        return text
    return "\n".join(patched) + "\n"


def apply_rules(path: str | Path, rules: Iterable[PatchRule], *, dry_run: bool = False) -> bool:
    """
    Patch a file in place. Returns True if the content changed (or would change, in dry-run).
    Raises FileNotFoundError if `path` does not exist.
    """
    p = Path(path)
    original = p.read_text(encoding="utf-8", errors="surrogateescape")
    patched = patch_text(original, list(rules))
    if patched == original:
        return False
    if not dry_run:
        p.write_text(patched, encoding="utf-8", errors="surrogateescape")
    return True
