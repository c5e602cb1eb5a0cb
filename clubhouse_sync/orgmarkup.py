"""
Org-mode helpers: org → markdown conversion and heading/property-drawer editing.

Only the subset of org used in story write-ups is handled. There is no
markdown → org direction.
"""

import re
import textwrap

_HEADING_RE = re.compile(r"^(\*+)\s+(.*?)\s*$")
_TAGS_RE = re.compile(r"\s+(:[\w@#%:]+:)\s*$")
_DRAWER_START_RE = re.compile(r"^\s*:([A-Za-z][\w-]*):\s*$")
_DRAWER_END_RE = re.compile(r"^\s*:END:\s*$", re.IGNORECASE)
_PROPERTY_RE = re.compile(r"^\s*:([^:\s]+):\s*(.*?)\s*$")
_PLANNING_RE = re.compile(r"^\s*(SCHEDULED|DEADLINE|CLOSED):")
_KEYWORD_RE = re.compile(r"^\s*#\+(?!begin_|end_)", re.IGNORECASE)
_COMMENT_RE = re.compile(r"^\s*#(\s|$)")
_BLOCK_BEGIN_RE = re.compile(r"^\s*#\+begin_(\w+)\s*(\S*)", re.IGNORECASE)
_BLOCK_END_RE = re.compile(r"^\s*#\+end_(\w+)", re.IGNORECASE)
_PLUS_BULLET_RE = re.compile(r"^(\s*)\+\s+")
_ORDERED_BULLET_RE = re.compile(r"^(\s*)(\d+)\)\s+")
_STAR_BULLET_RE = re.compile(r"^(\s*)\*\s+")

_LINK_RE = re.compile(r"\[\[([^\]]+)\](?:\[([^\]]+)\])?\]")
_VERBATIM_RE = re.compile(r"(?<![\w=~])([=~])(\S|\S.*?\S)\1(?![\w=~])")
_BOLD_RE = re.compile(r"(?<![\w*])\*(\S|\S.*?\S)\*(?![\w*])")
_ITALIC_RE = re.compile(r"(?<![\w/:])/(\S|\S.*?\S)/(?![\w/])")
_STRIKE_RE = re.compile(r"(?<![\w+])\+(\S|\S.*?\S)\+(?![\w+])")

TODO_KEYWORDS = ("TODO", "DONE", "NEXT", "WAITING", "STARTED", "CANCELLED")


# ---------------------------------------------------------------------------
# Inline markup
# ---------------------------------------------------------------------------


def _inline(text):
    """Convert org inline markup on one line of text."""
    stash = []

    def _keep(rendered):
        stash.append(rendered)
        return f"\x00{len(stash) - 1}\x00"

    def _link(m):
        target, desc = m.group(1), m.group(2)
        if desc:
            return _keep(f"[{desc}]({target})")
        return _keep(f"<{target}>")

    text = _LINK_RE.sub(_link, text)
    text = _VERBATIM_RE.sub(lambda m: _keep(f"`{m.group(2)}`"), text)
    text = _BOLD_RE.sub(r"**\1**", text)
    text = _ITALIC_RE.sub(r"_\1_", text)
    text = _STRIKE_RE.sub(r"~~\1~~", text)
    return re.sub(r"\x00(\d+)\x00", lambda m: stash[int(m.group(1))], text)


# ---------------------------------------------------------------------------
# org → markdown
# ---------------------------------------------------------------------------


def _starts_drawer(lines, index):
    """A :NAME: line only opens a drawer when an :END: follows it."""
    if not _DRAWER_START_RE.match(lines[index]) or _DRAWER_END_RE.match(lines[index]):
        return False
    return any(_DRAWER_END_RE.match(line) for line in lines[index + 1 :])


def to_markdown(org_text):
    """Convert an org-mode fragment to markdown.

    Indentation common to every line (as under an indented heading) is removed
    first. Only star lines that started at column 0 become headings; indented
    ones stay list items after the dedent.
    """
    out = []
    block = None  # (kind, verbatim)
    in_drawer = False
    original = org_text.split("\n")
    lines = textwrap.dedent(org_text).split("\n")
    for index, line in enumerate(lines):
        if block is not None:
            end = _BLOCK_END_RE.match(line)
            if end and end.group(1).lower() == block[0]:
                if block[1]:
                    out.append("```")
                block = None
                continue
            if block[1]:
                out.append(line)
            else:
                out.append(("> " + _inline(line.strip())).rstrip())
            continue

        if in_drawer:
            if _DRAWER_END_RE.match(line):
                in_drawer = False
            continue

        begin = _BLOCK_BEGIN_RE.match(line)
        if begin:
            kind = begin.group(1).lower()
            if kind in ("src", "example"):
                lang = begin.group(2) if kind == "src" else ""
                out.append(f"```{lang}")
                block = (kind, True)
            else:
                block = (kind, False)
            continue
        if _starts_drawer(lines, index):
            in_drawer = True
            continue
        if _KEYWORD_RE.match(line) or _COMMENT_RE.match(line) or _PLANNING_RE.match(line):
            continue

        heading = _HEADING_RE.match(original[index])
        if heading:
            level = len(heading.group(1))
            out.append("#" * min(level, 6) + " " + _inline(_heading_title(heading.group(2))))
            continue

        line = _PLUS_BULLET_RE.sub(r"\1- ", line)
        line = _STAR_BULLET_RE.sub(r"\1- ", line)
        line = _ORDERED_BULLET_RE.sub(r"\1\2. ", line)
        out.append(_inline(line))

    return "\n".join(out).strip("\n")


# ---------------------------------------------------------------------------
# Headings, sections, and property drawers
# ---------------------------------------------------------------------------


def _heading_title(raw):
    title = _TAGS_RE.sub("", raw)
    first, _, rest = title.partition(" ")
    if first in TODO_KEYWORDS:
        title = rest
    return title.strip()


def _headings(lines):
    """Yield (index, level, title) for every heading line."""
    for i, line in enumerate(lines):
        m = _HEADING_RE.match(line)
        if m:
            yield i, len(m.group(1)), _heading_title(m.group(2))


def find_heading(text, title=None):
    """Return (index, level, title) of the heading named *title*, or the first heading.

    Returns None when no such heading exists.
    """
    for found in _headings(text.split("\n")):
        if title is None or found[2] == title:
            return found
    return None


def _section_end(lines, index, level):
    for i, lvl, _title in _headings(lines):
        if i > index and lvl <= level:
            return i
    return len(lines)


def _drawer_span(lines, index):
    """Return (start, end) line indexes of the heading's property drawer, or None."""
    i = index + 1
    if i < len(lines) and _PLANNING_RE.match(lines[i]):
        i += 1
    if i < len(lines) and lines[i].strip().upper() == ":PROPERTIES:":
        for j in range(i + 1, len(lines)):
            if _DRAWER_END_RE.match(lines[j]):
                return i, j
            if _HEADING_RE.match(lines[j]):
                break
    return None


def section_body(text, title=None, log_marker=None):
    """Body text under a heading, without its property drawer.

    Stops at the next heading of the same or higher level, and at the first
    line starting with *log_marker* when one is given.
    """
    found = find_heading(text, title)
    if found is None:
        return None
    index, level, _title = found
    lines = text.split("\n")
    end = _section_end(lines, index, level)
    start = index + 1
    drawer = _drawer_span(lines, index)
    if drawer is not None:
        start = drawer[1] + 1
    body = lines[start:end]
    if log_marker:
        for i, line in enumerate(body):
            if line.strip().startswith(log_marker):
                body = body[:i]
                break
    return "\n".join(body).strip("\n")


def parse_property_line(line):
    """Split a ":key: value" line into (key, value), or None."""
    if _DRAWER_END_RE.match(line):
        return None
    m = _PROPERTY_RE.match(line)
    if m is None:
        return None
    return m.group(1), m.group(2)


def get_properties(text, title=None):
    """Return the heading's property drawer as a dict (empty if none)."""
    found = find_heading(text, title)
    if found is None:
        return {}
    lines = text.split("\n")
    drawer = _drawer_span(lines, found[0])
    if drawer is None:
        return {}
    props = {}
    for line in lines[drawer[0] + 1 : drawer[1]]:
        parsed = parse_property_line(line)
        if parsed:
            props[parsed[0]] = parsed[1]
    return props


def get_property(text, key, title=None):
    """Value of one property on the heading, or None."""
    return get_properties(text, title).get(key)


def set_properties(text, properties, title=None):
    """Write *properties* into the heading's drawer, creating it if needed.

    Existing keys are updated in place; new keys are appended before :END:.
    """
    found = find_heading(text, title)
    if found is None:
        raise ValueError(f"heading not found: {title!r}")
    index, level, _title = found
    lines = text.split("\n")
    indent = " " * (level + 1)
    drawer = _drawer_span(lines, index)
    if drawer is None:
        insert_at = index + 1
        if insert_at < len(lines) and _PLANNING_RE.match(lines[insert_at]):
            insert_at += 1
        new = [f"{indent}:PROPERTIES:"]
        new += [f"{indent}:{k}: {v}" for k, v in properties.items()]
        new.append(f"{indent}:END:")
        lines[insert_at:insert_at] = new
        return "\n".join(lines)

    start, end = drawer
    pending = dict(properties)
    for i in range(start + 1, end):
        m = _PROPERTY_RE.match(lines[i])
        if m and m.group(1) in pending:
            lines[i] = f"{indent}:{m.group(1)}: {pending.pop(m.group(1))}"
    lines[end:end] = [f"{indent}:{k}: {v}" for k, v in pending.items()]
    return "\n".join(lines)
