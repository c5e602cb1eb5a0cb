"""Output helpers: JSON by default, compact text with --format table."""

import json


def output(data, formatter=None, fmt="json"):
    """Output data in requested format."""
    if fmt == "table" and formatter:
        print(formatter(data))
    else:
        print(json.dumps(data, indent=2, ensure_ascii=False))


def format_pairs_table(data):
    """Render {"kind": ..., "items": [{"id", "name"}, ...]} as aligned rows."""
    items = data.get("items", [])
    if not items:
        return f"No {data.get('kind', 'item')}s found."
    width = max(len(str(item["id"])) for item in items)
    lines = [f"{str(item['id']).rjust(width)}  {item['name']}" for item in items]
    lines.append("")
    lines.append(f"Total: {len(items)}")
    return "\n".join(lines)


def format_states_table(data):
    """Render workflows with their states, one state per line."""
    workflows = data.get("workflows", [])
    if not workflows:
        return "No workflows found."
    lines = []
    for workflow in workflows:
        lines.append(f"{workflow['name']} ({workflow['id']}):")
        for state in workflow.get("states", []):
            lines.append(f"  {state['id']:>8}  {state['name']}")
    return "\n".join(lines)


def format_outcome(data):
    """One-line summary of a sync outcome."""
    status = data.get("status", "")
    prefix = "OK" if data.get("ok") else "REFUSED"
    line = f"{prefix}: {data.get('action', '')} {status}: {data.get('message', '')}"
    if data.get("url"):
        line += f"\n  {data['url']}"
    return line
