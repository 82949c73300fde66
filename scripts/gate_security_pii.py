#!/usr/bin/env python3
"""Gate: secrets and message content must never reach the logs.

Fails if:
- print( found in runtime code (src/**)
- A logger call mentions a secret or message-content name without going
  through safe_log_context / redact_value / redact_string / fingerprint

Logger calls are found with ``ast`` so multi-line calls are checked as a whole.

Usage:
    python scripts/gate_security_pii.py
"""

import ast
import sys
from pathlib import Path

# Names that carry API keys, webhook credentials or notification content
SENSITIVE_NAMES = (
    "api_key",
    "secret",
    "webhook_url",
    "sender_email",
    "sender_name",
    "request.body",
    "payload",
    "response.text",
)

LOG_METHODS = frozenset({"debug", "info", "warning", "error", "critical", "exception"})

REDACTION_HELPERS = (
    "safe_log_context",
    "redact_value",
    "redact_string",
    "fingerprint",
)


def _is_logger_call(node: ast.Call) -> bool:
    func = node.func
    return (
        isinstance(func, ast.Attribute)
        and func.attr in LOG_METHODS
        and isinstance(func.value, ast.Name)
        and func.value.id == "logger"
    )


def _is_print_call(node: ast.Call) -> bool:
    return isinstance(node.func, ast.Name) and node.func.id == "print"


def check_source(source: str, filename: str = "<string>") -> list[str]:
    """Check one module's source. Returns a list of violation messages."""
    tree = ast.parse(source, filename=filename)
    errors: list[str] = []

    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue

        if _is_print_call(node):
            errors.append(f"{filename}:{node.lineno}: print() not allowed in runtime code")
            continue

        if not _is_logger_call(node):
            continue

        segment = ast.get_source_segment(source, node) or ""
        if any(helper in segment for helper in REDACTION_HELPERS):
            continue
        for name in SENSITIVE_NAMES:
            if name in segment:
                errors.append(
                    f"{filename}:{node.lineno}: logger call with '{name}' "
                    "must use redaction (safe_log_context/redact_value)"
                )

    return errors


def check_file(filepath: Path) -> list[str]:
    try:
        source = filepath.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []
    return check_source(source, str(filepath))


def main() -> int:
    """Run gate check on src directory."""
    src_dir = Path("src")
    if not src_dir.exists():
        src_dir = Path(__file__).parent.parent / "src"
    if not src_dir.exists():
        sys.stderr.write("Error: src directory not found\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))

    if all_errors:
        sys.stderr.write("PII gate FAILED - violations found:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("PII gate PASSED - no violations found\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
