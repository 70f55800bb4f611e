"""
Static TSX checks for generated components. Pure Python, no AI.

Only the client-directive patch changes code; every other check produces
warnings that are logged and returned, never raised.
"""

import re

# Indicators that a component must run on the client
CLIENT_INDICATORS = (
    "framer-motion",
    "useState",
    "useEffect",
    "useContext",
    "useReducer",
    "useRef",
    "useCallback",
    "useMemo",
    "useLayoutEffect",
    "useImperativeHandle",
    "addEventListener",
    "onClick",
    "onChange",
    "onSubmit",
    "onFocus",
    "onBlur",
    "window.",
    "document.",
)

CLIENT_DIRECTIVE = "'use client';"


def has_client_directive(code: str) -> bool:
    return "'use client'" in code or '"use client"' in code


def needs_client_directive(code: str) -> bool:
    """True when the code uses client-only APIs and lacks the directive."""
    return any(indicator in code for indicator in CLIENT_INDICATORS) and not has_client_directive(code)


def ensure_client_directive(code: str) -> str:
    """Prepend the client directive when needed. Purely syntactic."""
    if needs_client_directive(code):
        return f"{CLIENT_DIRECTIVE}\n\n{code}"
    return code


def check_component(filepath: str, code: str) -> list[dict]:
    """
    Lightweight checks on one generated TSX/TS file.

    Returns a list of {"file", "line", "type", "message"} warnings.
    """
    warnings = []
    if not filepath.endswith((".tsx", ".jsx", ".ts", ".js")):
        return warnings

    lines = code.split("\n")
    is_component = filepath.endswith((".tsx", ".jsx"))

    if is_component and not re.search(r"export\s+default\s+", code):
        warnings.append({
            "file": filepath,
            "line": 0,
            "type": "missing_default_export",
            "message": "No default export found — component won't be importable",
        })

    for i, line in enumerate(lines, 1):
        stripped = line.strip()
        if stripped.startswith(("//", "*", "/*")):
            continue
        if re.search(r'\bclass\s*=\s*["{]', line):
            warnings.append({
                "file": filepath,
                "line": i,
                "type": "class_not_classname",
                "message": "Use className= instead of class= in JSX",
            })
        if "<!--" in line:
            warnings.append({
                "file": filepath,
                "line": i,
                "type": "html_comment",
                "message": "HTML comment <!-- --> found — use {/* */} in JSX",
            })

    return warnings


def format_warnings(warnings: list[dict]) -> str:
    """Format check results into a human-readable string."""
    if not warnings:
        return "All checks passed."
    parts = [f"WARNINGS ({len(warnings)}):"]
    for w in warnings:
        line_str = f":{w['line']}" if w.get("line") else ""
        parts.append(f"  [{w['type']}] {w['file']}{line_str} — {w['message']}")
    return "\n".join(parts)
