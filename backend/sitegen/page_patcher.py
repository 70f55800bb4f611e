"""
Best-effort patching of the entry page (src/app/page.tsx).

This is a text insertion contract, not a parser:

  imports  — inserted after the last line starting with ``import``; at the top
             (below a leading 'use client' directive) when there is none.
  usages   — inserted before the first ``</main>``; failing that, before the
             last ``</div>`` in the file. With neither anchor the usage is
             skipped and a warning is logged.

Both insertions are skipped when the exact text is already present, so
patching the same component twice leaves the page unchanged. A component
whose identifier is already bound by another import gets a numeric suffix
(Hero2, Hero3, ...) used for both its import and its usage.
"""

from dataclasses import dataclass
import logging
import os
import re

from sitegen.errors import ProjectFileError


logger = logging.getLogger(__name__)

_IMPORT_LINE_RE = re.compile(r"^import\s.*$", re.MULTILINE)
_DIRECTIVE_RE = re.compile(r"""^\s*['"]use client['"];?[ \t]*\n?""")
_DEFAULT_IMPORT_RE = re.compile(r"^import\s+(\w+)", re.MULTILINE)
_NAMED_IMPORT_RE = re.compile(r"^import\s+(?:\w+\s*,\s*)?\{([^}]*)\}", re.MULTILINE)


@dataclass
class PatchOutcome:
    import_added: bool = False
    usage_added: bool = False
    anchor: str | None = None  # "main", "div" or None when no anchor matched
    skipped: str | None = None  # reason the page was left alone
    identifier: str | None = None  # local name the component is rendered under


def imported_names(source: str) -> set[str]:
    """Local names bound by default and named imports in the page."""
    names = set(_DEFAULT_IMPORT_RE.findall(source))
    for group in _NAMED_IMPORT_RE.findall(source):
        for item in group.split(","):
            item = item.strip()
            if item:
                names.add(item.split(" as ")[-1].strip())
    return names


def choose_local_name(source: str, identifier: str, import_path: str) -> str:
    """
    Name to import the component under.

    Reuses the name of an existing default import of the same path, otherwise
    suffixes the identifier until it no longer clashes with another import.
    """
    existing = re.search(
        rf"^import\s+(\w+)\s+from\s+['\"]{re.escape(import_path)}['\"]", source, re.MULTILINE,
    )
    if existing:
        return existing.group(1)

    taken = imported_names(source)
    name = identifier
    count = 1
    while name in taken:
        count += 1
        name = f"{identifier}{count}"
    return name


def insert_import(source: str, statement: str) -> tuple[str, bool]:
    if statement in source:
        return source, False

    last = None
    for last in _IMPORT_LINE_RE.finditer(source):
        pass
    if last is not None:
        pos = last.end()
        return source[:pos] + "\n" + statement + source[pos:], True

    directive = _DIRECTIVE_RE.match(source)
    if directive:
        pos = directive.end()
        prefix = source[:pos] if source[:pos].endswith("\n") else source[:pos] + "\n"
        return prefix + statement + "\n" + source[pos:], True
    return statement + "\n" + source, True


def insert_usage(source: str, usage: str) -> tuple[str, bool, str | None]:
    if usage in source:
        return source, False, None

    main_close = source.find("</main>")
    if main_close != -1:
        return source[:main_close] + f"  {usage}\n    " + source[main_close:], True, "main"

    # No main element: fall back to the last closing div
    pos = source.rfind("</div>")
    if pos != -1:
        return source[:pos] + f"\n        {usage}\n      " + source[pos:], True, "div"

    return source, False, None


def patch_page(page_path: str, identifier: str, import_path: str) -> PatchOutcome:
    """Import and render one component in the entry page, best effort."""
    if not os.path.isfile(page_path):
        logger.warning(f"[page-patch] Cannot update page — file not found: {page_path}")
        return PatchOutcome(skipped="page not found")

    try:
        with open(page_path, "r", encoding="utf-8") as f:
            source = f.read()
    except OSError as e:
        raise ProjectFileError("read page", page_path, e) from e

    local_name = choose_local_name(source, identifier, import_path)
    if local_name != identifier:
        logger.info(f"[page-patch] {identifier} is already imported, using {local_name} for {import_path}")
    statement = f"import {local_name} from '{import_path}';"
    usage = f"<{local_name} />"

    patched, import_added = insert_import(source, statement)
    patched, usage_added, anchor = insert_usage(patched, usage)

    if not usage_added and usage not in patched:
        logger.warning(f"[page-patch] No insertion anchor for <{local_name} /> — import added without usage")

    if patched != source:
        try:
            with open(page_path, "w", encoding="utf-8") as f:
                f.write(patched)
        except OSError as e:
            raise ProjectFileError("write page", page_path, e) from e
        logger.info(f"[page-patch] Updated page with {local_name}")

    return PatchOutcome(import_added=import_added, usage_added=usage_added, anchor=anchor, identifier=local_name)
