"""Unit tests for entry-page patching."""
import logging

from sitegen.page_patcher import choose_local_name, insert_import, insert_usage, patch_page
from sitegen.project_assembler import ROOT_PAGE_TSX


IMPORT = "import Hero from '../components/Hero';"


class TestInsertImport:

    def test_after_last_import(self):
        source = "import a from 'a';\nimport b from 'b';\n\nexport default function Home() {}\n"
        patched, added = insert_import(source, IMPORT)
        assert added
        lines = patched.splitlines()
        assert lines[:3] == ["import a from 'a';", "import b from 'b';", IMPORT]

    def test_below_client_directive(self):
        source = "'use client';\nexport default function Home() {}\n"
        patched, added = insert_import(source, IMPORT)
        assert added
        assert patched.splitlines()[:2] == ["'use client';", IMPORT]

    def test_top_of_file(self):
        patched, added = insert_import(ROOT_PAGE_TSX, IMPORT)
        assert added
        assert patched.startswith(IMPORT + "\n")

    def test_already_present(self):
        source = IMPORT + "\n" + ROOT_PAGE_TSX
        assert insert_import(source, IMPORT) == (source, False)


class TestInsertUsage:

    def test_before_main_close(self):
        patched, added, anchor = insert_usage(ROOT_PAGE_TSX, "<Hero />")
        assert added and anchor == "main"
        assert patched.index("<Hero />") < patched.index("</main>")

    def test_insertion_order_follows_calls(self):
        patched, _, _ = insert_usage(ROOT_PAGE_TSX, "<Hero />")
        patched, _, _ = insert_usage(patched, "<Footer />")
        assert patched.index("<Hero />") < patched.index("<Footer />") < patched.index("</main>")

    def test_falls_back_to_last_div(self):
        source = "export default function Home() { return <div><div>a</div></div>; }\n"
        patched, added, anchor = insert_usage(source, "<Hero />")
        assert added and anchor == "div"
        assert patched.index("<Hero />") > patched.index("a</div>")
        assert patched.rstrip().endswith("</div>; }")

    def test_no_anchor_is_skipped(self):
        source = "export default function Home() { return <section />; }\n"
        assert insert_usage(source, "<Hero />") == (source, False, None)

    def test_already_present(self):
        patched, _, _ = insert_usage(ROOT_PAGE_TSX, "<Hero />")
        assert insert_usage(patched, "<Hero />") == (patched, False, None)


class TestPatchPage:

    def test_patch_twice_is_stable(self, tmp_path):
        page = tmp_path / "page.tsx"
        page.write_text(ROOT_PAGE_TSX, encoding="utf-8")

        outcome = patch_page(str(page), "Hero", "../components/Hero")
        once = page.read_text(encoding="utf-8")
        second = patch_page(str(page), "Hero", "../components/Hero")

        assert outcome.import_added and outcome.usage_added
        assert not second.import_added and not second.usage_added
        assert page.read_text(encoding="utf-8") == once

    def test_missing_page_is_skipped(self, tmp_path):
        outcome = patch_page(str(tmp_path / "page.tsx"), "Hero", "../components/Hero")
        assert outcome.skipped == "page not found"

    def test_no_anchor_logs_and_keeps_import(self, tmp_path, caplog):
        page = tmp_path / "page.tsx"
        page.write_text("export default function Home() { return null; }\n", encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="sitegen.page_patcher"):
            outcome = patch_page(str(page), "Hero", "../components/Hero")

        assert outcome.import_added
        assert not outcome.usage_added
        assert IMPORT in page.read_text(encoding="utf-8")
        assert any("No insertion anchor" in r.getMessage() for r in caplog.records)

    def test_clashing_identifier_gets_suffix(self, tmp_path):
        page = tmp_path / "page.tsx"
        page.write_text(ROOT_PAGE_TSX, encoding="utf-8")

        patch_page(str(page), "Hero", "../components/Hero")
        outcome = patch_page(str(page), "Hero", "../components/ui/Hero")
        once = page.read_text(encoding="utf-8")
        again = patch_page(str(page), "Hero", "../components/ui/Hero")

        assert outcome.identifier == "Hero2"
        assert "import Hero2 from '../components/ui/Hero';" in once
        assert once.count("import Hero from") == 1
        assert once.index("<Hero />") < once.index("<Hero2 />")
        assert again.identifier == "Hero2"
        assert page.read_text(encoding="utf-8") == once

    def test_named_imports_count_as_taken(self):
        source = "import React, { useState as Hero } from 'react';\nimport Hero2 from '../components/hero2';\n"
        assert choose_local_name(source, "Hero", "../components/Hero") == "Hero3"
        assert choose_local_name(source, "Hero2", "../components/hero2") == "Hero2"
