"""
Tests for npm package allow-listing, mock modules and import rewriting.
"""

from livegen.models import GeneratedFile
from livegen.packages import (
    UnknownPackage, find_unknown_packages, is_allowed, is_external,
    package_name, package_stub_path, package_stubs, render_package_stub,
    rewrite_package_imports,
)
from livegen.validator import find_imports

APP = GeneratedFile("src/App.tsx", "\n".join([
    'import axios from "axios"',
    'import { useQuery } from "@tanstack/react-query"',
    'import { createRoot } from "react-dom/client"',
    'import fs from "node:fs"',
    'import { cn } from "@/lib/utils"',
    'import { motion } from "framer-motion"',
    'import Home from "./pages/Home"',
]))


# ── Detection ────────────────────────────────────────────────────────


class TestDetection:
    def test_package_name(self):
        assert package_name("react-dom/client") == "react-dom"
        assert package_name("@tanstack/react-query") == "@tanstack/react-query"
        assert package_name("@radix-ui/react-dialog/dist") == "@radix-ui/react-dialog"

    def test_is_external(self):
        assert is_external("axios")
        assert is_external("@tanstack/react-query")
        for spec in ("./x", "../x", "/x", "@/lib/utils", "~/x", "node:fs", "https://esm.sh/x"):
            assert not is_external(spec)

    def test_is_allowed(self):
        assert is_allowed("react-router-dom")
        assert is_allowed("path")
        assert not is_allowed("axios")

    def test_unknown_packages(self):
        unknown = find_unknown_packages([APP])
        assert [(u.name, u.names) for u in unknown] == [
            ("axios", ()),
            ("@tanstack/react-query", ("useQuery",)),
        ]
        assert unknown[0].from_file == "src/App.tsx"

    def test_names_merge_across_files(self):
        other = GeneratedFile("src/List.tsx", 'import { useMutation, useQuery } from "@tanstack/react-query"')
        unknown = find_unknown_packages([APP, other])
        query = [u for u in unknown if u.name == "@tanstack/react-query"][0]
        assert query.names == ("useQuery", "useMutation")
        assert query.from_file == "src/App.tsx"

    def test_non_source_files_ignored(self):
        assert find_unknown_packages([GeneratedFile("notes.md", 'import x from "axios"')]) == []


# ── Mock modules ─────────────────────────────────────────────────────


class TestMocks:
    def test_stub_path(self):
        assert package_stub_path("axios") == "src/stubs/axios.ts"
        assert package_stub_path("@tanstack/react-query") == "src/stubs/tanstack-react-query.ts"

    def test_keyword_mock_with_extra_names(self):
        pkg = UnknownPackage("src/App.tsx", "@tanstack/react-query", "@tanstack/react-query",
                             ("useQuery", "useInfiniteQuery"))
        text = render_package_stub(pkg)
        assert text.count("export const useQuery") == 1
        assert "export const useInfiniteQuery" in text
        assert "export default" in text

    def test_generic_mock(self):
        text = render_package_stub(UnknownPackage("src/App.tsx", "left-pad", "left-pad"))
        assert "export default (..._args: unknown[]): any => null" in text

    def test_mocks_import_nothing(self):
        for name in ("axios", "recharts", "dayjs", "react-hook-form", "swr", "left-pad"):
            text = render_package_stub(UnknownPackage("a.ts", name, name, ("x",)))
            assert find_imports(text) == []

    def test_one_stub_per_package(self):
        pkg = UnknownPackage("src/App.tsx", "axios", "axios")
        stubs = package_stubs([pkg, pkg._replace(from_file="src/B.tsx")])
        assert [s.path for s in stubs] == ["src/stubs/axios.ts"]


# ── Rewriting ────────────────────────────────────────────────────────


class TestRewrite:
    def test_rewrites_relative_to_importer(self):
        out = rewrite_package_imports(APP, ["axios", "@tanstack/react-query"])
        assert 'import axios from "./stubs/axios"' in out.content
        assert 'from "./stubs/tanstack-react-query"' in out.content
        assert 'from "react-dom/client"' in out.content

    def test_nested_importer(self):
        f = GeneratedFile("src/components/List.tsx", "import axios from 'axios'\nconst m = import('axios/lib')")
        out = rewrite_package_imports(f, ["axios"])
        assert "from '../stubs/axios'" in out.content
        assert "import('../stubs/axios')" in out.content

    def test_similar_names_untouched(self):
        f = GeneratedFile("src/App.tsx", 'import a from "axios-retry"')
        assert rewrite_package_imports(f, ["axios"]) is f

    def test_non_source_untouched(self):
        f = GeneratedFile("package.json", '"axios"')
        assert rewrite_package_imports(f, ["axios"]) is f
