"""
Example Service - Assembles everything needed to render an example page.

An example is a directory under EXAMPLES_DIR with:
- package.json: {"sencha": {"title", "packages", "requires"}, "assets", "mockdata"}
- app.js: the example source
- index.html (optional): custom body markup
- any other static assets

Page assembly resolves, from the gallery configuration object and the
request's query string:
- toolkit (?toolkit=, default "modern") and its framework file
- theme (?theme=, default: the theme flagged "default" for the toolkit)
- per-package assets (css for the toolkit/theme, or the bare package name)
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from gallery.config import GalleryConfig

logger = logging.getLogger("gallery.examples")

APP_WRAPPER_RE = re.compile(r"(Ext\.onReady\(|Ext\.application\(|Ext\.setup\()")

REACTOR_APP_JS = """Ext.onReady(function () {
    require('app.js');
});"""

PACKAGE_FILE = "package.json"
INDEX_FILE = "index.html"
APP_FILE = "app.js"


# ─────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────
class ExampleError(Exception):
    """Base class for example errors; carries an API code and HTTP status."""

    code = "EXAMPLE_ERROR"
    status = 400


class ExampleNotFoundError(ExampleError):
    code = "EXAMPLE_NOT_FOUND"
    status = 404


class UnknownToolkitError(ExampleError):
    code = "UNKNOWN_TOOLKIT"


class UnknownThemeError(ExampleError):
    code = "UNKNOWN_THEME"


class UnknownPackageError(ExampleError):
    code = "UNKNOWN_PACKAGE"


# ─────────────────────────────────────────────────────────────
# Locating examples on disk
# ─────────────────────────────────────────────────────────────
class ExampleLoader:
    """Finds example directories and reads their metadata."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def resolve(self, name: str) -> Path:
        """
        Map an example name ("charts/area") to its directory.
        Raises ExampleNotFoundError for unknown names or paths escaping the root.
        """
        lookup = (self.root / name.strip("/")).resolve()
        try:
            lookup.relative_to(self.root)
        except ValueError:
            raise ExampleNotFoundError(f"Example {name!r} not found")
        if not (lookup / PACKAGE_FILE).is_file():
            raise ExampleNotFoundError(f"Example {name!r} not found")
        return lookup

    def read_package(self, lookup: Path) -> Dict[str, Any]:
        """Parse the example's package.json."""
        try:
            with open(lookup / PACKAGE_FILE, "r", encoding="utf-8") as fh:
                example = json.load(fh)
        except json.JSONDecodeError as e:
            raise ExampleError(f"Invalid {PACKAGE_FILE} in {lookup.name}: {e}")
        if not isinstance(example, dict):
            raise ExampleError(f"{PACKAGE_FILE} in {lookup.name} must contain a JSON object")
        example.setdefault("sencha", {})
        return example

    def entries(self, lookup: Path) -> List[str]:
        """File names directly inside the example directory."""
        return sorted(p.name for p in lookup.iterdir())

    def list_examples(self) -> List[Dict[str, Any]]:
        """All examples under the root, sorted by name."""
        if not self.root.is_dir():
            return []

        examples = []
        for package_file in self.root.rglob(PACKAGE_FILE):
            if "node_modules" in package_file.parts:
                continue
            lookup = package_file.parent
            if lookup == self.root:
                continue
            try:
                example = self.read_package(lookup)
            except ExampleError as e:
                logger.warning("[EXAMPLE] Skipping %s: %s", lookup, e)
                continue
            examples.append({
                "name": lookup.relative_to(self.root).as_posix(),
                "title": example["sencha"].get("title"),
                "packages": example["sencha"].get("packages") or [],
            })
        examples.sort(key=lambda e: e["name"])
        return examples


# ─────────────────────────────────────────────────────────────
# Page assembly
# ─────────────────────────────────────────────────────────────
class ExamplePage:
    """
    Request-scoped helper that builds the render context of one example.

    Args:
        query: The request's query args (?toolkit=, ?theme=)
        gallery: The gallery configuration object
        examples_dir: Root of all examples (for base URLs)
        url_prefix: URL path the examples directory is mounted at
        default_toolkit: Toolkit used when the query names none
    """

    def __init__(
        self,
        query: Mapping[str, str],
        gallery: GalleryConfig,
        examples_dir: Union[str, Path],
        url_prefix: str = "/examples",
        default_toolkit: str = "modern",
    ):
        self.query = query
        self.gallery = gallery
        self.examples_dir = Path(examples_dir).resolve()
        self.url_prefix = "/" + url_prefix.strip("/")
        self.default_toolkit = default_toolkit

    def load_file(self, file_path: Union[str, Path]) -> str:
        """Return the raw UTF-8 source of a file. I/O errors propagate."""
        with open(file_path, "r", encoding="utf-8") as fh:
            return fh.read()

    # ─────────────────────────────────────────────────────────
    # Toolkit / theme resolution
    # ─────────────────────────────────────────────────────────
    def _toolkit_config(self, toolkit: str) -> Dict[str, Any]:
        toolkits = self.gallery.get("toolkits") or {}
        framework = toolkits.get(toolkit)
        if framework is None:
            raise UnknownToolkitError(f"Unknown toolkit {toolkit!r}")
        return framework

    def _themes(self, toolkit: str) -> Dict[str, Any]:
        return self._toolkit_config(toolkit).get("themes") or {}

    def get_toolkit(self) -> str:
        return self.query.get("toolkit") or self.default_toolkit

    def get_toolkit_framework(self, toolkit: str) -> Optional[str]:
        """The framework JavaScript file for the toolkit."""
        return self._toolkit_config(toolkit).get("ext")

    def get_theme_name(self, toolkit: str) -> Optional[str]:
        """?theme= when given, otherwise the toolkit's default theme name."""
        if self.query.get("theme"):
            return self.query["theme"]

        for name, theme in self._themes(toolkit).items():
            if theme.get("default"):
                return name
        return None

    def get_toolkit_theme(self, toolkit: str, theme: Optional[str]) -> Optional[Dict[str, Any]]:
        """The theme descriptor for `theme` within `toolkit`."""
        if theme is None:
            return None
        themes = self._themes(toolkit)
        if theme not in themes:
            raise UnknownThemeError(f"Unknown theme {theme!r} for toolkit {toolkit!r}")
        return themes[theme]

    def get_default_theme(self, toolkit: str) -> Optional[Dict[str, Any]]:
        """The descriptor of the theme flagged as default, if any."""
        for theme in self._themes(toolkit).values():
            if theme.get("default"):
                return theme
        return None

    def get_package_assets(
        self,
        example_packages: Any,
        toolkit: str,
        theme: Optional[str],
    ) -> Optional[List[Union[str, Dict[str, str]]]]:
        """
        Map each package the example uses to what the page must load:
        {"css": <build>/<toolkit>/<file>} for themed packages, else the name.
        """
        if not isinstance(example_packages, list):
            return None

        packages = self.gallery.get("packages") or {}
        assets = []
        for name in example_packages:
            pkg = packages.get(name)
            if pkg is None:
                raise UnknownPackageError(f"Unknown package {name!r}")

            css = pkg.get("css")
            if css:
                theme_files = css.get(toolkit) or {}
                if theme not in theme_files:
                    raise UnknownThemeError(
                        f"Package {name!r} has no css for {toolkit!r}/{theme!r}"
                    )
                assets.append({"css": posixpath.join(pkg["build"], toolkit, theme_files[theme])})
            else:
                assets.append(name)
        return assets

    # ─────────────────────────────────────────────────────────
    # app.js building
    # ─────────────────────────────────────────────────────────
    def has_reactor(self, example: Optional[Dict[str, Any]]) -> bool:
        packages = ((example or {}).get("sencha") or {}).get("packages")
        return bool(packages) and "reactor" in packages

    def build_app_js(self, code: Optional[str], example: Optional[Dict[str, Any]]) -> str:
        """
        Wrap app.js source in Ext.onReady unless it already boots itself
        (Ext.onReady / Ext.application / Ext.setup), then add Ext.require.
        Reactor examples load app.js through a stub instead.
        """
        if self.has_reactor(example):
            code = REACTOR_APP_JS
        elif code and not APP_WRAPPER_RE.search(code):
            code = f"Ext.onReady(function () {{\n\n{code}\n\n}});"

        return self.build_requires(code or "", example)

    def build_requires(self, code: str, example: Optional[Dict[str, Any]]) -> str:
        """
        Prefix code with an Ext.require() of the example's required classes,
        merged with the gallery's defaultRequires. Does not mutate `example`.
        """
        default_requires = self.gallery.get("defaultRequires") or []
        sencha = (example or {}).get("sencha") or {}
        requires = list(sencha.get("requires") or [])

        if default_requires:
            if not requires:
                requires = list(default_requires)
            elif "Ext.app.Util" not in requires:
                requires.extend(default_requires)

        if not requires:
            return code

        lines = ",\n".join(f"    '{required}'" for required in requires)
        return f"Ext.require([\n{lines}\n], function () {{\n{code}\n}});"

    # ─────────────────────────────────────────────────────────
    # Page context
    # ─────────────────────────────────────────────────────────
    def path_to_base_url(self, lookup: Union[str, Path]) -> str:
        """URL of the example directory, always ending in '/'."""
        try:
            rel = Path(lookup).resolve().relative_to(self.examples_dir)
        except ValueError:
            raise ExampleNotFoundError(f"{lookup} is outside the examples directory")
        rel_posix = rel.as_posix()
        if rel_posix == ".":
            return f"{self.url_prefix}/"
        return f"{self.url_prefix}/{rel_posix}/"

    def prepare_for_index(
        self,
        lookup: Union[str, Path],
        entries: Optional[List[str]],
        example: Dict[str, Any],
        body: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Build the render context of an example page:
        {base, body, framework, packages, theme, title, toolkit}.

        When the example ships an index.html and no body was passed,
        its contents become the body.
        """
        if entries is None:
            entries = list(example.get("assets") or []) + list(example.get("mockdata") or [])

        if INDEX_FILE in entries and body is None:
            body = self.load_file(Path(lookup) / INDEX_FILE)

        sencha = example.get("sencha") or {}

        base = self.path_to_base_url(lookup)
        toolkit = self.get_toolkit()
        framework = self.get_toolkit_framework(toolkit)
        theme_name = self.get_theme_name(toolkit)
        theme = self.get_toolkit_theme(toolkit, theme_name)
        packages = self.get_package_assets(sencha.get("packages"), toolkit, theme_name)

        return {
            "base": base,
            "body": body,
            "framework": framework,
            "packages": packages,
            "theme": theme,
            "title": sencha.get("title"),
            "toolkit": toolkit,
        }
