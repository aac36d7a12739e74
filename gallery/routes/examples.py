"""
Example routes - Render example pages and serve their files.

Page routes (mounted at EXAMPLES_URL_PREFIX, default /examples):
- GET /examples/ - Gallery index
- GET /examples/<name> - Rendered example page
- GET /examples/<name>/app.js - app.js wrapped for the page
- GET /examples/<name>/<file> - Static example files

API routes (mounted at /api/examples):
- GET /api/examples - List examples
- GET /api/examples/<name> - Page context as JSON
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    abort,
    current_app,
    jsonify,
    render_template,
    request,
    send_from_directory,
)

from gallery.middleware import error_response, no_cache
from gallery.services.example_service import (
    APP_FILE,
    PACKAGE_FILE,
    ExampleError,
    ExampleLoader,
    ExamplePage,
)

logger = logging.getLogger("gallery.examples")

bp = Blueprint("examples", __name__)
api_bp = Blueprint("examples_api", __name__)


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────
def _loader() -> ExampleLoader:
    return ExampleLoader(current_app.config["EXAMPLES_DIR"])


def _page() -> ExamplePage:
    return ExamplePage(
        request.args,
        current_app.config["GALLERY"],
        current_app.config["EXAMPLES_DIR"],
        url_prefix=current_app.config["EXAMPLES_URL_PREFIX"],
        default_toolkit=current_app.config["DEFAULT_TOOLKIT"],
    )


def _handle_example_error(e: ExampleError):
    logger.info("[EXAMPLE] %s %s -> %s: %s", request.method, request.path, e.code, e)
    return error_response(e.code, str(e), e.status)


bp.register_error_handler(ExampleError, _handle_example_error)
api_bp.register_error_handler(ExampleError, _handle_example_error)


def _is_example_dir(path: Path) -> bool:
    return path.is_dir() and (path / PACKAGE_FILE).is_file()


def _context(name: str) -> dict:
    loader = _loader()
    lookup = loader.resolve(name)
    example = loader.read_package(lookup)
    return _page().prepare_for_index(lookup, loader.entries(lookup), example)


@no_cache
def _render_example(name: str):
    context = _context(name)
    return render_template(
        "example.html",
        name=name,
        assets_url=current_app.config["ASSETS_URL"],
        **context,
    )


@no_cache
def _render_app_js(name: str):
    loader = _loader()
    lookup = loader.resolve(name)
    example = loader.read_package(lookup)
    page = _page()

    app_file = lookup / APP_FILE
    code = page.load_file(app_file) if app_file.is_file() else ""

    return Response(page.build_app_js(code, example), mimetype="application/javascript")


# ─────────────────────────────────────────────────────────────
# Pages
# ─────────────────────────────────────────────────────────────
@bp.route("/")
def gallery_index():
    """List every example with a link to its page."""
    return render_template(
        "index.html",
        examples=_loader().list_examples(),
        url_prefix=current_app.config["EXAMPLES_URL_PREFIX"],
    )


@bp.route("/<path:subpath>")
def serve_example(subpath):
    """
    Dispatch within the examples directory:
    - an example directory renders the page
    - <example>/app.js returns the wrapped source
    - anything else is served as a static file

    Only the generated page and app.js are marked no-store; static files
    keep the default conditional caching of send_from_directory.
    """
    root = Path(current_app.config["EXAMPLES_DIR"]).resolve()
    name = subpath.strip("/")
    candidate = (root / name).resolve()

    try:
        candidate.relative_to(root)
    except ValueError:
        abort(404)

    if _is_example_dir(candidate):
        return _render_example(name)

    if candidate.name == APP_FILE and _is_example_dir(candidate.parent):
        return _render_app_js(candidate.parent.relative_to(root).as_posix())

    # send_from_directory rejects unsafe paths and missing files with 404
    return send_from_directory(root, name)


# ─────────────────────────────────────────────────────────────
# API
# ─────────────────────────────────────────────────────────────
@api_bp.route("", methods=["GET"])
def list_examples():
    examples = _loader().list_examples()
    return jsonify({"examples": examples, "count": len(examples)})


@api_bp.route("/<path:name>", methods=["GET"])
@no_cache
def example_context(name):
    """Page context of an example as JSON (same data the page renders)."""
    return jsonify(_context(name))
