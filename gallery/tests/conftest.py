"""Shared fixtures: a throwaway examples tree, a gallery config and a fake database."""

from __future__ import annotations

import json
from contextlib import contextmanager

import pytest

from gallery import db
from gallery.app import create_app
from gallery.config import GalleryConfig
from gallery.services import token_service


GALLERY = {
    "toolkits": {
        "classic": {
            "ext": "ext/build/ext-all-debug.js",
            "themes": {
                "neptune": {"css": "classic/neptune.css"},
                "triton": {"default": True, "css": "classic/triton.css"},
            },
        },
        "modern": {
            "ext": "ext/build/ext-modern-all-debug.js",
            "themes": {
                "material": {"default": True, "css": "modern/material.css", "js": "modern/material.js"},
                "triton": {"css": "modern/triton.css"},
            },
        },
    },
    "packages": {
        "charts": {
            "build": "packages/charts",
            "css": {
                "classic": {"triton": "classic/triton/charts-all.css"},
                "modern": {
                    "material": "modern/material/charts-all.css",
                    "triton": "modern/triton/charts-all.css",
                },
            },
        },
        "ux": {"build": "packages/ux"},
        "reactor": {"build": "packages/reactor"},
    },
    "defaultRequires": ["Ext.app.Util"],
}


def _write_example(root, name, package, files):
    directory = root / name
    directory.mkdir(parents=True)
    (directory / "package.json").write_text(json.dumps(package), encoding="utf-8")
    for filename, content in files.items():
        (directory / filename).write_text(content, encoding="utf-8")
    return directory


@pytest.fixture
def gallery_config():
    return GalleryConfig(json.loads(json.dumps(GALLERY)))


@pytest.fixture
def examples_dir(tmp_path):
    root = tmp_path / "examples"
    root.mkdir()
    _write_example(
        root,
        "grid/basic",
        {"sencha": {"title": "Basic Grid", "packages": ["charts", "ux"]}},
        {
            "app.js": "Ext.create('Ext.grid.Grid', {});",
            "index.html": "<div id=\"grid-holder\"></div>",
            "data.json": "{\"rows\": []}",
        },
    )
    _write_example(
        root,
        "app/launch",
        {"sencha": {"title": "Launch", "requires": ["Ext.panel.Panel"]}},
        {"app.js": "Ext.application({ name: 'Launch' });"},
    )
    _write_example(
        root,
        "reactor/demo",
        {"sencha": {"title": "Reactor", "packages": ["reactor"]}},
        {"app.js": "export default {};"},
    )
    return root


@pytest.fixture
def app(examples_dir, gallery_config):
    app = create_app({
        "TESTING": True,
        "EXAMPLES_DIR": examples_dir,
        "GALLERY": gallery_config,
    })
    return app


@pytest.fixture
def client(app):
    return app.test_client()


# ─────────────────────────────────────────────────────────────
# Fake database
# ─────────────────────────────────────────────────────────────
class FakeCursor:
    """
    Cursor stand-in. Each execute() consumes the next scripted result:
    {"one": row, "all": rows, "rowcount": n} or an Exception to raise.
    """

    def __init__(self, results=None):
        self.results = list(results or [])
        self.executed = []
        self.rowcount = 0
        self._one = None
        self._all = []

    def execute(self, sql, params=None):
        self.executed.append((" ".join(sql.split()), params))
        result = self.results.pop(0) if self.results else {}
        if isinstance(result, Exception):
            raise result
        self._one = result.get("one")
        self._all = result.get("all", [])
        self.rowcount = result.get("rowcount", 0)

    def fetchone(self):
        return self._one

    def fetchall(self):
        return self._all


class FakeDatabase:
    def __init__(self):
        self.cursor = FakeCursor()
        self.commits = 0
        self.rollbacks = 0

    def script(self, *results):
        self.cursor.results.extend(results)

    @property
    def executed(self):
        return self.cursor.executed

    @contextmanager
    def transaction(self):
        try:
            yield self.cursor
        except Exception:
            self.rollbacks += 1
            raise
        self.commits += 1


@pytest.fixture
def fake_db(monkeypatch):
    """Route every transaction() through one scripted FakeCursor."""
    fake = FakeDatabase()
    monkeypatch.setattr(db, "USE_DB", True)
    monkeypatch.setattr(db, "transaction", fake.transaction)
    monkeypatch.setattr(token_service, "transaction", fake.transaction)
    return fake


@pytest.fixture
def no_db(monkeypatch):
    monkeypatch.setattr(db, "USE_DB", False)
