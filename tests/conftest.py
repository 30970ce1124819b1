"""Pytest configuration and fixtures for codemap tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Point the config file at a throwaway directory for every test."""
    home = tmp_path_factory.mktemp("codemap_home")
    monkeypatch.setattr("codemap_cli.config.BASE_DIR", home)
    monkeypatch.setattr("codemap_cli.config.CONFIG_FILE", home / "config.toml")
    return home


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def write_files(temp_dir: Path) -> Callable[[Dict[str, str]], Dict[str, str]]:
    """Write ``{relative name: source}`` into the temp dir; returns name -> path."""

    def _write(files: Dict[str, str]) -> Dict[str, str]:
        paths = {}
        for name, source in files.items():
            target = temp_dir / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(source, encoding="utf-8")
            paths[name] = str(target)
        return paths

    return _write


@pytest.fixture
def sample_js_files(sample_project_path: Path) -> list:
    """The JavaScript part of the sample project, in build order."""
    js = sample_project_path / "js"
    return [str(js / "animal.js"), str(js / "dog.js"), str(js / "helpers" / "index.js")]


@pytest.fixture
def sample_ts_files(sample_project_path: Path) -> list:
    ts = sample_project_path / "ts"
    return [str(ts / "shapes.ts"), str(ts / "circle.ts")]


@pytest.fixture
def sample_python_files(sample_project_path: Path) -> list:
    pkg = sample_project_path / "pkg"
    return [str(pkg / "__init__.py"), str(pkg / "models.py"), str(pkg / "service.py")]


@pytest.fixture
def sample_js_code() -> str:
    """Sample JavaScript for scanner tests."""
    return '''import React, { useState as useLocalState } from 'react';
import * as api from './api';
import './styles.css';
const { readFile, join: joinPath } = require('fs');

/**
 * Add two numbers.
 * @param {number} a first
 * @param {number} b second
 * @returns {number}
 */
export async function add(a, b = 1) {
  const label = "} not a brace";
  return api.sum(a, b);
}

export const double = x => x * 2;

const LIMITS = [1, 2, 3];

function* ids() {
  yield 1;
}

class Counter extends React.Component {
  static defaults = { step: 1 };
  count = 0;

  increment = () => {
    this.setState({ count: this.count + 1 });
  };

  render() {
    return <div>{this.count}</div>;
  }
}

export default Counter;
'''
