"""Configuration loading: YAML file deep-merged over built-in defaults."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError
from .logging import get_logger


log = get_logger("config")

DEFAULT_CONFIG_PATH = "configs/base.yaml"

DEFAULTS: Dict[str, Any] = {
    "project": {
        "dev_root": "tmp",
        "prod_root": "build",
        "log_file": None,
    },
    "paths": {
        "pages": "site/pages/**/*.njk",
        "templates": ["site"],
        "styles": "site/scss/index.scss",
        "style_includes": ["site/blocks", "site/components", "site/scss/core"],
        "scripts": "site/js/index.js",
        "assets": "site/assets/**/*",
    },
    "watch": {
        "interval": 0.3,
        "polling": False,
        "bindings": [
            {"patterns": ["site/**/*.njk"], "task": "html"},
            {"patterns": ["site/**/*.scss"], "task": "styles"},
            {"patterns": ["site/**/*.js"], "task": "scripts"},
            {"patterns": ["site/assets/**/*.*"], "task": "assets"},
        ],
    },
    "serve": {
        "host": "127.0.0.1",
        "port": 3000,
        "open": True,
        "cors": True,
    },
    "scripts": {
        "esbuild": "esbuild",
    },
    "images": {
        "jpeg_quality": 75,
        "png_colors": 256,
    },
    "validate": {
        "checker_url": "https://validator.w3.org/nu/?out=json",
        "timeout": None,
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out


def check_roots(params: dict) -> None:
    """Dev and prod output roots must never share a path."""
    dev = Path(params["project"]["dev_root"]).resolve()
    prod = Path(params["project"]["prod_root"]).resolve()
    if dev == prod or dev in prod.parents or prod in dev.parents:
        raise ConfigError(
            f"dev_root ({dev}) and prod_root ({prod}) must be disjoint directories"
        )


def load_config(path: str | Path | None = None) -> dict:
    load_dotenv(find_dotenv(usecwd=True))
    explicit = path is not None or "SITEBUILD_CONFIG" in os.environ
    p = Path(path or os.getenv("SITEBUILD_CONFIG", DEFAULT_CONFIG_PATH))
    user: dict = {}
    if p.exists():
        with open(p, "r", encoding="utf-8") as f:
            try:
                user = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {p}: {e}") from e
        if not isinstance(user, dict):
            raise ConfigError(f"Config root must be a mapping: {p}")
    elif explicit:
        raise ConfigError(f"Config file not found: {p}")
    else:
        log.warning("No config at %s, using built-in defaults", p)
    params = deep_merge(DEFAULTS, user)
    check_roots(params)
    return params
