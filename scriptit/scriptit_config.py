"""
Interpreter configuration, read from YAML.

Lookup order: the file named by SCRIPTIT_CONFIG, then ./scriptit.yaml,
then built-in defaults. SCRIPTIT_DEBUG turns on debug tracing regardless.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_ENV = "SCRIPTIT_CONFIG"
DEBUG_ENV = "SCRIPTIT_DEBUG"
DEFAULT_CONFIG_FILE = "scriptit.yaml"


def default_constants() -> Dict[str, Any]:
    return {"PI": 3.14159265, "e": 2.7182818}


@dataclass
class InterpreterConfig:
    constants: Dict[str, Any] = field(default_factory=default_constants)
    max_call_depth: int = 800
    debug: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> 'InterpreterConfig':
        cfg = cls()
        if not data:
            return cfg
        if not isinstance(data, dict):
            raise ValueError("scriptit config must be a mapping")
        constants = data.get("constants")
        if constants is not None:
            if not isinstance(constants, dict):
                raise ValueError("'constants' must be a mapping of name to value")
            cfg.constants = dict(constants)
        if "max_call_depth" in data:
            cfg.max_call_depth = int(data["max_call_depth"])
            if cfg.max_call_depth < 1:
                raise ValueError("'max_call_depth' must be positive")
        if "debug" in data:
            cfg.debug = bool(data["debug"])
        return cfg

    @classmethod
    def load(cls, path: Optional[str] = None) -> 'InterpreterConfig':
        if path is None:
            path = os.environ.get(CONFIG_ENV)
        if path is None and Path(DEFAULT_CONFIG_FILE).is_file():
            path = DEFAULT_CONFIG_FILE
        data = None
        if path is not None:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        cfg = cls.from_mapping(data)
        if os.environ.get(DEBUG_ENV):
            cfg.debug = True
        return cfg
