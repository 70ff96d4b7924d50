"""Load a .env file for the mentor API and optionally run a command with it.

Usage:
  - From Python, before importing `main`: `from set_env_vars import load; load()`
  - Start the API with the .env loaded:
      python set_env_vars.py --exec python main.py

Keys the API reads: GEMINI_API_KEY (or GOOGLE_API_KEY), MONGO_URI, MONGO_DB,
plus the optional tuning keys listed in mentor/config.py.
"""
from __future__ import annotations

import os
import subprocess
from typing import Dict, List

REQUIRED_KEYS = ("GEMINI_API_KEY", "MONGO_URI", "MONGO_DB")

# accepted in place of the key they map to
_ALIASES = {"GEMINI_API_KEY": ("GOOGLE_API_KEY",)}


def _unquote(val: str) -> str:
    if len(val) >= 2 and val[0] == val[-1] and val[0] in ("\"", "'"):
        return val[1:-1]
    return val


def _parse_dotenv(path: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            for raw in fh:
                line = raw.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                if line.startswith("export "):
                    line = line[len("export "):]
                key, val = line.split("=", 1)
                pairs[key.strip()] = _unquote(val.strip())
    except FileNotFoundError:
        return {}
    return pairs


def load(path: str = ".env", override: bool = False) -> Dict[str, str]:
    """Copy key=value pairs from `path` into os.environ.

    Existing variables win unless `override` is set. Returns what was applied.
    """
    applied: Dict[str, str] = {}
    for k, v in _parse_dotenv(path).items():
        if override or k not in os.environ:
            os.environ[k] = v
            applied[k] = v
    return applied


def missing_keys(keys=REQUIRED_KEYS) -> List[str]:
    out = []
    for key in keys:
        names = (key,) + _ALIASES.get(key, ())
        if not any(os.environ.get(n) for n in names):
            out.append(key)
    return out


def run_command_with_env(cmd: list[str]) -> int:
    return subprocess.run(cmd, env=os.environ).returncode


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Load .env and optionally run a command with it.")
    parser.add_argument("--env-file", "-e", default=".env", help="Path to .env file")
    parser.add_argument("--override", action="store_true", help="Override existing env vars")
    parser.add_argument("--exec", "-x", nargs=argparse.REMAINDER, help="Command to run with env loaded")
    args = parser.parse_args()

    applied = load(args.env_file, override=args.override)
    for key in missing_keys():
        print(f"warning: {key} is not set")

    if args.exec:
        rc = run_command_with_env(args.exec)
        raise SystemExit(rc)
    else:
        # values may hold secrets, list names only
        print(f"Loaded {len(applied)} variable(s) from {args.env_file}: {', '.join(sorted(applied))}")
