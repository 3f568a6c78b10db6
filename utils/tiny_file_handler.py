import json
import os
from pathlib import Path


def load_json_file(filename):
    try:
        with open(filename, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return {}


def save_json_file(filename, data):
    parent = os.path.dirname(filename)
    if parent:
        Path(parent).mkdir(parents=True, exist_ok=True)
    with open(filename, "w", encoding="utf-8") as f:
        f.write(json.dumps(data, ensure_ascii=False, default=str))


def remove_json_file(filename) -> bool:
    try:
        os.remove(filename)
        return True
    except FileNotFoundError:
        return False
