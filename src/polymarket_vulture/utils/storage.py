from __future__ import annotations
import json
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel


def save_model(path: str, model: BaseModel) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(model.model_dump_json(indent=2))
    return p


def append_event(path: Optional[str], event: dict) -> None:
    if not path:
        return
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    event = {"ts": datetime.now(timezone.utc).isoformat(), **event}
    with p.open("a") as f:
        f.write(json.dumps(event, default=str) + "\n")
