# portalbot/ai/training_data.py
import json
import pathlib
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

DATA = pathlib.Path(__file__).resolve().parent / "data"
DEFAULT_INTENTS_FILE = DATA / "intents.json"


@dataclass
class TrainingData:
    examples: List[Tuple[str, str]] = field(default_factory=list)
    responses: Dict[str, List[str]] = field(default_factory=dict)


def parse_training_data(doc: dict) -> TrainingData:
    data = TrainingData()
    for category in doc.get("intents", []):
        intent = category["intent"]
        for pattern in category.get("patterns", []):
            data.examples.append((pattern, intent))
        data.responses[intent] = list(category.get("responses", []))
    return data


def load_training_data(path: str | pathlib.Path | None = None) -> TrainingData:
    with open(path or DEFAULT_INTENTS_FILE, encoding="utf-8") as f:
        return parse_training_data(json.load(f))
