# portalbot/ai/architecture.py
"""
Fixed network topology for the intent classifier.

The topology is a plain tuple of LayerSpec values. IntentNetwork builds
its torch modules from it and weight_manifest() derives the persisted
array order from it, so training, saving and loading all walk the same
list.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from math import prod
from typing import Any, Dict, List, Tuple

import torch
import torch.nn as nn
import torch.nn.functional as F

from .vectorizer import MAX_SEQUENCE_LENGTH

EMBEDDING_DIM = 64
RECURRENT_UNITS = 32
WEIGHT_DTYPE = "float32"


class LayerKind(str, Enum):
    EMBEDDING = "embedding"
    BIDIRECTIONAL = "bidirectional"
    GLOBAL_AVERAGE_POOLING = "global_average_pooling"
    DENSE = "dense"
    DROPOUT = "dropout"
    BATCH_NORMALIZATION = "batch_normalization"


@dataclass(frozen=True)
class LayerSpec:
    kind: LayerKind
    name: str
    params: Dict[str, Any] = field(default_factory=dict)

    def weight_shapes(self) -> List[Tuple[str, Tuple[int, ...]]]:
        """(array name, shape) for every array this layer persists, in order."""
        p = self.params
        if self.kind is LayerKind.EMBEDDING:
            return [("weight", (p["input_dim"], p["output_dim"]))]
        if self.kind is LayerKind.BIDIRECTIONAL:
            gates = 4 * p["units"]
            shapes = []
            for suffix in ("", "_reverse"):
                shapes += [
                    (f"weight_ih_l0{suffix}", (gates, p["input_dim"])),
                    (f"weight_hh_l0{suffix}", (gates, p["units"])),
                    (f"bias_ih_l0{suffix}", (gates,)),
                    (f"bias_hh_l0{suffix}", (gates,)),
                ]
            return shapes
        if self.kind is LayerKind.DENSE:
            return [("weight", (p["units"], p["input_dim"])), ("bias", (p["units"],))]
        if self.kind is LayerKind.BATCH_NORMALIZATION:
            n = p["num_features"]
            return [("weight", (n,)), ("bias", (n,)), ("running_mean", (n,)), ("running_var", (n,))]
        return []

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "name": self.name, "params": dict(self.params)}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LayerSpec":
        return cls(kind=LayerKind(raw["kind"]), name=raw["name"], params=dict(raw.get("params", {})))


Topology = Tuple[LayerSpec, ...]


@dataclass(frozen=True)
class WeightSpec:
    name: str
    shape: Tuple[int, ...]
    dtype: str = WEIGHT_DTYPE

    @property
    def size(self) -> int:
        return prod(self.shape)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "shape": list(self.shape), "dtype": self.dtype}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "WeightSpec":
        return cls(name=raw["name"], shape=tuple(int(d) for d in raw["shape"]), dtype=raw.get("dtype", WEIGHT_DTYPE))


def build_topology(vocabulary_size: int, intent_count: int) -> Topology:
    if vocabulary_size < 1:
        raise ValueError(f"vocabulary_size must be positive, got {vocabulary_size}")
    if intent_count < 1:
        raise ValueError(f"intent_count must be positive, got {intent_count}")

    return (
        LayerSpec(LayerKind.EMBEDDING, "embedding", {
            "input_dim": vocabulary_size + 1,
            "output_dim": EMBEDDING_DIM,
            "input_length": MAX_SEQUENCE_LENGTH,
        }),
        LayerSpec(LayerKind.BIDIRECTIONAL, "bidirectional", {
            "cell": "lstm",
            "input_dim": EMBEDDING_DIM,
            "units": RECURRENT_UNITS,
            "merge_mode": "concat",
            "return_sequences": True,
        }),
        LayerSpec(LayerKind.GLOBAL_AVERAGE_POOLING, "global_average_pooling"),
        LayerSpec(LayerKind.DENSE, "dense_1", {"input_dim": 2 * RECURRENT_UNITS, "units": 128, "activation": "relu"}),
        LayerSpec(LayerKind.DROPOUT, "dropout_1", {"rate": 0.3}),
        LayerSpec(LayerKind.DENSE, "dense_2", {"input_dim": 128, "units": 64, "activation": "relu"}),
        LayerSpec(LayerKind.DROPOUT, "dropout_2", {"rate": 0.2}),
        LayerSpec(LayerKind.BATCH_NORMALIZATION, "batch_normalization", {"num_features": 64}),
        LayerSpec(LayerKind.DENSE, "dense_3", {"input_dim": 64, "units": intent_count, "activation": "softmax"}),
    )


def weight_manifest(topology: Topology) -> List[WeightSpec]:
    return [
        WeightSpec(f"{layer.name}/{array}", shape)
        for layer in topology
        for array, shape in layer.weight_shapes()
    ]


def _make_module(spec: LayerSpec) -> nn.Module:
    p = spec.params
    if spec.kind is LayerKind.EMBEDDING:
        return nn.Embedding(p["input_dim"], p["output_dim"])
    if spec.kind is LayerKind.BIDIRECTIONAL:
        return nn.LSTM(p["input_dim"], p["units"], batch_first=True, bidirectional=True)
    if spec.kind is LayerKind.DENSE:
        return nn.Linear(p["input_dim"], p["units"])
    if spec.kind is LayerKind.DROPOUT:
        return nn.Dropout(p["rate"])
    if spec.kind is LayerKind.BATCH_NORMALIZATION:
        return nn.BatchNorm1d(p["num_features"])
    return nn.Identity()


class IntentNetwork(nn.Module):
    """Sequential classifier assembled from a Topology.

    forward() returns logits; the final layer's softmax is applied by
    predict_proba() so training can use CrossEntropyLoss directly.
    """

    def __init__(self, topology: Topology):
        super().__init__()
        self.topology = tuple(topology)
        self.layers = nn.ModuleDict({spec.name: _make_module(spec) for spec in self.topology})

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        out = x
        for spec in self.topology:
            module = self.layers[spec.name]
            if spec.kind is LayerKind.BIDIRECTIONAL:
                out, _ = module(out)
            elif spec.kind is LayerKind.GLOBAL_AVERAGE_POOLING:
                out = out.mean(dim=1)
            else:
                out = module(out)
            if spec.params.get("activation") == "relu":
                out = F.relu(out)
        return out

    def predict_proba(self, x: torch.Tensor) -> torch.Tensor:
        return torch.softmax(self.forward(x), dim=-1)

    def manifest(self) -> List[WeightSpec]:
        return weight_manifest(self.topology)

    def weight_tensor(self, name: str) -> torch.Tensor:
        layer_name, _, array = name.partition("/")
        if layer_name not in self.layers:
            raise KeyError(name)
        tensor = getattr(self.layers[layer_name], array, None)
        if not isinstance(tensor, torch.Tensor):
            raise KeyError(name)
        return tensor

    def get_weights(self) -> List[torch.Tensor]:
        return [self.weight_tensor(spec.name).detach() for spec in self.manifest()]


def build_model(vocabulary_size: int, intent_count: int) -> IntentNetwork:
    return IntentNetwork(build_topology(vocabulary_size, intent_count))
