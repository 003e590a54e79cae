# portalbot/ai/codec.py
"""
Serializes a trained IntentNetwork into three artifacts and rebuilds it.

  <prefix>/topology  JSON  {"format", "layers": [...], "weightManifest": [...]}
  <prefix>/weights   raw little-endian float32, manifest order, no gaps
  <prefix>/metadata  JSON  {"vocabulary", "intents", "responses", "version", "updatedAt"}
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

import numpy as np
import torch

from ..logging_config import log_event, log_warning
from .architecture import IntentNetwork, LayerSpec, Topology, WeightSpec, build_topology
from .blob_store import BlobStore
from .errors import BundleCorruptError, InsufficientWeightDataError

BUNDLE_FORMAT_VERSION = "1.0"
FLOAT_BYTES = 4
FLOAT_DTYPE = np.dtype("<f4")


@dataclass
class ModelBundle:
    topology: Topology
    manifest: List[WeightSpec]
    weights: List[np.ndarray]
    vocabulary: Dict[str, int]
    intents: List[str]
    responses: Dict[str, List[str]] = field(default_factory=dict)
    version: str = BUNDLE_FORMAT_VERSION

    @classmethod
    def from_network(
        cls,
        network: IntentNetwork,
        vocabulary: Dict[str, int],
        intents: Sequence[str],
        responses: Dict[str, List[str]] | None = None,
    ) -> "ModelBundle":
        return cls(
            topology=network.topology,
            manifest=network.manifest(),
            weights=[t.cpu().numpy() for t in network.get_weights()],
            vocabulary=dict(vocabulary),
            intents=list(intents),
            responses={k: list(v) for k, v in (responses or {}).items()},
        )


@dataclass
class LoadedModel:
    network: IntentNetwork
    vocabulary: Dict[str, int]
    intents: List[str]
    responses: Dict[str, List[str]]
    version: str


def expected_float_count(manifest: Sequence[WeightSpec]) -> int:
    return sum(spec.size for spec in manifest)


def encode_weights(manifest: Sequence[WeightSpec], weights: Sequence[np.ndarray]) -> bytes:
    if len(manifest) != len(weights):
        raise BundleCorruptError(f"Manifest lists {len(manifest)} arrays but {len(weights)} were given")
    chunks = []
    for spec, arr in zip(manifest, weights):
        if tuple(arr.shape) != spec.shape:
            raise BundleCorruptError(f"{spec.name}: shape {tuple(arr.shape)} does not match manifest {spec.shape}")
        chunks.append(np.ascontiguousarray(arr, dtype=FLOAT_DTYPE).tobytes())
    blob = b"".join(chunks)
    expected = FLOAT_BYTES * expected_float_count(manifest)
    if len(blob) != expected:
        raise BundleCorruptError(f"Weight blob is {len(blob)} bytes, expected {expected}")
    return blob


def align_to_float32(raw: bytes) -> bytes:
    remainder = len(raw) % FLOAT_BYTES
    if remainder == 0:
        return raw
    padding = FLOAT_BYTES - remainder
    log_warning("WEIGHTS_PADDED", "Weight blob length not a multiple of 4; zero-padding",
                {"received_bytes": len(raw), "padding": padding})
    return raw + b"\x00" * padding


def decode_weights(raw: bytes, manifest: Sequence[WeightSpec]) -> List[np.ndarray]:
    flat = np.frombuffer(align_to_float32(raw), dtype=FLOAT_DTYPE)
    expected = expected_float_count(manifest)
    if flat.size < expected:
        raise InsufficientWeightDataError(int(flat.size), expected)
    if flat.size > expected:
        log_warning("WEIGHTS_SURPLUS", "Weight blob longer than manifest requires; ignoring tail",
                    {"received_floats": int(flat.size), "expected_floats": expected,
                     "surplus_floats": int(flat.size - expected)})

    arrays = []
    offset = 0
    for spec in manifest:
        arrays.append(flat[offset:offset + spec.size].reshape(spec.shape).copy())
        offset += spec.size
    return arrays


def _load_json(raw: bytes, key: str) -> Dict[str, Any]:
    try:
        doc = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BundleCorruptError(f"{key} is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise BundleCorruptError(f"{key} must be a JSON object")
    return doc


def assign_weights(network: IntentNetwork, manifest: Sequence[WeightSpec], arrays: Sequence[np.ndarray]) -> None:
    with torch.no_grad():
        for spec, arr in zip(manifest, arrays):
            try:
                target = network.weight_tensor(spec.name)
            except KeyError:
                raise BundleCorruptError(f"Manifest entry {spec.name!r} has no matching layer") from None
            if tuple(target.shape) != spec.shape:
                raise BundleCorruptError(
                    f"{spec.name}: manifest shape {spec.shape} does not match model shape {tuple(target.shape)}"
                )
            target.copy_(torch.from_numpy(arr).to(target.dtype))


class ModelCodec:
    def __init__(self, store: BlobStore, prefix: str = "model"):
        self.store = store
        self.prefix = prefix.strip("/")

    @property
    def topology_key(self) -> str:
        return f"{self.prefix}/topology"

    @property
    def weights_key(self) -> str:
        return f"{self.prefix}/weights"

    @property
    def metadata_key(self) -> str:
        return f"{self.prefix}/metadata"

    def keys(self) -> List[str]:
        return [self.topology_key, self.weights_key, self.metadata_key]

    # -------------------------
    # WRITE
    # -------------------------
    def write(self, bundle: ModelBundle) -> None:
        blob = encode_weights(bundle.manifest, bundle.weights)
        topology_doc = {
            "format": bundle.version,
            "layers": [layer.to_dict() for layer in bundle.topology],
            "weightManifest": [spec.to_dict() for spec in bundle.manifest],
        }
        metadata_doc = {
            "vocabulary": bundle.vocabulary,
            "intents": bundle.intents,
            "responses": bundle.responses,
            "version": bundle.version,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
        self.store.put_many({
            self.topology_key: json.dumps(topology_doc).encode("utf-8"),
            self.weights_key: blob,
            self.metadata_key: json.dumps(metadata_doc, ensure_ascii=False).encode("utf-8"),
        })
        log_event("BUNDLE_WRITTEN", "Model, weights and metadata saved", {
            "weights_bytes": len(blob),
            "arrays": len(bundle.manifest),
            "vocabulary_size": len(bundle.vocabulary),
            "intents": len(bundle.intents),
        })

    # -------------------------
    # READ
    # -------------------------
    def read(self) -> LoadedModel:
        metadata = _load_json(self.store.get(self.metadata_key), self.metadata_key)
        vocabulary = parse_vocabulary(metadata.get("vocabulary"))
        intents = metadata.get("intents")
        if not isinstance(intents, list) or not intents:
            raise BundleCorruptError("Invalid number of intents in metadata")
        responses = parse_responses(metadata.get("responses"))

        topology_doc = _load_json(self.store.get(self.topology_key), self.topology_key)
        raw_manifest = topology_doc.get("weightManifest")
        if not raw_manifest:
            raise BundleCorruptError("Model topology has no weight manifest")
        try:
            manifest = [WeightSpec.from_dict(entry) for entry in raw_manifest]
        except (KeyError, TypeError, ValueError) as e:
            raise BundleCorruptError(f"Malformed weight manifest entry: {e}") from e

        topology = build_topology(len(vocabulary), len(intents))
        layers = stored_layers(topology_doc)
        if layers and layers != topology:
            raise BundleCorruptError("Stored layer list does not match the rebuilt topology")
        network = IntentNetwork(topology)
        check_manifest(manifest, network.manifest())

        raw = self.store.get(self.weights_key)
        arrays = decode_weights(raw, manifest)
        assign_weights(network, manifest, arrays)
        network.eval()

        log_event("BUNDLE_LOADED", "Model weights set successfully", {
            "weights_bytes": len(raw),
            "vocabulary_size": len(vocabulary),
            "intents": len(intents),
        })
        return LoadedModel(
            network=network,
            vocabulary=vocabulary,
            intents=[str(i) for i in intents],
            responses=responses,
            version=str(metadata.get("version", BUNDLE_FORMAT_VERSION)),
        )


def parse_vocabulary(raw: Any) -> Dict[str, int]:
    """Every index must address a row of the rebuilt embedding (1..len, 0 is padding)."""
    if not isinstance(raw, dict) or not raw:
        raise BundleCorruptError("Invalid vocabulary size in metadata")
    size = len(raw)
    vocabulary: Dict[str, int] = {}
    for token, index in raw.items():
        if isinstance(index, bool) or not isinstance(index, int) or not 1 <= index <= size:
            raise BundleCorruptError(f"Vocabulary index for {token!r} must be an integer in 1..{size}, got {index!r}")
        vocabulary[str(token)] = index
    return vocabulary


def parse_responses(raw: Any) -> Dict[str, List[str]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise BundleCorruptError("Responses in metadata must be an object of intent -> list")
    responses: Dict[str, List[str]] = {}
    for intent, options in raw.items():
        if options is None:
            options = []
        if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
            raise BundleCorruptError(f"Responses for {intent!r} must be a list of strings")
        responses[str(intent)] = list(options)
    return responses


def check_manifest(stored: Sequence[WeightSpec], expected: Sequence[WeightSpec]) -> None:
    """The stored manifest must list exactly the arrays the network holds, in order."""
    got = [(spec.name, spec.shape) for spec in stored]
    want = [(spec.name, spec.shape) for spec in expected]
    if got == want:
        return
    missing = [name for name, _ in want if name not in {n for n, _ in got}]
    if missing:
        raise BundleCorruptError(f"Weight manifest is missing arrays: {', '.join(missing)}")
    raise BundleCorruptError("Weight manifest does not match the rebuilt model's arrays")


def stored_layers(topology_doc: Dict[str, Any]) -> Topology:
    try:
        return tuple(LayerSpec.from_dict(raw) for raw in topology_doc.get("layers") or [])
    except (KeyError, TypeError, ValueError) as e:
        raise BundleCorruptError(f"Malformed layer entry: {e}") from e
