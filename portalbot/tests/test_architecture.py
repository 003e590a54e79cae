from __future__ import annotations

import pytest
import torch

from portalbot.ai.architecture import (
    LayerKind,
    LayerSpec,
    WeightSpec,
    build_model,
    build_topology,
    weight_manifest,
)
from portalbot.ai.vectorizer import MAX_SEQUENCE_LENGTH


def test_topology_layer_order():
    topology = build_topology(10, 3)
    assert [layer.name for layer in topology] == [
        "embedding",
        "bidirectional",
        "global_average_pooling",
        "dense_1",
        "dropout_1",
        "dense_2",
        "dropout_2",
        "batch_normalization",
        "dense_3",
    ]
    assert topology[0].params["input_dim"] == 11
    assert topology[-1].params["units"] == 3
    assert topology[-1].params["activation"] == "softmax"


@pytest.mark.parametrize("vocab,intents", [(0, 3), (5, 0)])
def test_topology_rejects_empty_dimensions(vocab, intents):
    with pytest.raises(ValueError):
        build_topology(vocab, intents)


def test_layer_spec_dict_round_trip():
    for layer in build_topology(4, 2):
        assert LayerSpec.from_dict(layer.to_dict()) == layer


def test_manifest_shapes():
    manifest = {spec.name: spec.shape for spec in weight_manifest(build_topology(10, 3))}

    assert manifest["embedding/weight"] == (11, 64)
    assert manifest["bidirectional/weight_ih_l0"] == (128, 64)
    assert manifest["bidirectional/weight_hh_l0_reverse"] == (128, 32)
    assert manifest["dense_1/weight"] == (128, 64)
    assert manifest["dense_2/bias"] == (64,)
    assert manifest["batch_normalization/running_var"] == (64,)
    assert manifest["dense_3/weight"] == (3, 64)
    # pooling and dropout carry no arrays
    assert not any(name.startswith(("dropout", "global_average")) for name in manifest)


def test_weight_spec_size_and_dict():
    spec = WeightSpec("dense_1/weight", (128, 64))
    assert spec.size == 128 * 64
    assert WeightSpec.from_dict(spec.to_dict()) == spec


def test_network_arrays_match_manifest():
    net = build_model(10, 3)
    weights = net.get_weights()
    manifest = net.manifest()
    assert len(weights) == len(manifest)
    for spec, tensor in zip(manifest, weights):
        assert tuple(tensor.shape) == spec.shape
        assert tensor.dtype == torch.float32


def test_weight_tensor_unknown_name():
    net = build_model(4, 2)
    with pytest.raises(KeyError):
        net.weight_tensor("dense_9/weight")
    with pytest.raises(KeyError):
        net.weight_tensor("dense_1/nothing")


def test_forward_shapes_and_probabilities():
    net = build_model(10, 3)
    net.eval()
    x = torch.randint(0, 11, (4, MAX_SEQUENCE_LENGTH))

    with torch.no_grad():
        logits = net(x)
        probs = net.predict_proba(x)

    assert logits.shape == (4, 3)
    assert torch.allclose(probs.sum(dim=-1), torch.ones(4), atol=1e-5)
    assert (probs >= 0).all()


def test_dropout_and_pooling_layers_present():
    net = build_model(3, 2)
    kinds = {layer.name: layer.kind for layer in net.topology}
    assert isinstance(net.layers["dropout_1"], torch.nn.Dropout)
    assert kinds["global_average_pooling"] is LayerKind.GLOBAL_AVERAGE_POOLING
