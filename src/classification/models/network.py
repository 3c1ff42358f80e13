# src/classification/models/network.py

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import torch

from common.utils import make_generator

from ..errors import LengthMismatch, ShapeMismatch

log = logging.getLogger(__name__)

DEFAULT_DTYPE = torch.float64
LOSS_EPS = 1e-12


def identity(z: torch.Tensor) -> torch.Tensor:
    return z


def relu(z: torch.Tensor) -> torch.Tensor:
    return torch.clamp(z, min=0.0)


def softmax(z: torch.Tensor) -> torch.Tensor:
    """Row-wise softmax, shifted by the row max so ``exp`` cannot overflow."""
    shifted = z - z.max(dim=1, keepdim=True).values
    e = torch.exp(shifted)
    return e / e.sum(dim=1, keepdim=True)


ACTIVATIONS: Dict[str, Callable[[torch.Tensor], torch.Tensor]] = {
    "identity": identity,
    "relu": relu,
    "softmax": softmax,
}


@dataclass
class LayerGradients:
    """Loss derivatives for one dense layer."""

    weight: torch.Tensor
    bias: torch.Tensor

    def __iter__(self) -> Iterator[torch.Tensor]:
        yield self.weight
        yield self.bias


class DenseLayer:
    """
    A fully-connected layer ``a = activation(x @ W + b)``.

    Weights are drawn from ``U(-1/sqrt(in), 1/sqrt(in))``, the bound
    ``torch.nn.Linear`` uses by default, and biases start at zero. Parameters
    are plain tensors without autograd; gradients are computed explicitly by
    :meth:`Network.backward`.
    """

    def __init__(
        self,
        in_features: int,
        out_features: int,
        activation: str = "relu",
        generator: Optional[torch.Generator] = None,
        dtype: torch.dtype = DEFAULT_DTYPE,
    ):
        """
        Initializes the layer parameters.

        Args:
            in_features: Width of the incoming activations.
            out_features: Number of units in this layer.
            activation: One of ``identity``, ``relu`` or ``softmax``.
            generator: Optional seeded generator for reproducible init.
            dtype: Floating point dtype of the parameters.
        """
        if in_features <= 0 or out_features <= 0:
            raise ShapeMismatch(
                f"Layer widths must be positive, got {in_features} -> {out_features}"
            )
        if activation not in ACTIVATIONS:
            raise ValueError(
                f"Unknown activation '{activation}'. Expected one of {sorted(ACTIVATIONS)}"
            )

        self.in_features = int(in_features)
        self.out_features = int(out_features)
        self.activation = activation

        limit = 1.0 / math.sqrt(self.in_features)
        uniform = torch.rand(
            (self.in_features, self.out_features), generator=generator, dtype=dtype
        )
        self.weight = uniform * (2.0 * limit) - limit
        self.bias = torch.zeros(self.out_features, dtype=dtype)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if x.dim() != 2 or x.shape[1] != self.in_features:
            raise ShapeMismatch(
                f"Layer expects input of width {self.in_features}, got shape {tuple(x.shape)}"
            )
        z = x @ self.weight + self.bias
        return ACTIVATIONS[self.activation](z)

    def parameters(self) -> List[torch.Tensor]:
        return [self.weight, self.bias]

    def __repr__(self) -> str:
        return (
            f"DenseLayer(in_features={self.in_features}, "
            f"out_features={self.out_features}, activation='{self.activation}')"
        )


class Network:
    """
    An ordered stack of dense layers ending in a softmax.

    The network owns its parameters. They are set once at construction, changed
    only by an optimizer stepping on gradients from :meth:`backward`, and read
    without modification by :meth:`forward` and :meth:`predict`.
    """

    def __init__(self, layers: Sequence[DenseLayer]):
        """
        Validates and stores the layer stack.

        Args:
            layers: Dense layers in application order.

        Raises:
            ShapeMismatch: If the stack is empty or a layer's input width
                differs from the previous layer's output width.
            ValueError: If the last layer is not softmax or a hidden layer is.
        """
        layers = list(layers)
        if not layers:
            raise ShapeMismatch("A Network requires at least one layer.")

        for i in range(1, len(layers)):
            prev, cur = layers[i - 1], layers[i]
            if cur.in_features != prev.out_features:
                raise ShapeMismatch(
                    f"Layer {i} expects {cur.in_features} inputs but layer {i - 1} "
                    f"produces {prev.out_features}"
                )

        if layers[-1].activation != "softmax":
            raise ValueError(
                f"The final layer must use softmax, got '{layers[-1].activation}'"
            )
        for i, layer in enumerate(layers[:-1]):
            if layer.activation == "softmax":
                raise ValueError(f"Hidden layer {i} cannot use softmax")

        self.layers = layers

    @property
    def in_features(self) -> int:
        return self.layers[0].in_features

    @property
    def out_features(self) -> int:
        return self.layers[-1].out_features

    def parameters(self) -> List[torch.Tensor]:
        return [p for layer in self.layers for p in layer.parameters()]

    def forward(self, batch: torch.Tensor) -> Tuple[List[torch.Tensor], torch.Tensor]:
        """
        Runs the batch through every layer.

        Args:
            batch: Feature matrix of shape (batch_size, in_features).

        Returns:
            A tuple ``(activations, probabilities)``. ``activations[0]`` is the
            input and ``activations[i + 1]`` is the output of layer ``i``, so the
            last entry equals ``probabilities`` (batch_size, out_features).
        """
        x = torch.as_tensor(batch)
        if x.dim() != 2 or x.shape[1] != self.in_features:
            raise ShapeMismatch(
                f"Network expects a batch of width {self.in_features}, "
                f"got shape {tuple(x.shape)}"
            )
        x = x.to(self.layers[0].weight.dtype)

        activations = [x]
        for layer in self.layers:
            x = layer.forward(x)
            activations.append(x)
        return activations, x

    def predict(self, batch: torch.Tensor) -> torch.Tensor:
        _, probabilities = self.forward(batch)
        return probabilities

    def loss(
        self,
        probabilities: torch.Tensor,
        targets: torch.Tensor,
        eps: float = LOSS_EPS,
    ) -> float:
        """Categorical cross-entropy averaged over rows."""
        _check_targets(probabilities, targets)
        targets = targets.to(probabilities.dtype)
        per_row = (targets * torch.log(probabilities + eps)).sum(dim=1)
        return float(-per_row.mean())

    def backward(
        self,
        activations: List[torch.Tensor],
        targets: torch.Tensor,
    ) -> List[LayerGradients]:
        """
        Backpropagates the mean cross-entropy through the stack.

        With softmax and cross-entropy combined, the output delta is
        ``(probabilities - targets) / batch_size``. Hidden deltas pass through
        the ReLU mask (output > 0) or unchanged for identity layers.

        Args:
            activations: The list returned by :meth:`forward`.
            targets: One-hot targets (batch_size, out_features).

        Returns:
            One :class:`LayerGradients` per layer, in layer order.
        """
        if len(activations) != len(self.layers) + 1:
            raise LengthMismatch(
                f"Expected {len(self.layers) + 1} activations, got {len(activations)}"
            )
        probabilities = activations[-1]
        _check_targets(probabilities, targets)

        batch_size = probabilities.shape[0]
        delta = (probabilities - targets.to(probabilities.dtype)) / max(batch_size, 1)

        grads: List[LayerGradients] = [None] * len(self.layers)
        for i in range(len(self.layers) - 1, -1, -1):
            layer = self.layers[i]
            x = activations[i]
            grads[i] = LayerGradients(weight=x.T @ delta, bias=delta.sum(dim=0))

            if i > 0:
                delta = delta @ layer.weight.T
                if self.layers[i - 1].activation == "relu":
                    delta = delta * (activations[i] > 0).to(delta.dtype)
        return grads

    def __repr__(self) -> str:
        inner = ",\n  ".join(repr(layer) for layer in self.layers)
        return f"Network(\n  {inner}\n)"


def _check_targets(probabilities: torch.Tensor, targets: torch.Tensor) -> None:
    if probabilities.shape != targets.shape:
        raise ShapeMismatch(
            f"Probabilities {tuple(probabilities.shape)} and targets "
            f"{tuple(targets.shape)} differ in shape"
        )


def build_network(
    in_features: int,
    num_classes: int,
    hidden_units: Union[int, Sequence[int], None] = None,
    activation: str = "relu",
    seed: Optional[int] = None,
    dtype: torch.dtype = DEFAULT_DTYPE,
) -> Network:
    """
    Builds a network from widths, the way the config describes it.

    Args:
        in_features: Number of input features.
        num_classes: Size of the label space (softmax width).
        hidden_units: One width, a list of widths, ``None`` for a single
            hidden layer of ``max(1, in_features // 2)`` units, or an empty
            list for plain softmax regression.
        activation: Activation of every hidden layer (``relu`` or ``identity``).
        seed: Seed for a private generator; ``None`` uses the global torch RNG.
        dtype: Floating point dtype of the parameters.
    """
    if hidden_units is None:
        hidden_dims = [max(1, int(in_features) // 2)]
    elif isinstance(hidden_units, int):
        hidden_dims = [hidden_units]
    else:
        hidden_dims = [int(h) for h in hidden_units]

    generator = make_generator(seed)

    layers = []
    # Track the input dimension for the current layer
    current_dim = in_features
    for h_dim in hidden_dims:
        layers.append(DenseLayer(current_dim, h_dim, activation, generator=generator, dtype=dtype))
        current_dim = h_dim
    layers.append(DenseLayer(current_dim, num_classes, "softmax", generator=generator, dtype=dtype))

    network = Network(layers)
    log.debug("Built network: %r", network)
    return network
