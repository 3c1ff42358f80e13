"""Adam optimizer over plain (non-autograd) parameter tensors."""

from typing import Any, Dict, Iterable, List, Sequence, Tuple

import torch

from .errors import LengthMismatch, ShapeMismatch


class Adam:
    """Adam with bias-corrected first and second moment estimates.

    Parameters are updated in place, so the tensors passed at construction
    must be the ones the network reads from.

    Args:
        parameters: Tensors to optimize, e.g. ``network.parameters()``.
        lr: Step size.
        betas: Decay rates of the first and second moment estimates.
        eps: Added to the denominator for numerical stability.
    """

    def __init__(
        self,
        parameters: Iterable[torch.Tensor],
        lr: float = 0.001,
        betas: Tuple[float, float] = (0.9, 0.999),
        eps: float = 1e-8,
    ):
        self.params: List[torch.Tensor] = list(parameters)
        if not self.params:
            raise ValueError("Adam received an empty parameter list.")
        if lr <= 0.0:
            raise ValueError(f"Invalid learning rate: {lr}")
        beta1, beta2 = (float(b) for b in betas)
        if not 0.0 <= beta1 < 1.0 or not 0.0 <= beta2 < 1.0:
            raise ValueError(f"Invalid beta parameters: {tuple(betas)}")

        self.lr = float(lr)
        self.betas = (beta1, beta2)
        self.eps = float(eps)
        self.step_count = 0
        self.exp_avg = [torch.zeros_like(p) for p in self.params]
        self.exp_avg_sq = [torch.zeros_like(p) for p in self.params]

    def step(self, gradients: Sequence[torch.Tensor]) -> None:
        """Apply one update using gradients aligned with ``self.params``."""
        gradients = list(gradients)
        if len(gradients) != len(self.params):
            raise LengthMismatch(
                f"Got {len(gradients)} gradients for {len(self.params)} parameters"
            )

        self.step_count += 1
        beta1, beta2 = self.betas
        bias_correction1 = 1.0 - beta1 ** self.step_count
        bias_correction2 = 1.0 - beta2 ** self.step_count

        for i, (param, grad) in enumerate(zip(self.params, gradients)):
            if grad.shape != param.shape:
                raise ShapeMismatch(
                    f"Gradient {i} has shape {tuple(grad.shape)}, "
                    f"parameter has {tuple(param.shape)}"
                )
            grad = grad.to(param.dtype)
            self.exp_avg[i].mul_(beta1).add_(grad, alpha=1.0 - beta1)
            self.exp_avg_sq[i].mul_(beta2).addcmul_(grad, grad, value=1.0 - beta2)

            m_hat = self.exp_avg[i] / bias_correction1
            v_hat = self.exp_avg_sq[i] / bias_correction2
            param.sub_(self.lr * m_hat / (v_hat.sqrt() + self.eps))

    def state_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step_count,
            "lr": self.lr,
            "betas": self.betas,
            "eps": self.eps,
            "exp_avg": [t.clone() for t in self.exp_avg],
            "exp_avg_sq": [t.clone() for t in self.exp_avg_sq],
        }
