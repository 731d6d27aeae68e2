import abc
import torch

class Regularizer(abc.ABC, torch.nn.Module):
    """
    Penalty term R(x) on a real sky image x of shape (NX, NY).

    Nonsmooth penalties (L1, TV) are applied through `proximal_operator`.
    Smooth penalties (TSV) override `gradient` and are folded into the data
    term by the optimizer instead.
    """
    smooth = False

    def __init__(self):
        super().__init__()

    @abc.abstractmethod
    def value(self, x: torch.Tensor) -> torch.Tensor:
        """Weighted penalty value R(x) as a scalar tensor."""
        pass

    @abc.abstractmethod
    def proximal_operator(self, x: torch.Tensor, steplength: float) -> torch.Tensor:
        """
        prox(x) = argmin_u { R(u) + 1/(2*steplength) * ||u - x||_2^2 }

        Args:
            x (torch.Tensor): Image after the gradient step, shape (NX, NY).
            steplength (float): 1/c, where c is the accepted Lipschitz estimate.
                The weight of R is held by the regularizer.
        """
        pass

    def gradient(self, x: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError(f"{type(self).__name__} is not differentiable; use proximal_operator.")

    def forward(self, x: torch.Tensor, steplength: float) -> torch.Tensor:
        return self.proximal_operator(x, steplength)
