import math
import torch
from .base import Regularizer
from .functional import (l1_norm, soft_threshold, soft_threshold_nonneg, total_variation,
                         total_squared_variation, total_squared_variation_gradient)

class L1Regularizer(Regularizer):
    """L1 Norm Regularizer: R(x) = lambda_reg * ||x||_1.

    This regularizer promotes sparsity in the sky image `x` by penalizing the
    sum of the absolute values of its pixels. Its proximal operator is plain
    soft-thresholding.
    """
    nonnegative = False

    def __init__(self, lambda_reg: float):
        """Initializes the L1 Regularizer.

        Args:
            lambda_reg (float): The regularization strength parameter.
                Must be non-negative.
        """
        super().__init__()
        if lambda_reg < 0:
            raise ValueError("lambda_reg must be non-negative.")
        self.lambda_reg = lambda_reg

    def value(self, x: torch.Tensor) -> torch.Tensor:
        """Computes the L1 regularization value: lambda_reg * ||x||_1."""
        return self.lambda_reg * l1_norm(x)

    def threshold(self, x: torch.Tensor, eta: float) -> torch.Tensor:
        return soft_threshold(x, eta)

    def proximal_operator(self, x: torch.Tensor, steplength: float) -> torch.Tensor:
        """Computes the proximal operator of the L1 regularizer.

        Solves: `argmin_u { lambda_reg * ||u||_1 + (1/(2*steplength)) * ||u - x||_2^2 }`
        which is element-wise soft-thresholding by `lambda_reg * steplength`.

        Args:
            x (torch.Tensor): The input tensor (real).
            steplength (float): The step length 1/c.

        Returns:
            torch.Tensor: The result of the proximal operation on `x`.
        """
        return self.threshold(x, self.lambda_reg * steplength)

class NonnegativeL1Regularizer(L1Regularizer):
    """L1 Norm Regularizer restricted to the nonnegative orthant.

    For x >= 0 the L1 term is linear, so its proximal operator is a shift by
    `lambda_reg * steplength` followed by projection onto x >= 0. With
    lambda_reg = 0 this is the plain nonnegativity projection.
    """
    nonnegative = True

    def threshold(self, x: torch.Tensor, eta: float) -> torch.Tensor:
        return soft_threshold_nonneg(x, eta)

def l1_regularizer(lambda_reg: float, nonnegative: bool = False) -> L1Regularizer:
    """Selects the soft-thresholding variant once per reconstruction."""
    if nonnegative:
        return NonnegativeL1Regularizer(lambda_reg)
    return L1Regularizer(lambda_reg)

class TSVRegularizer(Regularizer):
    """Total Squared Variation (TSV) Regularizer: R(x) = lambda_reg * TSV(x).

    TSV(x) sums the squared differences between each pixel and its lower and
    right neighbours. The term is smooth, so MFISTA treats it as part of the
    data term and uses its gradient rather than a proximal operator.
    """
    smooth = True

    def __init__(self, lambda_reg: float):
        super().__init__()
        if lambda_reg < 0:
            raise ValueError("lambda_reg must be non-negative.")
        self.lambda_reg = lambda_reg

    def value(self, x: torch.Tensor) -> torch.Tensor:
        return self.lambda_reg * total_squared_variation(x)

    def gradient(self, x: torch.Tensor) -> torch.Tensor:
        return self.lambda_reg * total_squared_variation_gradient(x)

    def proximal_operator(self, x: torch.Tensor, steplength: float) -> torch.Tensor:
        """TSV is quadratic and is handled through its gradient in the smooth part of
           the objective, rather than through a proximal operator.
        """
        raise NotImplementedError(
            "TSVRegularizer does not have a simple proximal operator. "
            "Add its value and gradient to the smooth data term instead."
        )

class FGPWorkspace:
    """
    Dual and momentum buffers for the FGP total-variation solver.

    Sized once from (NX, NY) and reused by every proximal call of one
    reconstruction: p, r and p_new live on vertical differences (NX-1, NY),
    q, s and q_new on horizontal differences (NX, NY-1). Use as a context
    manager so the buffers are released on every exit path.
    """
    _names = ('p', 'q', 'r', 's', 'p_new', 'q_new')

    def __init__(self, nx: int, ny: int, dtype: torch.dtype = torch.float64,
                 device: str | torch.device = 'cpu'):
        self.image_shape = (nx, ny)
        self.dtype = dtype
        self.device = torch.device(device)
        vertical, horizontal = (nx - 1, ny), (nx, ny - 1)
        for name in self._names:
            shape = vertical if name in ('p', 'r', 'p_new') else horizontal
            setattr(self, name, torch.zeros(shape, dtype=dtype, device=self.device))
        self.released = False

    def reset(self):
        if self.released:
            raise RuntimeError("FGPWorkspace has been released.")
        for name in self._names:
            getattr(self, name).zero_()

    def release(self):
        for name in self._names:
            setattr(self, name, None)
        self.released = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()
        return False

def _divergence(p: torch.Tensor, q: torch.Tensor) -> torch.Tensor:
    # L(p,q)_ij = p_ij + q_ij - p_(i-1)j - q_i(j-1), out-of-range terms are zero
    div = torch.zeros((p.shape[0] + 1, q.shape[1] + 1), dtype=p.dtype, device=p.device)
    div[:-1, :] += p
    div[1:, :] -= p
    div[:, :-1] += q
    div[:, 1:] -= q
    return div

def _differences(x: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor]:
    # adjoint of _divergence
    return x[:-1, :] - x[1:, :], x[:, :-1] - x[:, 1:]

class TVRegularizer(Regularizer):
    """Total Variation (TV) Regularizer: R(x) = lambda_param * TV(x).

    The proximal operator is solved with the Fast Gradient Projection (FGP)
    algorithm of Beck and Teboulle on the dual variables of the vertical and
    horizontal finite-difference operators. The number of inner iterations is
    fixed: MFISTA accepts an approximate prox at every outer step.

    When an L1 regularizer is supplied, the primal reconstruction inside FGP is
    passed through its threshold, giving the joint prox of L1 + TV; with the
    nonnegative variant every inner primal estimate is also projected onto x >= 0.
    """
    def __init__(self,
                 lambda_param: float,
                 fgp_iterations: int = 100,
                 isotropic: bool = True):
        """Initializes the Total Variation (TV) Regularizer.

        Args:
            lambda_param (float): The regularization strength parameter.
                Must be non-negative.
            fgp_iterations (int, optional): Fixed number of FGP iterations in the
                proximal operator. Defaults to 100.
            isotropic (bool, optional): Project the dual pair jointly onto the unit
                L2 ball (isotropic TV) instead of clipping each edge to [-1, 1].
                Defaults to True.
        """
        super().__init__()
        if lambda_param < 0:
            raise ValueError("lambda_param must be non-negative.")
        if fgp_iterations < 1:
            raise ValueError("fgp_iterations must be at least 1.")
        self.lambda_param = lambda_param
        self.fgp_iterations = fgp_iterations
        self.isotropic = isotropic

    def value(self, x: torch.Tensor) -> torch.Tensor:
        return self.lambda_param * total_variation(x, isotropic=self.isotropic)

    def _project_dual(self, p: torch.Tensor, q: torch.Tensor):
        if not self.isotropic:
            p.clamp_(-1.0, 1.0)
            q.clamp_(-1.0, 1.0)
            return
        scale = torch.clamp(torch.sqrt(p[:, :-1] ** 2 + q[:-1, :] ** 2), min=1.0)
        p[:, :-1] /= scale
        q[:-1, :] /= scale
        # last column of p and last row of q have no partner
        p[:, -1].clamp_(-1.0, 1.0)
        q[-1, :].clamp_(-1.0, 1.0)

    def proximal_operator(self,
                          x: torch.Tensor,
                          steplength: float,
                          l1: L1Regularizer | None = None,
                          workspace: FGPWorkspace | None = None) -> torch.Tensor:
        """
        Computes prox of steplength * (lambda_param * TV [+ l1]) at x.

        Args:
            x (torch.Tensor): Real image of shape (NX, NY).
            steplength (float): The step length 1/c.
            l1 (L1Regularizer, optional): L1 term (plain or nonnegative) applied
                to every primal reconstruction. Identity when None.
            workspace (FGPWorkspace, optional): Preallocated dual buffers. A
                temporary one is created when None.

        Returns:
            torch.Tensor: Approximate proximal point, shape (NX, NY).
        """
        if x.ndim != 2:
            raise ValueError(f"TV prox expects a 2D image (NX, NY), got shape {tuple(x.shape)}.")

        def project(v):
            return v if l1 is None else l1.proximal_operator(v, steplength)

        effective_lambda = self.lambda_param * steplength
        if effective_lambda == 0:
            return project(x)

        if workspace is None:
            with FGPWorkspace(*x.shape, dtype=x.dtype, device=x.device) as temporary:
                return self._fgp(x, effective_lambda, project, temporary)
        if workspace.image_shape != tuple(x.shape):
            raise ValueError(f"FGPWorkspace shape {workspace.image_shape} does not match image shape {tuple(x.shape)}.")
        return self._fgp(x, effective_lambda, project, workspace)

    def _fgp(self, x, effective_lambda, project, ws):
        ws.reset()
        dual_step = 1.0 / (8.0 * effective_lambda)
        t = 1.0
        for _ in range(self.fgp_iterations):
            primal = project(x - effective_lambda * _divergence(ws.r, ws.s))
            dv, dh = _differences(primal)

            ws.p_new.copy_(ws.r).add_(dv, alpha=dual_step)
            ws.q_new.copy_(ws.s).add_(dh, alpha=dual_step)
            self._project_dual(ws.p_new, ws.q_new)

            t_new = (1.0 + math.sqrt(1.0 + 4.0 * t * t)) / 2.0
            momentum = (t - 1.0) / t_new
            ws.r.copy_(ws.p_new).add_(ws.p_new - ws.p, alpha=momentum)
            ws.s.copy_(ws.q_new).add_(ws.q_new - ws.q, alpha=momentum)
            ws.p.copy_(ws.p_new)
            ws.q.copy_(ws.q_new)
            t = t_new

        return project(x - effective_lambda * _divergence(ws.p, ws.q))


if __name__ == '__main__':
    print("Running basic TVRegularizer checks...")
    img = torch.zeros(16, 16, dtype=torch.float64)
    img[4:12, 4:12] = 1.0
    noisy = img + 0.2 * torch.randn_like(img)
    tv_reg = TVRegularizer(lambda_param=0.1, fgp_iterations=50)
    denoised = tv_reg.proximal_operator(noisy, steplength=1.0)
    print(f"TV(noisy) = {total_variation(noisy).item():.4f}, TV(denoised) = {total_variation(denoised).item():.4f}")
