"""Module for defining the monotone FISTA optimizer for interferometric imaging."""

import math
import contextlib
from dataclasses import dataclass, field
from typing import Callable, Optional
import torch
from abc import ABC, abstractmethod

from radiorecon.operators import HalfSpectrumFourierOperator
from radiorecon.regularizers.common import l1_regularizer, TSVRegularizer, TVRegularizer, FGPWorkspace


class ConfigurationError(ValueError):
    """Invalid weights, flags, step size or input shapes. Raised before any buffer is touched."""


class LineSearchError(RuntimeError):
    """The backtracking line search could not find an acceptable step size."""


@dataclass(frozen=True)
class MFISTAConfig:
    """
    Tuning constants of the MFISTA driver.

    max_iter: hard cap on outer iterations.
    min_iter: number of iterations before the convergence test is applied.
    lookback: window over which the cost decrease is measured.
    eps: the run stops once the cost decreased by less than eps over the window.
    eta: backtracking growth factor of the step scale c.
    fgp_iterations: fixed number of inner FGP iterations of the TV prox.
    max_line_search_iter: cap on backtracking tries per outer iteration.
    max_step_scale: ceiling on c.
    report_interval: cost print period when verbose.
    """
    max_iter: int = 50000
    min_iter: int = 100
    lookback: int = 50
    eps: float = 1e-5
    eta: float = 1.1
    fgp_iterations: int = 100
    max_line_search_iter: int = 1000
    max_step_scale: float = 1e30
    report_interval: int = 100

    def __post_init__(self):
        if self.max_iter < 1:
            raise ConfigurationError(f"max_iter must be at least 1, got {self.max_iter}.")
        if self.min_iter < 0:
            raise ConfigurationError(f"min_iter must be non-negative, got {self.min_iter}.")
        if self.lookback < 1:
            raise ConfigurationError(f"lookback must be at least 1, got {self.lookback}.")
        if self.eps < 0:
            raise ConfigurationError(f"eps must be non-negative, got {self.eps}.")
        if not self.eta > 1.0:
            raise ConfigurationError(f"eta must be greater than 1, got {self.eta}.")
        if self.fgp_iterations < 1:
            raise ConfigurationError(f"fgp_iterations must be at least 1, got {self.fgp_iterations}.")
        if self.max_line_search_iter < 1:
            raise ConfigurationError(f"max_line_search_iter must be at least 1, got {self.max_line_search_iter}.")
        if self.report_interval < 1:
            raise ConfigurationError(f"report_interval must be at least 1, got {self.report_interval}.")


@dataclass
class MFISTAOutput:
    """Iterations executed, final image, accepted cost per iteration (entry 0 is the initial image) and final c."""
    iterations: int
    image: torch.Tensor
    cost_history: list = field(default_factory=list)
    step_scale: float = 0.0

    @property
    def final_cost(self) -> float:
        return self.cost_history[-1]


class Optimizer(ABC):
    """
    Abstract base class for optimizers.

    Defines the interface for the solve method.
    """
    @abstractmethod
    def solve(self, observed, mask, x_init, **kwargs):
        """
        Solves the optimization problem.

        Args:
            observed: Observed Fourier data (PyTorch tensor, full or half-spectrum).
            mask: Half-spectrum sampling weights (PyTorch tensor).
            x_init: Initial image (PyTorch tensor), overwritten with the solution.

        Returns:
            The optimization result.
        """
        pass


def _check_nonneg_flag(nonneg):
    if isinstance(nonneg, bool):
        return nonneg
    if isinstance(nonneg, int) and nonneg in (0, 1):
        return bool(nonneg)
    raise ConfigurationError(f"nonneg must be a bool or 0/1, got {nonneg!r}.")


def _check_weight(name, value):
    if not math.isfinite(value) or value < 0:
        raise ConfigurationError(f"{name} must be a finite non-negative number, got {value}.")
    return float(value)


class MFISTA(Optimizer):
    """
    Monotone Fast Iterative Shrinkage-Thresholding Algorithm (MFISTA).

    Minimizes F(x) + lambda_l1*||x||_1 + lambda_tv*TV(x) (or + lambda_tsv*TSV(x))
    where F is the masked half-spectrum data term of `HalfSpectrumFourierOperator`.
    The step scale c is found by backtracking: it grows by `eta` until the
    quadratic upper bound holds, then shrinks once by `eta` for the next
    iteration. A candidate is only accepted when it lowers the total cost, so
    the recorded cost history never increases.

    TSV is smooth and is folded into F and its gradient. TV is handled by the
    FGP proximal operator jointly with the L1 threshold.
    """
    def __init__(self,
                 config: Optional[MFISTAConfig] = None,
                 verbose: bool = False,
                 log_fn: Optional[Callable[..., None]] = None):
        """
        Args:
            config: Tuning constants. Defaults to `MFISTAConfig()`.
            verbose: If True, print "{iter} cost = {cost}" every `config.report_interval` iterations.
            log_fn: An optional function called once per outer iteration.
                    Signature: `fn(iter_num, current_image, cost, step_scale)`.
        """
        self.config = config if config is not None else MFISTAConfig()
        self.verbose = verbose
        self.log_fn = log_fn

    def solve_l1_tv(self, observed, mask, x_init, lambda_l1, lambda_tv, c_init,
                    nonneg=False, support=None) -> MFISTAOutput:
        """L1 + TV entry point. See `solve`."""
        return self.solve(observed, mask, x_init, lambda_l1=lambda_l1, lambda_tv=lambda_tv,
                          c_init=c_init, nonneg=nonneg, support=support)

    def solve_l1_tsv(self, observed, mask, x_init, lambda_l1, lambda_tsv, c_init,
                     nonneg=False, support=None) -> MFISTAOutput:
        """L1 + TSV entry point. See `solve`."""
        return self.solve(observed, mask, x_init, lambda_l1=lambda_l1, lambda_tsv=lambda_tsv,
                          c_init=c_init, nonneg=nonneg, support=support)

    def solve(self,
              observed: torch.Tensor,
              mask: torch.Tensor,
              x_init: torch.Tensor,
              lambda_l1: float = 0.0,
              lambda_tv: float = 0.0,
              lambda_tsv: float = 0.0,
              c_init: float = 1.0,
              nonneg=False,
              support: Optional[torch.Tensor] = None) -> MFISTAOutput:
        """
        Runs MFISTA from `x_init` and writes the reconstruction back into it.

        Args:
            observed: Full (NX, NY) or half (NX, NY//2+1) complex spectrum.
            mask: Half-spectrum sampling weights, shape (NX, NY//2+1).
            x_init: Real initial image of shape (NX, NY). Overwritten in place.
            lambda_l1, lambda_tv, lambda_tsv: Non-negative weights. At most one of
                lambda_tv and lambda_tsv may be positive.
            c_init: Initial step scale (Lipschitz estimate), must be positive.
            nonneg: Restrict the image to x >= 0 (bool or 0/1).
            support: Optional (NX, NY) 0/1 box. Pixels outside are held at zero.

        Returns:
            MFISTAOutput: iterations, image, cost history and final step scale.
        """
        nonneg = _check_nonneg_flag(nonneg)
        lambda_l1 = _check_weight("lambda_l1", lambda_l1)
        lambda_tv = _check_weight("lambda_tv", lambda_tv)
        lambda_tsv = _check_weight("lambda_tsv", lambda_tsv)
        if lambda_tv > 0 and lambda_tsv > 0:
            raise ConfigurationError("lambda_tv and lambda_tsv cannot both be positive.")
        if not (math.isfinite(c_init) and c_init > 0):
            raise ConfigurationError(f"c_init must be a finite positive number, got {c_init}.")
        if not isinstance(x_init, torch.Tensor) or x_init.is_complex() or not x_init.is_floating_point():
            raise ConfigurationError("x_init must be a real floating-point torch.Tensor.")
        if x_init.ndim != 2 or x_init.numel() == 0:
            raise ConfigurationError(f"x_init must be a non-empty (NX, NY) image, got shape {tuple(x_init.shape)}.")

        image_shape = tuple(x_init.shape)
        try:
            fourier_op = HalfSpectrumFourierOperator(observed, mask, image_shape, device=x_init.device)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        if support is not None:
            support = torch.as_tensor(support, device=x_init.device).to(torch.float64)
            if tuple(support.shape) != image_shape:
                raise ConfigurationError(f"support shape {tuple(support.shape)} must match image shape {image_shape}.")

        l1 = l1_regularizer(lambda_l1, nonnegative=nonneg)
        tv = TVRegularizer(lambda_tv, fgp_iterations=self.config.fgp_iterations) if lambda_tv > 0 else None
        tsv = TSVRegularizer(lambda_tsv) if lambda_tsv > 0 else None

        if self.verbose:
            print("computing image with MFISTA.")

        workspace = FGPWorkspace(*image_shape, device=x_init.device) if tv is not None else contextlib.nullcontext()
        with workspace as ws:
            output = self._iterate(fourier_op, x_init.detach().to(torch.float64).clone(),
                                   l1, tv, tsv, float(c_init), support, ws)

        with torch.no_grad():
            x_init.copy_(output.image)
        return output

    def _iterate(self, fourier_op, x, l1, tv, tsv, c, support, workspace) -> MFISTAOutput:
        cfg = self.config

        def smooth_cost(v):
            value, resid = fourier_op.data_term_and_residual(v)
            if tsv is not None:
                value += tsv.value(v).item()
            return value, resid

        def total_cost(v, smooth_value):
            value = smooth_value + l1.value(v).item()
            if tv is not None:
                value += tv.value(v).item()
            return value

        def prox(v, steplength):
            if tv is None:
                out = l1.proximal_operator(v, steplength)
            else:
                out = tv.proximal_operator(v, steplength, l1=l1, workspace=workspace)
            if support is not None:
                out = out * support
            return out

        z = x.clone()
        mu = 1.0
        cost_history = [total_cost(x, smooth_cost(x)[0])]
        iterations = 0

        for iter_num in range(cfg.max_iter):
            iterations = iter_num + 1
            if self.verbose and iter_num % cfg.report_interval == 0:
                print(f"{iterations} cost = {cost_history[-1]:f}")

            f_z, resid_z = smooth_cost(z)
            grad = fourier_op.gradient(resid_z)
            if tsv is not None:
                grad = grad + tsv.gradient(z)

            for _ in range(cfg.max_line_search_iter):
                steplength = 1.0 / c
                x_new = prox(z - steplength * grad, steplength)
                f_new, _ = smooth_cost(x_new)
                diff = x_new - z
                q_bound = f_z + torch.sum(grad * diff).item() + 0.5 * c * torch.sum(diff * diff).item()
                if f_new <= q_bound:
                    break
                c *= cfg.eta
                if c > cfg.max_step_scale:
                    raise LineSearchError(f"Step scale c={c:.3e} exceeded max_step_scale={cfg.max_step_scale:.3e} "
                                          f"at iteration {iterations}.")
            else:
                raise LineSearchError(f"Line search did not converge in {cfg.max_line_search_iter} tries "
                                      f"at iteration {iterations} (c={c:.3e}).")
            c /= cfg.eta

            mu_new = (1.0 + math.sqrt(1.0 + 4.0 * mu * mu)) / 2.0
            cost_new = total_cost(x_new, f_new)

            if cost_new < cost_history[-1]:
                z = x_new + ((mu - 1.0) / mu_new) * (x_new - x)
                x = x_new
                cost_history.append(cost_new)
            else:
                z = x + (mu / mu_new) * (x_new - x)
                cost_history.append(cost_history[-1])

            if self.log_fn:
                self.log_fn(iter_num=iterations, current_image=x.clone(),
                            cost=cost_history[-1], step_scale=c)

            if iter_num > 1 and not torch.any(x):
                break
            if (iterations >= cfg.min_iter and len(cost_history) > cfg.lookback
                    and cost_history[-1 - cfg.lookback] - cost_history[-1] < cfg.eps):
                break

            mu = mu_new

        if self.verbose:
            print(f"{iterations} cost = {cost_history[-1]:f}")

        return MFISTAOutput(iterations=iterations, image=x, cost_history=cost_history, step_scale=c)


def mfista_l1_tv_fft(observed, mask, x_init, lambda_l1, lambda_tv, c_init,
                     nonneg=False, support=None, config=None, verbose=False) -> MFISTAOutput:
    """Functional form of `MFISTA.solve_l1_tv`."""
    return MFISTA(config=config, verbose=verbose).solve_l1_tv(
        observed, mask, x_init, lambda_l1, lambda_tv, c_init, nonneg=nonneg, support=support)


def mfista_l1_tsv_fft(observed, mask, x_init, lambda_l1, lambda_tsv, c_init,
                      nonneg=False, support=None, config=None, verbose=False) -> MFISTAOutput:
    """Functional form of `MFISTA.solve_l1_tsv`."""
    return MFISTA(config=config, verbose=verbose).solve_l1_tsv(
        observed, mask, x_init, lambda_l1, lambda_tsv, c_init, nonneg=nonneg, support=support)


if __name__ == '__main__':
    print("Running basic MFISTA checks...")
    nx, ny = 8, 8
    truth = torch.zeros(nx, ny, dtype=torch.float64)
    truth[2, 3] = 1.0
    truth[5, 6] = 0.5
    mask = torch.ones(nx, ny // 2 + 1, dtype=torch.float64)
    data = mask * torch.fft.rfft2(truth) / math.sqrt(nx * ny)

    x0 = torch.zeros(nx, ny, dtype=torch.float64)
    result = mfista_l1_tsv_fft(data, mask, x0, lambda_l1=0.01, lambda_tsv=0.0, c_init=1.0,
                               config=MFISTAConfig(max_iter=500), verbose=True)
    print(f"Iterations: {result.iterations}, final cost: {result.final_cost:.6e}")
    print(f"Max |x - truth|: {torch.max(torch.abs(x0 - truth)).item():.3e}")
