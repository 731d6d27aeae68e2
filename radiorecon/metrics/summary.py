from dataclasses import dataclass
from typing import Optional
import torch

from radiorecon.operators import HalfSpectrumFourierOperator
from radiorecon.regularizers.functional import total_variation, total_squared_variation


@dataclass
class MFISTAResult:
    """Diagnostics of a finished reconstruction, recomputed from the final image."""
    M: int
    N: int
    NX: int
    NY: int
    lambda_l1: float
    lambda_tv: float
    lambda_tsv: float
    sq_error: float
    mean_sq_error: float
    l1cost: float
    N_active: int
    finalcost: float
    tvcost: Optional[float] = None
    tsvcost: Optional[float] = None
    iterations: Optional[int] = None
    max_iter: Optional[int] = None

    def report(self) -> str:
        """Renders the diagnostics as a plain-text listing."""
        lines = ["", "RESULTS:", ""]
        if self.iterations is not None:
            lines.append(f"iterations:            {self.iterations}")
        if self.max_iter is not None:
            lines.append(f"maximum iteration:     {self.max_iter}")
        lines += [
            f"size of data:          {self.M}",
            f"size of image:         {self.N} ({self.NX} x {self.NY})",
            "",
            f"Lambda_1:              {self.lambda_l1:e}",
        ]
        if self.lambda_tv > 0:
            lines.append(f"Lambda_TV:             {self.lambda_tv:e}")
        if self.lambda_tsv > 0:
            lines.append(f"Lambda_TSV:            {self.lambda_tsv:e}")
        lines += [
            "",
            f"# of nonzero pixels:   {self.N_active}",
            f"Squared Error (SE):    {self.sq_error:e}",
            f"Mean SE:               {self.mean_sq_error:e}",
            f"L1 cost:               {self.l1cost:e}",
        ]
        if self.tvcost is not None:
            lines.append(f"TV cost:               {self.tvcost:e}")
        if self.tsvcost is not None:
            lines.append(f"TSV cost:              {self.tsvcost:e}")
        lines += ["", f"Final cost:            {self.finalcost:e}", ""]
        return "\n".join(lines)


def summarize_result(x: torch.Tensor,
                     observed: torch.Tensor,
                     mask: torch.Tensor,
                     lambda_l1: float,
                     lambda_tv: float = 0.0,
                     lambda_tsv: float = 0.0,
                     iterations: Optional[int] = None,
                     max_iter: Optional[int] = None) -> MFISTAResult:
    """
    Recomputes the cost terms of a reconstructed image.

    sq_error is twice the data term (1/2 of the squared norm of the expanded
    residual) and is averaged over the number of observed half-spectrum bins.
    The final cost adds lambda_l1 * ||x||_1 and either the TSV term (when
    lambda_tsv > 0) or the TV term (when lambda_tv > 0), matching the cost
    minimized by `MFISTA`.
    """
    if x.ndim != 2:
        raise ValueError(f"Expected a 2D image (NX, NY), got shape {tuple(x.shape)}.")
    x = x.detach().to(torch.float64)
    nx, ny = x.shape
    fourier_op = HalfSpectrumFourierOperator(observed, mask, (nx, ny), device=x.device)

    sq_error = 2.0 * fourier_op.data_term(x)
    num_measurements = fourier_op.num_observed
    mean_sq_error = sq_error / num_measurements if num_measurements > 0 else float('nan')

    abs_x = torch.abs(x)
    l1cost = torch.sum(abs_x).item()
    n_active = int(torch.count_nonzero(abs_x).item())

    finalcost = sq_error / 2.0
    if lambda_l1 > 0:
        finalcost += lambda_l1 * l1cost

    tvcost, tsvcost = None, None
    if lambda_tsv > 0:
        tsvcost = total_squared_variation(x).item()
        finalcost += lambda_tsv * tsvcost
    elif lambda_tv > 0:
        tvcost = total_variation(x).item()
        finalcost += lambda_tv * tvcost

    return MFISTAResult(M=num_measurements, N=nx * ny, NX=nx, NY=ny,
                        lambda_l1=lambda_l1, lambda_tv=lambda_tv, lambda_tsv=lambda_tsv,
                        sq_error=sq_error, mean_sq_error=mean_sq_error,
                        l1cost=l1cost, N_active=n_active, finalcost=finalcost,
                        tvcost=tvcost, tsvcost=tsvcost,
                        iterations=iterations, max_iter=max_iter)
