"""Numerical linear algebra routines."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, Optional, Tuple

import numpy as np
import numpy.typing as npt
from scipy import linalg

from .exceptions import NewtonStepError

LDLTFactors = Tuple[
    npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.int_]
]


@dataclass
class CGResult:
    """Wrapper for the result of conjugate gradient.

    Parameters
    ----------
     x : vector
        Approximate solution.
     nits : int
        Number of CG iterations (matrix-vector products).
     residual_norm : float
        Norm of b - A * x.
     status : str
        "converged", "negative_curvature" or "max_iterations".

    """

    x: npt.NDArray[np.float64]
    nits: int
    residual_norm: float
    status: Literal["converged", "negative_curvature", "max_iterations"]


def conjugate_gradient(
    A_multiply: Callable[[npt.NDArray[np.float64]], npt.NDArray[np.float64]],
    b: npt.NDArray[np.float64],
    rtol: float = 1e-10,
    max_iter: Optional[int] = None,
    preconditioner: Optional[
        Callable[[npt.NDArray[np.float64]], npt.NDArray[np.float64]]
    ] = None,
    stop_on_negative_curvature: bool = False,
) -> CGResult:
    """Solve A * x = b with (preconditioned) conjugate gradient.

    Only products with A are needed, so A is never formed. Starting from x = 0, we
    stop as soon as the residual satisfies |b - A * x| <= rtol * |b|. In exact
    arithmetic, CG on a symmetric positive definite system of size n converges in at
    most n iterations.

    Parameters
    ----------
     A_multiply : Callable
        A function computing A * p. A must be symmetric.
     b : vector
        Right hand side.
     rtol : float, optional
        Relative residual tolerance. Defaults to 1e-10.
     max_iter : int, optional
        Maximum number of iterations. Defaults to len(b).
     preconditioner : Callable, optional
        A function computing M^{-1} * r for a symmetric positive definite M
        approximating A.
     stop_on_negative_curvature : bool, optional
        Governs what happens if we find a direction p with p^T * A * p <= 0. If True,
        we return the iterate found so far (or b itself, if this happens on the very
        first iteration; when b is a negative gradient, that is the steepest descent
        direction). If False (the default), we raise NewtonStepError.

    Returns
    -------
     res : CGResult
        The solution and some diagnostics.

    """
    n = b.shape[0]
    if max_iter is None:
        max_iter = n

    x = np.zeros_like(b, dtype=np.float64)
    r = b.astype(np.float64, copy=True)
    b_norm = np.linalg.norm(b)
    if b_norm == 0.0:
        return CGResult(x=x, nits=0, residual_norm=0.0, status="converged")

    z = r if preconditioner is None else preconditioner(r)
    p = z.copy()
    rz = np.dot(r, z)
    r_norm = b_norm
    for nit in range(max_iter):
        Ap = A_multiply(p)
        pAp = np.dot(p, Ap)
        if pAp <= 0.0 or not np.isfinite(pAp):
            if not stop_on_negative_curvature:
                raise NewtonStepError("Matrix is not positive definite.")
            if nit == 0:
                return CGResult(
                    x=b.astype(np.float64, copy=True),
                    nits=nit,
                    residual_norm=r_norm,
                    status="negative_curvature",
                )
            return CGResult(
                x=x, nits=nit, residual_norm=r_norm, status="negative_curvature"
            )

        alpha = rz / pAp
        x += alpha * p
        r -= alpha * Ap
        r_norm = np.linalg.norm(r)
        if r_norm <= rtol * b_norm:
            return CGResult(
                x=x, nits=nit + 1, residual_norm=r_norm, status="converged"
            )

        z = r if preconditioner is None else preconditioner(r)
        rz_new = np.dot(r, z)
        p = z + (rz_new / rz) * p
        rz = rz_new

    return CGResult(x=x, nits=max_iter, residual_norm=r_norm, status="max_iterations")


def ldlt_factor(H: npt.NDArray[np.float64]) -> LDLTFactors:
    """Factor symmetric H as L * D * L^T with Bunch-Kaufman pivoting.

    Returns
    -------
     lu, d, perm
        As returned by scipy.linalg.ldl: H = lu * d * lu^T, d is block diagonal with
        1x1 and 2x2 blocks, and lu[perm] is unit lower triangular.

    """
    if H.ndim != 2 or H.shape[0] != H.shape[1]:
        raise ValueError("H must be a square matrix.")
    if not np.all(np.isfinite(H)):
        raise NewtonStepError("Hessian has non-finite entries.")
    return linalg.ldl(H, lower=True)


def ldlt_inertia(
    factors: LDLTFactors, rtol: Optional[float] = None
) -> Tuple[int, int, int]:
    """Count positive, negative and zero eigenvalues via Sylvester's law of inertia.

    H and D are congruent, so they have the same inertia, and D is block diagonal so
    its eigenvalues are cheap. Eigenvalues within rtol * max|eig| of zero count as
    zero.

    """
    _, d, _ = factors
    eigs = np.linalg.eigvalsh(d)
    if rtol is None:
        rtol = d.shape[0] * np.finfo(np.float64).eps
    scale = np.max(np.abs(eigs)) if eigs.size else 0.0
    threshold = rtol * scale
    n_pos = int(np.sum(eigs > threshold))
    n_neg = int(np.sum(eigs < -threshold))
    return n_pos, n_neg, eigs.size - n_pos - n_neg


def ldlt_solve(
    factors: LDLTFactors, b: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    """Solve H * x = b given an LDL^T factorization of H.

    With P the row permutation for which L = P * lu is triangular, we have
       L * D * L^T * (P * x) = P * b,
    which we solve with two triangular solves and a block diagonal solve.

    """
    lu, d, perm = factors
    L = lu[perm]
    y = linalg.solve_triangular(L, b[perm], lower=True, unit_diagonal=True)
    z = linalg.solve(d, y, assume_a="sym")
    w = linalg.solve_triangular(L.T, z, lower=False, unit_diagonal=True)
    x = np.empty_like(w)
    x[perm] = w
    return x


def regularized_ldlt_solve(
    H: npt.NDArray[np.float64],
    b: npt.NDArray[np.float64],
    initial_shift: float = 1e-3,
    growth: float = 10.0,
    max_attempts: int = 60,
) -> Tuple[npt.NDArray[np.float64], float]:
    """Solve (H + tau * I) * x = b for the smallest tau making H + tau * I PD.

    Tries tau = 0 first. If the factorization shows H is not positive definite, we
    start from tau = -min(diag(H)) + initial_shift (or initial_shift, if the diagonal
    is positive) and multiply by growth until the shifted matrix is positive
    definite. See Nocedal and Wright, Numerical Optimization, Algorithm 3.3. As tau
    grows, x approaches b / tau, so when b is a negative gradient the direction is
    blended toward steepest descent.

    Parameters
    ----------
     H : matrix
        Symmetric matrix.
     b : vector
        Right hand side.
     initial_shift : float, optional
        Smallest nonzero shift. Defaults to 1e-3.
     growth : float, optional
        Factor by which the shift grows. Defaults to 10.
     max_attempts : int, optional
        Maximum number of shifts tried. Defaults to 60.

    Returns
    -------
     x : vector
        The solution.
     tau : float
        The shift used; zero if H itself was positive definite.

    """
    n = H.shape[0]
    factors = ldlt_factor(H)
    n_pos, _, _ = ldlt_inertia(factors)
    if n_pos == n:
        return ldlt_solve(factors, b), 0.0

    min_diag = np.min(np.diag(H))
    tau = initial_shift if min_diag > 0 else initial_shift - min_diag
    identity = np.eye(n)
    for _ in range(max_attempts):
        factors = ldlt_factor(H + tau * identity)
        n_pos, _, _ = ldlt_inertia(factors)
        if n_pos == n:
            return ldlt_solve(factors, b), tau
        tau = max(growth * tau, initial_shift)

    raise NewtonStepError(
        f"Could not regularize Hessian after {max_attempts} attempts (tau = {tau})."
    )
